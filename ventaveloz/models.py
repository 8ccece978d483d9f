"""
Domain models for VentaVeloz.

The domain speaks English enum values and Decimal money. The backend speaks
Spanish field names and enum values and plain JSON numbers; to_wire() and
from_wire() translate between the two.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TableStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"


class OrderStatus(str, Enum):
    PENDING = "pending"
    IN_PREPARATION = "in_preparation"
    SERVED = "served"
    PAID = "paid"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"


class Role(str, Enum):
    ADMIN = "admin"
    WAITER = "waiter"


# Backend vocabulary
TABLE_STATUS_WIRE = {
    TableStatus.AVAILABLE: "disponible",
    TableStatus.OCCUPIED: "ocupada",
    TableStatus.RESERVED: "reservada",
}
ORDER_STATUS_WIRE = {
    OrderStatus.PENDING: "pendiente",
    OrderStatus.IN_PREPARATION: "en preparación",
    OrderStatus.SERVED: "servida",
    OrderStatus.PAID: "pagada",
    OrderStatus.CANCELLED: "cancelada",
}
PAYMENT_METHOD_WIRE = {
    PaymentMethod.CASH: "efectivo",
    PaymentMethod.CARD: "tarjeta",
    PaymentMethod.TRANSFER: "transferencia",
}
ROLE_WIRE = {
    Role.ADMIN: "admin",
    Role.WAITER: "mesero",
}


def _from_wire_enum(mapping: Dict[Enum, str], value: Any, field: str):
    """Resolve a backend (or already domain) enum value."""
    for member, wire in mapping.items():
        if value == wire or value == member.value or value is member:
            return member
    raise ValueError(f"Unknown {field}: {value!r}")


def _ref_id(value: Any) -> Optional[str]:
    """References come either as a bare id or as a populated document."""
    if value is None:
        return None
    if isinstance(value, dict):
        ref = value.get("_id") or value.get("id")
        return str(ref) if ref is not None else None
    return str(value)


def _ref_name(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("nombre")
    return None


def _money(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _wire_money(value: Decimal) -> float:
    return float(value)


def _wire_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    text = value.isoformat()
    return text.replace("+00:00", "Z")


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


class Table(BaseModel):
    """A physical dining table (mesa)."""

    id: str
    number: int = Field(gt=0)
    capacity: int = Field(gt=0)
    location: str = "interior"
    status: TableStatus = TableStatus.AVAILABLE
    assigned_server_id: Optional[str] = None
    assigned_server_name: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "numero": self.number,
            "capacidad": self.capacity,
            "ubicacion": self.location,
            "estado": TABLE_STATUS_WIRE[self.status],
            "meseroAsignado": self.assigned_server_id,
        }

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "Table":
        server = data.get("meseroAsignado")
        return cls(
            id=_ref_id(data),
            number=data["numero"],
            capacity=data["capacidad"],
            location=data.get("ubicacion") or "interior",
            status=_from_wire_enum(TABLE_STATUS_WIRE, data.get("estado", "disponible"), "table status"),
            assigned_server_id=_ref_id(server),
            assigned_server_name=_ref_name(server),
        )


def table_fields_to_wire(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Translate a partial table update (domain names) to the backend's names."""
    names = {
        "number": "numero",
        "capacity": "capacidad",
        "location": "ubicacion",
        "status": "estado",
        "assigned_server_id": "meseroAsignado",
    }
    payload = {}
    for key, value in fields.items():
        if key not in names:
            raise ValueError(f"Unknown table field: {key}")
        if key == "status" and value is not None:
            value = TABLE_STATUS_WIRE[_from_wire_enum(TABLE_STATUS_WIRE, value, "table status")]
        payload[names[key]] = value
    return payload


def table_fields_from_wire(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Inverse of table_fields_to_wire; unknown backend keys are ignored."""
    names = {
        "numero": "number",
        "capacidad": "capacity",
        "ubicacion": "location",
        "estado": "status",
        "meseroAsignado": "assigned_server_id",
    }
    fields = {}
    for key, value in payload.items():
        if key not in names:
            continue
        if key == "estado" and value is not None:
            value = _from_wire_enum(TABLE_STATUS_WIRE, value, "table status")
        if key == "meseroAsignado":
            value = _ref_id(value)
        fields[names[key]] = value
    return fields


class LineItem(BaseModel):
    """One product line of an order. subtotal is trusted, not re-derived."""

    product_name: str
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0)
    subtotal: Decimal = Field(ge=0)
    product_id: Optional[str] = None

    @field_validator("product_name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("product_name must not be empty")
        return value

    def to_wire(self) -> Dict[str, Any]:
        data = {
            "nombre": self.product_name,
            "cantidad": self.quantity,
            "precioUnitario": _wire_money(self.unit_price),
            "subtotal": _wire_money(self.subtotal),
        }
        if self.product_id is not None:
            data["productoId"] = self.product_id
        return data

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "LineItem":
        return cls(
            product_name=data["nombre"],
            quantity=data["cantidad"],
            unit_price=_money(data.get("precioUnitario")),
            subtotal=_money(data.get("subtotal")),
            product_id=_ref_id(data.get("productoId")),
        )


class Order(BaseModel):
    """One round of items requested at a table (orden)."""

    id: str
    table_id: str
    server_id: Optional[str] = None
    line_items: List[LineItem] = Field(default_factory=list)
    total: Decimal = Field(default=Decimal("0"), ge=0)
    status: OrderStatus = OrderStatus.PENDING
    created_at: Optional[datetime] = None

    @property
    def is_cancelled(self) -> bool:
        return self.status == OrderStatus.CANCELLED

    def to_wire(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "mesa": self.table_id,
            "mesero": self.server_id,
            "productos": [item.to_wire() for item in self.line_items],
            "total": _wire_money(self.total),
            "estado": ORDER_STATUS_WIRE[self.status],
            "fecha": _wire_datetime(self.created_at),
        }

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "Order":
        return cls(
            id=_ref_id(data),
            table_id=_ref_id(data.get("mesa")),
            server_id=_ref_id(data.get("mesero")),
            line_items=[LineItem.from_wire(p) for p in data.get("productos") or []],
            total=_money(data.get("total")),
            status=_from_wire_enum(ORDER_STATUS_WIRE, data.get("estado", "pendiente"), "order status"),
            created_at=_parse_datetime(data.get("fecha")),
        )


class BillLine(BaseModel):
    """One aggregated product line of a bill."""

    product_name: str
    total_quantity: int
    unit_price: Decimal
    total_subtotal: Decimal

    def to_wire(self) -> Dict[str, Any]:
        return {
            "nombre": self.product_name,
            "cantidad": self.total_quantity,
            "precioUnitario": _wire_money(self.unit_price),
            "subtotal": _wire_money(self.total_subtotal),
        }

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "BillLine":
        return cls(
            product_name=data["nombre"],
            total_quantity=data["cantidad"],
            unit_price=_money(data.get("precioUnitario")),
            total_subtotal=_money(data.get("subtotal")),
        )


class Bill(BaseModel):
    """Consolidated view of a table's non-cancelled orders at checkout."""

    model_config = ConfigDict(frozen=True)

    table_id: Optional[str] = None
    line_items: List[BillLine] = Field(default_factory=list)
    grand_total: Decimal = Decimal("0")

    @property
    def line_items_total(self) -> Decimal:
        return sum((line.total_subtotal for line in self.line_items), Decimal("0"))

    @property
    def is_consistent(self) -> bool:
        """False when the order totals disagree with the line subtotals."""
        return self.grand_total == self.line_items_total


class Sale(BaseModel):
    """Permanent record of a closed table (venta)."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    table_id: str
    server_id: Optional[str] = None
    line_items: List[BillLine] = Field(default_factory=list)
    total: Decimal = Field(ge=0)
    payment_method: PaymentMethod
    timestamp: datetime

    def to_wire(self) -> Dict[str, Any]:
        data = {
            "mesa": self.table_id,
            "mesero": self.server_id,
            "productos": [line.to_wire() for line in self.line_items],
            "total": _wire_money(self.total),
            "fecha": _wire_datetime(self.timestamp),
            "metodoPago": PAYMENT_METHOD_WIRE[self.payment_method],
        }
        if self.id is not None:
            data["_id"] = self.id
        return data

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "Sale":
        return cls(
            id=_ref_id(data) if ("_id" in data or "id" in data) else None,
            table_id=_ref_id(data.get("mesa")),
            server_id=_ref_id(data.get("mesero")),
            line_items=[BillLine.from_wire(p) for p in data.get("productos") or []],
            total=_money(data.get("total")),
            payment_method=_from_wire_enum(PAYMENT_METHOD_WIRE, data.get("metodoPago"), "payment method"),
            timestamp=_parse_datetime(data.get("fecha")),
        )


class Product(BaseModel):
    """Catalog entry (producto)."""

    id: str
    name: str
    category: str = ""
    price: Decimal = Field(ge=0)
    description: str = ""
    available: bool = True
    image: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "nombre": self.name,
            "categoria": self.category,
            "precio": _wire_money(self.price),
            "descripcion": self.description,
            "disponible": self.available,
            "imagen": self.image,
        }

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "Product":
        return cls(
            id=_ref_id(data),
            name=data["nombre"],
            category=data.get("categoria") or "",
            price=_money(data.get("precio")),
            description=data.get("descripcion") or "",
            available=bool(data.get("disponible", True)),
            image=data.get("imagen"),
        )


class User(BaseModel):
    """Staff member (usuario)."""

    id: str
    name: str
    email: str
    role: Role = Role.WAITER

    def to_wire(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "nombre": self.name,
            "correo": self.email,
            "rol": ROLE_WIRE[self.role],
        }

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=_ref_id(data),
            name=data.get("nombre") or "",
            email=data.get("correo") or "",
            role=_from_wire_enum(ROLE_WIRE, data.get("rol", "mesero"), "role"),
        )


def parse_payment_method(value: Any) -> PaymentMethod:
    """Accept a PaymentMethod or one of cash/card/transfer, else ValueError."""
    if isinstance(value, PaymentMethod):
        return value
    try:
        return PaymentMethod(value)
    except ValueError:
        raise ValueError(f"Unknown payment method: {value!r}")
