"""
Async REST client for the VentaVeloz backend.

One method per backend operation. Every call maps HTTP failures onto the
ApiError hierarchy, using the backend's "mensaje" text when present and a
per-operation default otherwise.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Any, Optional, Sequence

import httpx

from ventaveloz.auth import AuthClient, Credentials
from ventaveloz.cart import Cart
from ventaveloz.config import get_settings
from ventaveloz.errors import (
    ApiError,
    ConflictError,
    NotFoundError,
    TransportError,
    UnauthorizedError,
)
from ventaveloz.models import (
    LineItem,
    Order,
    OrderStatus,
    Product,
    Role,
    Sale,
    Table,
    TableStatus,
    User,
    ORDER_STATUS_WIRE,
    ROLE_WIRE,
    TABLE_STATUS_WIRE,
    table_fields_to_wire,
)

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = {
    "name": "nombre",
    "category": "categoria",
    "price": "precio",
    "description": "descripcion",
    "available": "disponible",
}
USER_FIELDS = {
    "name": "nombre",
    "email": "correo",
    "password": "contrasena",
    "role": "rol",
}


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        for key in ("mensaje", "message", "detail"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return default


def _raise_for_status(response: httpx.Response, default: str) -> None:
    if response.status_code < 400:
        return
    message = _error_message(response, default)
    status = response.status_code
    if status == 404:
        raise NotFoundError(message, status_code=status)
    if status in (401, 403):
        raise UnauthorizedError(message, status_code=status)
    if status == 409:
        raise ConflictError(message, status_code=status)
    raise ApiError(message, status_code=status)


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _map_fields(fields: Dict[str, Any], names: Dict[str, str], kind: str) -> Dict[str, Any]:
    payload = {}
    for key, value in fields.items():
        if key not in names:
            raise ValueError(f"Unknown {kind} field: {key}")
        payload[names[key]] = _plain(value)
    return payload


class ApiClient:
    """
    Thin async wrapper around httpx for the /api endpoints.

    Credentials are fixed for the lifetime of the instance; use
    authenticated() to get a client bound to another credential.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        credentials: Optional[Credentials] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self.credentials = credentials
        if http is None:
            http = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=timeout if timeout is not None else settings.timeout,
                headers={"Content-Type": "application/json"},
                transport=transport,
            )
            self._owns_http = True
        else:
            self._owns_http = False
        self._http = http
        self.auth = AuthClient(self)

    def authenticated(self, credentials: Credentials) -> "ApiClient":
        """Return a client sharing this connection pool but using credentials."""
        return ApiClient(base_url=self.base_url, credentials=credentials, http=self._http)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        path: str,
        default_error: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        authenticated: bool = True,
    ) -> Any:
        """Send one request and return the decoded JSON body (or None)."""
        request_headers = dict(headers or {})
        if authenticated and self.credentials is not None:
            request_headers.update(self.credentials.headers())
        url = f"{self.base_url}{path}"
        try:
            response = await self._http.request(
                method, url, json=json, params=params, headers=request_headers
            )
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {path} timed out: {e}")
            raise TransportError(f"{default_error}: tiempo de espera agotado") from e
        except httpx.RequestError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise TransportError(f"{default_error}: {e}") from e

        logger.debug(f"{method} {path} -> {response.status_code}")
        _raise_for_status(response, default_error)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(f"{default_error}: respuesta inválida", response.status_code) from e

    # ---------- auth ----------

    async def login(self, email: str, password: str) -> Credentials:
        return await self.auth.login(email, password)

    async def register(self, name: str, email: str, password: str, role: Role = Role.WAITER) -> Credentials:
        return await self.auth.register(name, email, password, role)

    # ---------- tables (/mesas) ----------

    async def list_tables(self) -> List[Table]:
        data = await self.request("GET", "/mesas", "Error al obtener mesas")
        return [Table.from_wire(item) for item in data or []]

    async def get_table(self, table_id: str) -> Table:
        data = await self.request("GET", f"/mesas/{table_id}", "Error al obtener mesa")
        return Table.from_wire(data)

    async def create_table(
        self,
        number: int,
        capacity: int,
        location: str = "interior",
        status: TableStatus = TableStatus.AVAILABLE,
    ) -> Table:
        payload = {
            "numero": number,
            "capacidad": capacity,
            "ubicacion": location,
            "estado": TABLE_STATUS_WIRE[TableStatus(status)],
        }
        data = await self.request("POST", "/mesas", "Error al crear mesa", json=payload)
        return Table.from_wire(data)

    async def update_table(self, table_id: str, fields: Dict[str, Any]) -> Table:
        data = await self.request(
            "PUT", f"/mesas/{table_id}", "Error al actualizar mesa", json=table_fields_to_wire(fields)
        )
        return Table.from_wire(data)

    async def take_table(self, table_id: str, server_id: str) -> Table:
        """Mark a table occupied by server_id."""
        return await self.update_table(
            table_id, {"status": TableStatus.OCCUPIED, "assigned_server_id": server_id}
        )

    async def delete_table(self, table_id: str) -> None:
        await self.request("DELETE", f"/mesas/{table_id}", "Error al eliminar mesa")

    # ---------- orders (/ordenes) ----------

    async def list_orders(self) -> List[Order]:
        data = await self.request("GET", "/ordenes", "Error al obtener órdenes")
        return [Order.from_wire(item) for item in data or []]

    async def get_order(self, order_id: str) -> Order:
        data = await self.request("GET", f"/ordenes/{order_id}", "Error al obtener orden")
        return Order.from_wire(data)

    async def create_order(
        self,
        table_id: str,
        server_id: str,
        line_items: Sequence[LineItem],
        total: Decimal,
        status: OrderStatus = OrderStatus.PENDING,
    ) -> Order:
        payload = {
            "mesa": table_id,
            "mesero": server_id,
            "productos": [item.to_wire() for item in line_items],
            "total": float(total),
            "estado": ORDER_STATUS_WIRE[OrderStatus(status)],
        }
        data = await self.request("POST", "/ordenes", "Error al crear orden", json=payload)
        return Order.from_wire(data)

    async def build_order(self, table_id: str, server_id: str, cart: Cart) -> Order:
        """Send the cart as a new pending order; an empty cart is refused."""
        if cart.is_empty():
            raise ValueError("Agregue al menos un producto a la orden")
        return await self.create_order(table_id, server_id, cart.line_items(), cart.total)

    async def update_order_status(self, order_id: str, status: OrderStatus) -> Order:
        data = await self.request(
            "PUT",
            f"/ordenes/{order_id}",
            "Error al actualizar orden",
            json={"estado": ORDER_STATUS_WIRE[OrderStatus(status)]},
        )
        return Order.from_wire(data)

    async def delete_order(self, order_id: str) -> None:
        await self.request("DELETE", f"/ordenes/{order_id}", "Error al eliminar orden")

    # ---------- products (/productos) ----------

    async def list_products(self, available_only: bool = False) -> List[Product]:
        data = await self.request("GET", "/productos", "Error al obtener productos")
        products = [Product.from_wire(item) for item in data or []]
        if available_only:
            products = [p for p in products if p.available]
        return products

    async def get_product(self, product_id: str) -> Product:
        data = await self.request("GET", f"/productos/{product_id}", "Error al obtener producto")
        return Product.from_wire(data)

    async def create_product(
        self,
        name: str,
        category: str,
        price: Decimal,
        description: str = "",
        available: bool = True,
    ) -> Product:
        payload = _map_fields(
            {
                "name": name,
                "category": category,
                "price": price,
                "description": description,
                "available": available,
            },
            PRODUCT_FIELDS,
            "product",
        )
        data = await self.request("POST", "/productos", "Error al crear producto", json=payload)
        return Product.from_wire(data)

    async def update_product(self, product_id: str, fields: Dict[str, Any]) -> Product:
        payload = _map_fields(fields, PRODUCT_FIELDS, "product")
        data = await self.request(
            "PUT", f"/productos/{product_id}", "Error al actualizar producto", json=payload
        )
        return Product.from_wire(data)

    async def delete_product(self, product_id: str) -> None:
        await self.request("DELETE", f"/productos/{product_id}", "Error al eliminar producto")

    def image_url(self, image_path: Optional[str]) -> Optional[str]:
        """Absolute URL of a product image served next to /api."""
        if not image_path:
            return None
        if image_path.startswith(("http://", "https://")):
            return image_path
        root = self.base_url[: -len("/api")] if self.base_url.endswith("/api") else self.base_url
        return f"{root}/{image_path.lstrip('/')}"

    # ---------- sales (/ventas) ----------

    async def create_sale(self, sale: Sale, idempotency_key: Optional[str] = None) -> Sale:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        data = await self.request(
            "POST", "/ventas", "Error al crear venta", json=sale.to_wire(), headers=headers
        )
        return Sale.from_wire(data)

    async def list_sales(self) -> List[Sale]:
        data = await self.request("GET", "/ventas", "Error al obtener ventas")
        return [Sale.from_wire(item) for item in data or []]

    async def list_sales_by_date(self, start: date, end: date) -> List[Sale]:
        data = await self.request(
            "GET",
            "/ventas/fecha",
            "Error al obtener ventas por fecha",
            params={"fechaInicio": start.isoformat(), "fechaFin": end.isoformat()},
        )
        return [Sale.from_wire(item) for item in data or []]

    async def sales_statistics(self, day: Optional[date] = None) -> Dict[str, Any]:
        """Backend-computed statistics; returned as the raw JSON document."""
        params = {"fecha": day.isoformat()} if day else None
        return await self.request(
            "GET", "/ventas/estadisticas", "Error al obtener estadísticas", params=params
        )

    async def get_sale(self, sale_id: str) -> Sale:
        data = await self.request("GET", f"/ventas/{sale_id}", "Error al obtener venta")
        return Sale.from_wire(data)

    # ---------- users (/usuarios) ----------

    async def profile(self) -> User:
        data = await self.request("GET", "/usuarios/perfil", "Error al obtener perfil")
        return User.from_wire(data)

    async def list_users(self) -> List[User]:
        data = await self.request("GET", "/usuarios", "Error al obtener usuarios")
        return [User.from_wire(item) for item in data or []]

    async def get_user(self, user_id: str) -> User:
        data = await self.request("GET", f"/usuarios/{user_id}", "Error al obtener usuario")
        return User.from_wire(data)

    async def create_user(self, name: str, email: str, password: str, role: Role = Role.WAITER) -> User:
        payload = {
            "nombre": name,
            "correo": email,
            "contrasena": password,
            "rol": ROLE_WIRE[Role(role)],
        }
        data = await self.request("POST", "/usuarios/registro", "Error al crear usuario", json=payload)
        return User.from_wire(data)

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> User:
        if "role" in fields:
            fields = {**fields, "role": ROLE_WIRE[Role(fields["role"])]}
        payload = _map_fields(fields, USER_FIELDS, "user")
        data = await self.request("PUT", f"/usuarios/{user_id}", "Error al actualizar usuario", json=payload)
        return User.from_wire(data)

    async def delete_user(self, user_id: str) -> None:
        await self.request("DELETE", f"/usuarios/{user_id}", "Error al eliminar usuario")
