"""
In-memory stand-in for the VentaVeloz backend.

Serves the /api endpoints the client uses, on top of InMemoryStore, so the
client and the billing workflow can be exercised end to end without the real
service. Not a production backend: state lives in process memory.

Run locally with: uvicorn ventaveloz.stub_api:app --port 4000
"""

import os
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError as PydanticValidationError

from ventaveloz.errors import NotFoundError
from ventaveloz.models import (
    Order,
    Product,
    Role,
    Sale,
    Table,
    User,
    table_fields_from_wire,
)
from ventaveloz.storage.inmemory import InMemoryStore

SECRET_KEY = os.getenv("VENTAVELOZ_STUB_SECRET", "dev-secret-key")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "480"))

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a plain text password."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token for user_id."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode({"sub": user_id, "exp": expire}, SECRET_KEY, algorithm=ALGORITHM)


def _parse(model, data: Dict[str, Any]):
    """Build a domain model from a request body, answering 400 on bad input."""
    try:
        return model.from_wire(data)
    except (KeyError, ValueError, TypeError, PydanticValidationError) as e:
        raise HTTPException(status_code=400, detail=f"Datos inválidos: {e}")


def _parse_day(value: str, field: str) -> date:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Fecha inválida: {field}")


def create_app(store: Optional[InMemoryStore] = None) -> FastAPI:
    """Build a stub backend over store (a fresh InMemoryStore by default)."""
    app = FastAPI(title="VentaVeloz stub backend")
    app.state.store = store if store is not None else InMemoryStore()
    # user id -> password hash
    app.state.passwords = {}

    @app.exception_handler(HTTPException)
    async def _mensaje_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"mensaje": exc.detail})

    def get_store(request: Request) -> InMemoryStore:
        return request.app.state.store

    def get_current_user(
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    ) -> User:
        if credentials is None:
            raise HTTPException(status_code=401, detail="No autorizado, token faltante")
        try:
            payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[ALGORITHM])
        except JWTError:
            raise HTTPException(status_code=401, detail="No autorizado, token inválido")
        user = request.app.state.store.users.get(payload.get("sub"))
        if user is None:
            raise HTTPException(status_code=401, detail="No autorizado, usuario no existe")
        return user

    def require_admin(user: User = Depends(get_current_user)) -> User:
        if user.role != Role.ADMIN:
            raise HTTPException(status_code=403, detail="Acceso denegado. Solo administradores")
        return user

    def table_out(table: Table, store: InMemoryStore) -> Dict[str, Any]:
        data = table.to_wire()
        server = store.users.get(table.assigned_server_id) if table.assigned_server_id else None
        if server is not None:
            data["meseroAsignado"] = {"_id": server.id, "nombre": server.name}
        return data

    def session_out(user: User) -> Dict[str, Any]:
        return {**user.to_wire(), "token": create_access_token(user.id)}

    # ---------- usuarios ----------

    @app.post("/api/usuarios/registro", status_code=201)
    async def register(body: Dict[str, Any], store: InMemoryStore = Depends(get_store)):
        password = body.get("contrasena")
        if not body.get("correo") or not password:
            raise HTTPException(status_code=400, detail="Correo y contraseña son obligatorios")
        if any(u.email == body["correo"] for u in store.users.values()):
            raise HTTPException(status_code=400, detail="El usuario ya existe")
        user = _parse(User, {**body, "_id": store.new_id()})
        store.add_user(user)
        app.state.passwords[user.id] = hash_password(password)
        return session_out(user)

    @app.post("/api/usuarios/login")
    async def login(body: Dict[str, Any], store: InMemoryStore = Depends(get_store)):
        user = next((u for u in store.users.values() if u.email == body.get("correo")), None)
        hashed = app.state.passwords.get(user.id) if user is not None else None
        if hashed is None or not verify_password(body.get("contrasena") or "", hashed):
            raise HTTPException(status_code=401, detail="Credenciales inválidas")
        return session_out(user)

    @app.get("/api/usuarios/perfil")
    async def profile(user: User = Depends(get_current_user)):
        return user.to_wire()

    @app.get("/api/usuarios")
    async def list_users(store: InMemoryStore = Depends(get_store), admin: User = Depends(require_admin)):
        return [u.to_wire() for u in store.users.values()]

    @app.get("/api/usuarios/{user_id}")
    async def get_user(user_id: str, store: InMemoryStore = Depends(get_store),
                       user: User = Depends(get_current_user)):
        if user_id not in store.users:
            raise HTTPException(status_code=404, detail="Usuario no encontrado")
        return store.users[user_id].to_wire()

    @app.put("/api/usuarios/{user_id}")
    async def update_user(user_id: str, body: Dict[str, Any], store: InMemoryStore = Depends(get_store),
                          admin: User = Depends(require_admin)):
        if user_id not in store.users:
            raise HTTPException(status_code=404, detail="Usuario no encontrado")
        password = body.pop("contrasena", None)
        updated = _parse(User, {**store.users[user_id].to_wire(), **body})
        store.add_user(updated)
        if password:
            app.state.passwords[user_id] = hash_password(password)
        return updated.to_wire()

    @app.delete("/api/usuarios/{user_id}")
    async def delete_user(user_id: str, store: InMemoryStore = Depends(get_store),
                          admin: User = Depends(require_admin)):
        if store.users.pop(user_id, None) is None:
            raise HTTPException(status_code=404, detail="Usuario no encontrado")
        app.state.passwords.pop(user_id, None)
        return {"mensaje": "Usuario eliminado"}

    # ---------- mesas ----------

    @app.get("/api/mesas")
    async def list_tables(store: InMemoryStore = Depends(get_store), user: User = Depends(get_current_user)):
        return [table_out(t, store) for t in sorted(store.tables.values(), key=lambda t: t.number)]

    @app.get("/api/mesas/{table_id}")
    async def get_table(table_id: str, store: InMemoryStore = Depends(get_store),
                        user: User = Depends(get_current_user)):
        try:
            return table_out(await store.fetch_table(table_id), store)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=e.message)

    @app.post("/api/mesas", status_code=201)
    async def create_table(body: Dict[str, Any], store: InMemoryStore = Depends(get_store),
                           admin: User = Depends(require_admin)):
        table = _parse(Table, {**body, "_id": store.new_id()})
        if any(t.number == table.number for t in store.tables.values()):
            raise HTTPException(status_code=400, detail="Ya existe una mesa con ese número")
        return table_out(store.add_table(table), store)

    @app.put("/api/mesas/{table_id}")
    async def update_table(table_id: str, body: Dict[str, Any], store: InMemoryStore = Depends(get_store),
                           user: User = Depends(get_current_user)):
        try:
            fields = table_fields_from_wire(body)
            table = await store.update_table(table_id, fields)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=e.message)
        except (ValueError, PydanticValidationError) as e:
            raise HTTPException(status_code=400, detail=f"Datos inválidos: {e}")
        return table_out(table, store)

    @app.delete("/api/mesas/{table_id}")
    async def delete_table(table_id: str, store: InMemoryStore = Depends(get_store),
                           admin: User = Depends(require_admin)):
        if store.tables.pop(table_id, None) is None:
            raise HTTPException(status_code=404, detail="Mesa no encontrada")
        return {"mensaje": "Mesa eliminada"}

    # ---------- ordenes ----------

    @app.get("/api/ordenes")
    async def list_orders(store: InMemoryStore = Depends(get_store), user: User = Depends(get_current_user)):
        return [o.to_wire() for o in store.orders.values()]

    @app.get("/api/ordenes/{order_id}")
    async def get_order(order_id: str, store: InMemoryStore = Depends(get_store),
                        user: User = Depends(get_current_user)):
        if order_id not in store.orders:
            raise HTTPException(status_code=404, detail="Orden no encontrada")
        return store.orders[order_id].to_wire()

    @app.post("/api/ordenes", status_code=201)
    async def create_order(body: Dict[str, Any], store: InMemoryStore = Depends(get_store),
                           user: User = Depends(get_current_user)):
        data = {"mesero": user.id, **body, "_id": store.new_id()}
        data.setdefault("fecha", datetime.now(timezone.utc).isoformat())
        order = _parse(Order, data)
        if order.table_id not in store.tables:
            raise HTTPException(status_code=404, detail="Mesa no encontrada")
        if not order.line_items:
            raise HTTPException(status_code=400, detail="La orden debe tener al menos un producto")
        return store.add_order(order).to_wire()

    @app.put("/api/ordenes/{order_id}")
    async def update_order(order_id: str, body: Dict[str, Any], store: InMemoryStore = Depends(get_store),
                           user: User = Depends(get_current_user)):
        if order_id not in store.orders:
            raise HTTPException(status_code=404, detail="Orden no encontrada")
        updated = _parse(Order, {**store.orders[order_id].to_wire(), **body, "_id": order_id})
        return store.add_order(updated).to_wire()

    @app.delete("/api/ordenes/{order_id}")
    async def delete_order(order_id: str, store: InMemoryStore = Depends(get_store),
                           user: User = Depends(get_current_user)):
        try:
            await store.delete_order(order_id)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=e.message)
        return {"mensaje": "Orden eliminada"}

    # ---------- productos ----------

    @app.get("/api/productos")
    async def list_products(store: InMemoryStore = Depends(get_store), user: User = Depends(get_current_user)):
        return [p.to_wire() for p in store.products.values()]

    @app.get("/api/productos/{product_id}")
    async def get_product(product_id: str, store: InMemoryStore = Depends(get_store),
                          user: User = Depends(get_current_user)):
        if product_id not in store.products:
            raise HTTPException(status_code=404, detail="Producto no encontrado")
        return store.products[product_id].to_wire()

    @app.post("/api/productos", status_code=201)
    async def create_product(body: Dict[str, Any], store: InMemoryStore = Depends(get_store),
                             admin: User = Depends(require_admin)):
        product = _parse(Product, {**body, "_id": store.new_id()})
        return store.add_product(product).to_wire()

    @app.put("/api/productos/{product_id}")
    async def update_product(product_id: str, body: Dict[str, Any], store: InMemoryStore = Depends(get_store),
                             admin: User = Depends(require_admin)):
        if product_id not in store.products:
            raise HTTPException(status_code=404, detail="Producto no encontrado")
        updated = _parse(Product, {**store.products[product_id].to_wire(), **body, "_id": product_id})
        return store.add_product(updated).to_wire()

    @app.delete("/api/productos/{product_id}")
    async def delete_product(product_id: str, store: InMemoryStore = Depends(get_store),
                             admin: User = Depends(require_admin)):
        if store.products.pop(product_id, None) is None:
            raise HTTPException(status_code=404, detail="Producto no encontrado")
        return {"mensaje": "Producto eliminado"}

    # ---------- ventas ----------

    @app.post("/api/ventas", status_code=201)
    async def create_sale(body: Dict[str, Any], request: Request, store: InMemoryStore = Depends(get_store),
                          user: User = Depends(get_current_user)):
        body = {k: v for k, v in body.items() if k not in ("_id", "id")}
        body.setdefault("fecha", datetime.now(timezone.utc).isoformat())
        sale = _parse(Sale, body)
        recorded = await store.create_sale(sale, idempotency_key=request.headers.get("Idempotency-Key"))
        return recorded.to_wire()

    @app.get("/api/ventas")
    async def list_sales(store: InMemoryStore = Depends(get_store), admin: User = Depends(require_admin)):
        return [s.to_wire() for s in store.sales.values()]

    @app.get("/api/ventas/fecha")
    async def list_sales_by_date(fechaInicio: str, fechaFin: str, store: InMemoryStore = Depends(get_store),
                                 admin: User = Depends(require_admin)):
        start = _parse_day(fechaInicio, "fechaInicio")
        end = _parse_day(fechaFin, "fechaFin")
        return [
            s.to_wire() for s in store.sales.values()
            if start <= s.timestamp.date() <= end
        ]

    @app.get("/api/ventas/estadisticas")
    async def sales_statistics(fecha: Optional[str] = None, store: InMemoryStore = Depends(get_store),
                               admin: User = Depends(require_admin)):
        day = _parse_day(fecha, "fecha") if fecha else datetime.now(timezone.utc).date()
        sales = [s for s in store.sales.values() if s.timestamp.date() == day]
        total = sum((s.total for s in sales), Decimal("0"))
        by_method: Dict[str, float] = {}
        for sale in sales:
            key = sale.to_wire()["metodoPago"]
            by_method[key] = by_method.get(key, 0.0) + float(sale.total)
        return {
            "fecha": day.isoformat(),
            "totalVentas": float(total),
            "cantidadVentas": len(sales),
            "promedioVenta": float(total / len(sales)) if sales else 0.0,
            "porMetodoPago": by_method,
        }

    @app.get("/api/ventas/{sale_id}")
    async def get_sale(sale_id: str, store: InMemoryStore = Depends(get_store),
                       user: User = Depends(get_current_user)):
        if sale_id not in store.sales:
            raise HTTPException(status_code=404, detail="Venta no encontrada")
        return store.sales[sale_id].to_wire()

    return app


def seed_user(app: FastAPI, name: str, email: str, password: str, role: Role = Role.WAITER) -> User:
    """Create a user directly in the stub's store (bootstrap/tests)."""
    store: InMemoryStore = app.state.store
    user = store.add_user(User(id=store.new_id(), name=name, email=email, role=role))
    app.state.passwords[user.id] = hash_password(password)
    return user


app = create_app()
