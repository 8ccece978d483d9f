"""
In-memory store for VentaVeloz.

Implements both collaborator interfaces with plain dictionaries. Used by the
stub backend and the tests; behaves like the REST backend for everything the
billing workflow relies on.
"""

from typing import Dict, List, Any, Optional
from uuid import uuid4

from ventaveloz.errors import NotFoundError
from ventaveloz.models import Order, Product, Sale, Table, User
from .base import SalesLedger, TableOrderStore


class InMemoryStore(TableOrderStore, SalesLedger):
    """In-memory storage using dictionaries keyed by id."""

    def __init__(self):
        """Initialize with empty storage."""
        self.tables: Dict[str, Table] = {}
        self.orders: Dict[str, Order] = {}
        self.sales: Dict[str, Sale] = {}
        self.products: Dict[str, Product] = {}
        self.users: Dict[str, User] = {}
        # idempotency key -> sale id
        self._sale_keys: Dict[str, str] = {}

    @staticmethod
    def new_id() -> str:
        return uuid4().hex

    # ---------- seeding helpers ----------

    def add_table(self, table: Table) -> Table:
        self.tables[table.id] = table
        return table

    def add_order(self, order: Order) -> Order:
        self.orders[order.id] = order
        return order

    def add_product(self, product: Product) -> Product:
        self.products[product.id] = product
        return product

    def add_user(self, user: User) -> User:
        self.users[user.id] = user
        return user

    # ---------- TableOrderStore ----------

    async def fetch_table(self, table_id: str) -> Table:
        """Get a table by id."""
        table = self.tables.get(table_id)
        if table is None:
            raise NotFoundError("Mesa no encontrada", status_code=404)
        return table

    async def fetch_orders_for_table(self, table_id: str) -> List[Order]:
        """Get all orders for a table, in insertion order."""
        return [o for o in self.orders.values() if o.table_id == table_id]

    async def update_table(self, table_id: str, fields: Dict[str, Any]) -> Table:
        """Apply a partial update to a table."""
        table = await self.fetch_table(table_id)
        updated = Table.model_validate({**table.model_dump(), **fields})
        if updated.assigned_server_id is None:
            updated = updated.model_copy(update={"assigned_server_name": None})
        self.tables[table_id] = updated
        return updated

    async def delete_order(self, order_id: str) -> None:
        """Delete an order by id."""
        if self.orders.pop(order_id, None) is None:
            raise NotFoundError("Orden no encontrada", status_code=404)

    # ---------- SalesLedger ----------

    async def create_sale(self, sale: Sale, idempotency_key: Optional[str] = None) -> Sale:
        """Record a sale, returning the earlier one for a repeated key."""
        if idempotency_key and idempotency_key in self._sale_keys:
            return self.sales[self._sale_keys[idempotency_key]]
        stored = sale.model_copy(update={"id": self.new_id()})
        self.sales[stored.id] = stored
        if idempotency_key:
            self._sale_keys[idempotency_key] = stored.id
        return stored

    def clear(self) -> None:
        """Clear all state."""
        self.tables.clear()
        self.orders.clear()
        self.sales.clear()
        self.products.clear()
        self.users.clear()
        self._sale_keys.clear()
