"""REST-backed implementation of the collaborator interfaces."""

from typing import Dict, List, Any, Optional

from ventaveloz.client import ApiClient
from ventaveloz.models import Order, Sale, Table
from .base import SalesLedger, TableOrderStore


class RestStore(TableOrderStore, SalesLedger):
    """Adapts ApiClient to the store and ledger contracts."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def fetch_table(self, table_id: str) -> Table:
        return await self.api.get_table(table_id)

    async def fetch_orders_for_table(self, table_id: str) -> List[Order]:
        # The backend has no per-table listing; filter the full list.
        orders = await self.api.list_orders()
        return [o for o in orders if o.table_id == table_id]

    async def update_table(self, table_id: str, fields: Dict[str, Any]) -> Table:
        return await self.api.update_table(table_id, fields)

    async def delete_order(self, order_id: str) -> None:
        await self.api.delete_order(order_id)

    async def create_sale(self, sale: Sale, idempotency_key: Optional[str] = None) -> Sale:
        return await self.api.create_sale(sale, idempotency_key=idempotency_key)
