"""
Abstract collaborator interfaces used by the billing workflow.

Defines the contract for the table/order store and the sales ledger.
Implementations can talk to the REST backend, keep everything in memory,
or wrap any other backend.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Any, Optional

from ventaveloz.models import Order, Sale, Table


class TableOrderStore(ABC):
    """CRUD for tables and orders."""

    @abstractmethod
    async def fetch_table(self, table_id: str) -> Table:
        """
        Get a table by id.

        Raises NotFoundError if the table does not exist.
        """
        ...

    @abstractmethod
    async def fetch_orders_for_table(self, table_id: str) -> List[Order]:
        """
        Get all orders for a table.

        Returns all orders including cancelled ones; empty list if none.
        """
        ...

    @abstractmethod
    async def update_table(self, table_id: str, fields: Dict[str, Any]) -> Table:
        """
        Apply a partial update to a table and return the stored result.

        Keys are Table field names (status, assigned_server_id, ...).
        """
        ...

    @abstractmethod
    async def delete_order(self, order_id: str) -> None:
        """Delete an order. Raises NotFoundError if it does not exist."""
        ...


class SalesLedger(ABC):
    """Permanent record of sales."""

    @abstractmethod
    async def create_sale(self, sale: Sale, idempotency_key: Optional[str] = None) -> Sale:
        """
        Persist a sale and return it with its server-assigned id.

        Implementations that honour idempotency_key return the sale created
        earlier with the same key instead of recording a second one.
        """
        ...
