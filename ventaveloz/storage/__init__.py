"""Collaborator interfaces and their implementations."""

from .base import SalesLedger, TableOrderStore
from .inmemory import InMemoryStore
from .rest import RestStore

__all__ = ["SalesLedger", "TableOrderStore", "InMemoryStore", "RestStore"]
