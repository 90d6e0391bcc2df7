"""Entity store access for COMEX Ledger."""

from comex_ledger.store.client import StoreClient
from comex_ledger.store.query import EntityStore, Filter, Query, QueryExecutor

__all__ = [
    "StoreClient",
    "Query",
    "QueryExecutor",
    "EntityStore",
    "Filter",
]
