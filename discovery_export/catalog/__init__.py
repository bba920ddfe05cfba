"""
Catalog database access: connection pool, record set queries, holdings
index and record store.
"""

from .connection import DatabaseConnectionPool
from .holdings import HoldingsIndex
from .record_sets import RecordSetQueryEngine
from .record_store import RecordStore

__all__ = [
    "DatabaseConnectionPool",
    "HoldingsIndex",
    "RecordSetQueryEngine",
    "RecordStore",
]
