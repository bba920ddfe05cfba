"""
Record store: keyed lookup of stored bibliographic record payloads.
"""

from psycopg import Error as PsycopgError

from discovery_export.catalog import queries
from discovery_export.catalog.connection import DatabaseConnectionPool
from discovery_export.core.exceptions import QueryError, RecordNotFoundError


class RecordStore:
    """Fetches the stored MARC payload (MARCXML or ISO 2709) for a record id."""

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def fetch(self, record_id: int) -> str | bytes:
        """
        Fetch one stored payload.

        Raises:
            RecordNotFoundError: If no row exists or the row has no payload
            QueryError: If the lookup itself fails
        """
        try:
            rows = self.pool.execute_query(queries.RECORD_PAYLOAD, {"id": record_id})
        except PsycopgError as e:
            raise QueryError("record_payload", str(e)) from e

        if not rows or not rows[0].get("marc"):
            raise RecordNotFoundError(record_id, "no stored record")
        return rows[0]["marc"]
