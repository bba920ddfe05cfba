"""
Holdings enrichment index.

Batch-resolves branch, location and call number data for the records of a
non-delete export so the materializer can build 852 fields without a query
per record.
"""

from typing import Iterable

from psycopg import Error as PsycopgError
from pydantic import ValidationError

from discovery_export.catalog import queries
from discovery_export.catalog.connection import DatabaseConnectionPool
from discovery_export.core.exceptions import QueryError
from discovery_export.core.models import HoldingsAnnotationRow
from discovery_export.observability.logger import get_logger

logger = get_logger(__name__)


def chunked(values: list[int], size: int) -> Iterable[list[int]]:
    for start in range(0, len(values), size):
        yield values[start:start + size]


class HoldingsIndex:
    """
    Mapping of record id to HoldingsAnnotationRow for one export batch.

    Records without in-scope holdings are absent from the index.
    """

    def __init__(self, pool: DatabaseConnectionPool, chunk_size: int = 500):
        """
        Initialize the holdings index.

        Args:
            pool: Open database connection pool
            chunk_size: Record ids bound per holdings query
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.pool = pool
        self.chunk_size = chunk_size
        self._rows: dict[int, HoldingsAnnotationRow] = {}

    def build_index(self, record_ids: Iterable[int], org_unit_ids: Iterable[int]) -> dict[int, HoldingsAnnotationRow]:
        """
        Replace the index with holdings for `record_ids` in `org_unit_ids`.

        Args:
            record_ids: Record ids to resolve
            org_unit_ids: Org units whose copies count

        Returns:
            The new mapping (also kept on the instance)

        Raises:
            QueryError: If a holdings query fails or returns mismatched arrays
        """
        self.clear()
        ids = list(record_ids)
        orgs = list(org_unit_ids)

        rows: dict[int, HoldingsAnnotationRow] = {}
        for chunk in chunked(ids, self.chunk_size):
            try:
                result = self.pool.execute_query(
                    queries.HOLDINGS_BY_RECORD, {"records": chunk, "orgs": orgs}
                )
            except PsycopgError as e:
                raise QueryError("holdings", str(e)) from e

            for row in result:
                try:
                    holdings_row = HoldingsAnnotationRow(**row)
                except ValidationError as e:
                    raise QueryError("holdings", f"Invalid holdings row for record {row.get('record_id')}: {e}") from e
                rows[holdings_row.record_id] = holdings_row

        self._rows = rows
        logger.info(
            f"Built holdings index for {len(rows)} of {len(ids)} records",
            extra={"record_count": len(ids), "indexed_count": len(rows)},
        )
        return rows

    def get(self, record_id: int) -> HoldingsAnnotationRow | None:
        return self._rows.get(record_id)

    def clear(self) -> None:
        self._rows = {}

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._rows
