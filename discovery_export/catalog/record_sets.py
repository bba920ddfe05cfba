"""
Record set query engine.

Resolves the base, changed and deleted record id sets for an organization's
org units. Each set is deduplicated and returned in ascending order.
"""

from typing import Iterable

from psycopg import Error as PsycopgError

from discovery_export.catalog import queries
from discovery_export.catalog.connection import DatabaseConnectionPool
from discovery_export.core.exceptions import QueryError
from discovery_export.core.models import BatchKind, ExtractionWindow, RecordIdentifierSet
from discovery_export.observability.logger import get_logger

logger = get_logger(__name__)


class RecordSetQueryEngine:
    """
    Runs the three record set queries against the catalog.

    The rolling and explicit window variants are separate SQL statements;
    the window decides which one runs.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Initialize the query engine.

        Args:
            pool: Open database connection pool
        """
        self.pool = pool

    def resolve_base_set(self, org_unit_ids: Iterable[int]) -> RecordIdentifierSet:
        """All records with at least one qualifying holding in scope."""
        return self._run("base_set", queries.BASE_SET, {"orgs": list(org_unit_ids)})

    def resolve_changed_set(self, org_unit_ids: Iterable[int], window: ExtractionWindow) -> RecordIdentifierSet:
        """Records with a qualifying holding created or activated within the window."""
        self._require_incremental(window, "changed_set")
        sql = queries.CHANGED_SET_EXPLICIT if window.explicit else queries.CHANGED_SET_ROLLING
        return self._run("changed_set", sql, {"orgs": list(org_unit_ids), "since": window.since})

    def resolve_deleted_set(self, org_unit_ids: Iterable[int], window: ExtractionWindow) -> RecordIdentifierSet:
        """Records that lost their last qualifying holding within the window."""
        self._require_incremental(window, "deleted_set")
        sql = queries.DELETED_SET_EXPLICIT if window.explicit else queries.DELETED_SET_ROLLING
        return self._run("deleted_set", sql, {"orgs": list(org_unit_ids), "since": window.since})

    def resolve(self, kind: BatchKind, org_unit_ids: Iterable[int], window: ExtractionWindow) -> RecordIdentifierSet:
        """Resolve the record set a batch kind exports."""
        if kind is BatchKind.FULL:
            return self.resolve_base_set(org_unit_ids)
        if kind is BatchKind.UPDATES:
            return self.resolve_changed_set(org_unit_ids, window)
        return self.resolve_deleted_set(org_unit_ids, window)

    @staticmethod
    def _require_incremental(window: ExtractionWindow, query_name: str) -> None:
        if window.is_full:
            raise QueryError(query_name, "an incremental window is required")

    def _run(self, query_name: str, sql: str, params: dict) -> RecordIdentifierSet:
        try:
            rows = self.pool.execute_query(sql, params)
        except PsycopgError as e:
            raise QueryError(query_name, str(e)) from e

        record_set = RecordIdentifierSet.from_rows(rows)
        logger.debug(
            f"Resolved {query_name}: {len(record_set)} records",
            extra={"query": query_name, "record_count": len(record_set)},
        )
        return record_set
