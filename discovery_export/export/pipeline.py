"""
Export run orchestration.

Coordinates the flow for each organization, one at a time:
resolve record set -> build holdings index -> materialize and write -> upload

Full windows produce a single "full" batch. Incremental windows produce an
"updates" batch followed by a "deletes" batch. A failed batch is logged and
the run moves on to the next batch kind or organization.
"""

import time
from pathlib import Path
from typing import Iterable, Protocol

from discovery_export.catalog.connection import DatabaseConnectionPool
from discovery_export.catalog.holdings import HoldingsIndex
from discovery_export.catalog.record_sets import RecordSetQueryEngine
from discovery_export.catalog.record_store import RecordStore
from discovery_export.core.exceptions import ExportWriteError, MaterializationError, QueryError, TransferError
from discovery_export.core.models import (
    BatchKind,
    BatchOutcome,
    BatchStatus,
    ExtractionWindow,
    OrganizationProfile,
    TransferConfig,
)
from discovery_export.export.materializer import RecordMaterializer
from discovery_export.export.writer import ExportWriter
from discovery_export.observability import metrics
from discovery_export.observability.logger import (
    CLEANUP_FAILURE,
    TRANSFER_FAILURE,
    get_logger,
    log_operation,
)

logger = get_logger(__name__)


class Uploader(Protocol):
    def upload(self, file_path: Path, kind: BatchKind, transfer: TransferConfig) -> bool: ...


def batch_kinds_for(window: ExtractionWindow) -> list[BatchKind]:
    """Batch kinds a window produces, in processing order."""
    if window.is_full:
        return [BatchKind.FULL]
    return [BatchKind.UPDATES, BatchKind.DELETES]


class ExportPipeline:
    """
    Runs the export for a list of organizations.

    The pool, holdings index and record store are shared across
    organizations. The holdings index is cleared after every batch so a
    deletes batch never sees stale holdings.
    """

    def __init__(
        self,
        pool: DatabaseConnectionPool,
        uploader: Uploader | None = None,
        writer: ExportWriter | None = None,
        holdings_chunk_size: int = 500,
    ):
        """
        Initialize export pipeline.

        Args:
            pool: Open database connection pool
            uploader: Transfers finished files; None keeps files locally
            writer: Batch file writer
            holdings_chunk_size: Record ids bound per holdings query
        """
        self.pool = pool
        self.uploader = uploader
        self.writer = writer or ExportWriter()

        self.query_engine = RecordSetQueryEngine(pool)
        self.holdings_index = HoldingsIndex(pool, chunk_size=holdings_chunk_size)
        self.record_store = RecordStore(pool)

    def run(self, profiles: Iterable[OrganizationProfile], window: ExtractionWindow) -> list[BatchOutcome]:
        """
        Export every organization in order.

        Args:
            profiles: Organizations to process
            window: Extraction window shared by all organizations

        Returns:
            One BatchOutcome per organization and batch kind
        """
        logger.info(f"Starting export run: {window.describe()}", extra={"window": window.describe()})

        outcomes: list[BatchOutcome] = []
        for profile in profiles:
            outcomes.extend(self.process_organization(profile, window))

        failed = [o for o in outcomes if o.status is BatchStatus.FAILED]
        transfer_failed = [o for o in outcomes if o.status is BatchStatus.TRANSFER_FAILED]
        logger.info(
            "Export run complete",
            extra={
                "batches": len(outcomes),
                "failed_batches": len(failed),
                "failed_transfers": len(transfer_failed),
            },
        )
        return outcomes

    def process_organization(self, profile: OrganizationProfile, window: ExtractionWindow) -> list[BatchOutcome]:
        return [self.process_batch(profile, kind, window) for kind in batch_kinds_for(window)]

    def process_batch(self, profile: OrganizationProfile, kind: BatchKind, window: ExtractionWindow) -> BatchOutcome:
        """
        Produce and deliver one batch.

        Query, record and write failures end the batch with status "failed";
        they never propagate to the caller.
        """
        start = time.monotonic()
        fields = {"organization": profile.name, "batch_kind": kind.value}
        outcome = BatchOutcome(organization=profile.name, kind=kind, status=BatchStatus.FAILED)

        try:
            with log_operation(f"{kind.value} export for {profile.name}", logger=logger, **fields):
                outcome = self._produce(profile, kind, window)
        except (QueryError, MaterializationError, ExportWriteError) as e:
            outcome = BatchOutcome(
                organization=profile.name,
                kind=kind,
                status=BatchStatus.FAILED,
                error=str(e),
            )
        finally:
            self.holdings_index.clear()
            metrics.record_batch(
                organization=profile.name,
                batch_kind=kind.value,
                status=outcome.status.value,
                record_count=outcome.record_count,
                duration=time.monotonic() - start,
            )

        return outcome

    def _produce(self, profile: OrganizationProfile, kind: BatchKind, window: ExtractionWindow) -> BatchOutcome:
        record_ids = self.query_engine.resolve(kind, profile.orgs, window)
        if not record_ids:
            logger.info(
                f"No {kind.value} records for {profile.name}",
                extra={"organization": profile.name, "batch_kind": kind.value, "record_count": 0},
            )
            return BatchOutcome(organization=profile.name, kind=kind, status=BatchStatus.EMPTY)

        if kind.is_delete:
            self.holdings_index.clear()
        else:
            self.holdings_index.build_index(record_ids, profile.orgs)

        materializer = RecordMaterializer(self.record_store, profile.agency_code)

        def materialize(record_id: int) -> bytes:
            holdings_row = None if kind.is_delete else self.holdings_index.get(record_id)
            return materializer.materialize(record_id, kind.is_delete, holdings_row)

        file_path = self.writer.write(kind, profile, record_ids, materialize)
        status = self._deliver(profile, kind, file_path)
        return BatchOutcome(
            organization=profile.name,
            kind=kind,
            status=status,
            record_count=len(record_ids),
            file_path=file_path,
        )

    def _deliver(self, profile: OrganizationProfile, kind: BatchKind, file_path: Path) -> BatchStatus:
        """
        Upload a finished file; delete it on success, keep it on failure.

        Neither a transfer error nor a failed local cleanup escapes, so the
        run always moves on to the next batch.
        """
        if self.uploader is None:
            return BatchStatus.WRITTEN

        fields = {"organization": profile.name, "batch_kind": kind.value, "file_path": str(file_path)}

        try:
            uploaded = self.uploader.upload(file_path, kind, profile.transfer)
        except (TransferError, OSError) as e:
            logger.error(f"Transfer of {file_path} failed: {e}", extra={"error_category": TRANSFER_FAILURE, **fields})
            uploaded = False

        if not uploaded:
            metrics.record_transfer_failure(profile.name, kind.value)
            logger.warning(
                f"Keeping {file_path} after failed transfer",
                extra={"error_category": TRANSFER_FAILURE, **fields},
            )
            return BatchStatus.TRANSFER_FAILED

        try:
            file_path.unlink(missing_ok=True)
        except OSError as e:
            # The batch reached its destination; only the local copy is left behind
            logger.warning(
                f"Could not remove uploaded file {file_path}: {e}",
                extra={"error_category": CLEANUP_FAILURE, **fields},
            )
        return BatchStatus.UPLOADED
