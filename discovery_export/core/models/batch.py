"""
Batch kinds and per-batch outcome models.
"""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel


class BatchKind(str, Enum):
    """One of the three export flavours. Determines query, annotation and destination."""

    FULL = "full"
    UPDATES = "updates"
    DELETES = "deletes"

    @property
    def is_delete(self) -> bool:
        return self is BatchKind.DELETES

    @property
    def destination(self) -> str:
        """Remote directory the batch is delivered to."""
        return self.value


class BatchStatus(str, Enum):
    EMPTY = "empty"
    WRITTEN = "written"
    UPLOADED = "uploaded"
    TRANSFER_FAILED = "transfer_failed"
    FAILED = "failed"


class BatchOutcome(BaseModel):
    """Result of one batch kind for one organization, reported at the end of a run."""

    organization: str
    kind: BatchKind
    status: BatchStatus
    record_count: int = 0
    file_path: Path | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status in (BatchStatus.EMPTY, BatchStatus.WRITTEN, BatchStatus.UPLOADED)
