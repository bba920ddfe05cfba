"""
Export writer.

Streams materialized records into a uniquely named batch file. A batch is
all or nothing: if any record fails, the partial file is removed.
"""

from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable

from discovery_export.core.exceptions import ExportWriteError
from discovery_export.core.models import BatchKind, OrganizationProfile
from discovery_export.observability.logger import get_logger

logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d-%H-%M-%S"


def batch_filename(source_id: str, kind: BatchKind, timestamp: datetime) -> str:
    """<source_id>-catalog-<kind>-<YYYY-MM-DD-HH-MM-SS>.mrc"""
    return f"{source_id}-catalog-{kind.value}-{timestamp.strftime(TIMESTAMP_FORMAT)}.mrc"


class ExportWriter:
    """
    Writes one batch file per call.

    Args:
        clock: Returns the timestamp embedded in file names
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock

    def batch_path(self, kind: BatchKind, profile: OrganizationProfile) -> Path:
        return Path(profile.output_dir) / batch_filename(profile.source_id, kind, self.clock())

    def write(
        self,
        kind: BatchKind,
        profile: OrganizationProfile,
        record_ids: Iterable[int],
        materialize: Callable[[int], bytes],
    ) -> Path:
        """
        Write records in the given order.

        Args:
            kind: Batch kind (names the file)
            profile: Organization whose output directory and source id are used
            record_ids: Ordered record ids
            materialize: Returns the export bytes for one record id

        Returns:
            Path of the closed, flushed batch file

        Raises:
            ExportWriteError: If the file cannot be created or any record fails
        """
        path = self.batch_path(kind, profile)
        record_id = None
        count = 0

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # "x" refuses to clobber a batch written in the same second
            with open(path, "xb") as f:
                for record_id in record_ids:
                    f.write(materialize(record_id))
                    count += 1
                f.flush()
        except FileExistsError as e:
            # The existing file belongs to another batch
            raise ExportWriteError(str(path), record_id, e) from e
        except Exception as e:
            path.unlink(missing_ok=True)
            raise ExportWriteError(str(path), record_id, e) from e

        logger.info(
            f"Wrote {count} records to {path}",
            extra={
                "organization": profile.name,
                "batch_kind": kind.value,
                "record_count": count,
                "file_path": str(path),
            },
        )
        return path
