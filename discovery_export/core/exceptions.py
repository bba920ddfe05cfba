"""
Exception hierarchy for the export engine.

Errors fall into two operational groups: batch failures (query, record and
write errors, which abort one batch kind for one organization) and transfer
failures (which leave the export file on disk and are expected to happen
occasionally).
"""


class ExportError(Exception):
    """Base class for all export errors."""


class ConfigurationError(ExportError):
    """Raised for invalid flags or configuration. Fatal before any organization runs."""


class QueryError(ExportError):
    """Raised when a record set or holdings query fails."""

    def __init__(self, query_name: str, message: str):
        self.query_name = query_name
        self.message = message
        super().__init__(f"[{query_name}] {message}")


class MaterializationError(ExportError):
    """Base class for failures turning a stored record into export bytes."""

    def __init__(self, record_id: int, message: str):
        self.record_id = record_id
        self.message = message
        super().__init__(f"record {record_id}: {message}")


class RecordNotFoundError(MaterializationError):
    """Raised when the record store has no usable row for an identifier."""


class RecordParseError(MaterializationError):
    """Raised when a stored payload cannot be parsed into a MARC record."""


class ExportWriteError(ExportError):
    """Raised when a batch file cannot be completed. The partial file is removed."""

    def __init__(self, file_path: str, record_id: int | None, cause: Exception):
        self.file_path = file_path
        self.record_id = record_id
        self.cause = cause
        where = f" at record {record_id}" if record_id is not None else ""
        super().__init__(f"Failed writing {file_path}{where}: {cause}")


class TransferError(ExportError):
    """Raised inside the uploader when a file cannot be delivered."""
