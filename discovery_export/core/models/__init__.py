"""
Core data models for the catalog discovery export.

Models use Pydantic for runtime validation where values cross a
configuration or database boundary.
"""

from .batch import BatchKind, BatchOutcome, BatchStatus
from .extraction_window import ExtractionWindow, WindowMode
from .holdings_row import HoldingsAnnotationRow
from .organization_profile import OrganizationProfile, TransferConfig
from .record_set import RecordIdentifierSet

__all__ = [
    "BatchKind",
    "BatchOutcome",
    "BatchStatus",
    "ExtractionWindow",
    "WindowMode",
    "HoldingsAnnotationRow",
    "OrganizationProfile",
    "TransferConfig",
    "RecordIdentifierSet",
]
