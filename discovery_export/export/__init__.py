"""
Record materialization, batch file writing and run orchestration.
"""

from .materializer import RecordMaterializer
from .pipeline import ExportPipeline
from .writer import ExportWriter

__all__ = [
    "ExportPipeline",
    "ExportWriter",
    "RecordMaterializer",
]
