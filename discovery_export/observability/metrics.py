"""
Prometheus metrics collection for discovery-export

Counters and histograms for a batch run. The CLI writes them out in
textfile-collector format once the run finishes.
"""
from pathlib import Path

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    write_to_textfile,
)


# Registry for exporter metrics
REGISTRY = CollectorRegistry()


# Records written to batch files
records_exported_total = Counter(
    name="discovery_export_records_exported_total",
    documentation="Total number of records written to export batches",
    labelnames=["organization", "batch_kind"],
    registry=REGISTRY,
)

# Batches by final status
batches_total = Counter(
    name="discovery_export_batches_total",
    documentation="Export batches by final status",
    labelnames=["organization", "batch_kind", "status"],  # status: BatchStatus values
    registry=REGISTRY,
)

# Time spent per batch, query to upload
batch_duration_seconds = Histogram(
    name="discovery_export_batch_duration_seconds",
    documentation="Time spent producing and delivering one export batch",
    labelnames=["organization", "batch_kind"],
    buckets=[1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1800.0, 3600.0],
    registry=REGISTRY,
)

# Transfer failures
transfer_failures_total = Counter(
    name="discovery_export_transfer_failures_total",
    documentation="Total number of failed batch file transfers",
    labelnames=["organization", "batch_kind"],
    registry=REGISTRY,
)


def record_batch(organization: str, batch_kind: str, status: str, record_count: int, duration: float) -> None:
    """
    Record the outcome of one batch

    Args:
        organization: Organization name
        batch_kind: full, updates or deletes
        status: Final batch status
        record_count: Records written to the batch file
        duration: Seconds spent on the batch
    """
    batches_total.labels(organization=organization, batch_kind=batch_kind, status=status).inc()
    batch_duration_seconds.labels(organization=organization, batch_kind=batch_kind).observe(duration)
    if record_count:
        records_exported_total.labels(organization=organization, batch_kind=batch_kind).inc(record_count)


def record_transfer_failure(organization: str, batch_kind: str) -> None:
    transfer_failures_total.labels(organization=organization, batch_kind=batch_kind).inc()


def write_metrics(path: str | Path) -> None:
    """Write all exporter metrics to a Prometheus textfile."""
    write_to_textfile(str(path), REGISTRY)
