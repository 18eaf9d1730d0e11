"""
Prometheus metrics collection for the ledger pipeline

This module provides counters and timings for ingestion, normalization
and reconciliation runs.
"""
import os
from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
)
from typing import Optional


# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# INGESTION METRICS
# =======================

ingested_rows_total = Counter(
    name="ledger_ingested_rows_total",
    documentation="Rows staged from uploaded files",
    labelnames=["record_type", "status"],  # status: accepted, rejected
    registry=REGISTRY,
)

batches_ingested_total = Counter(
    name="ledger_batches_ingested_total",
    documentation="Uploaded files by outcome",
    labelnames=["record_type", "status"],  # status: staged, rejected, failed
    registry=REGISTRY,
)

schema_rejections_total = Counter(
    name="ledger_schema_rejections_total",
    documentation="Files rejected because a critical column was missing",
    labelnames=["record_type"],
    registry=REGISTRY,
)

schema_warnings_total = Counter(
    name="ledger_schema_warnings_total",
    documentation="Non-fatal schema drift findings (unknown or optional columns)",
    labelnames=["record_type"],
    registry=REGISTRY,
)

# =======================
# NORMALIZATION METRICS
# =======================

# Step counters mirror the read/write/skip accounting of a chunked job
normalization_rows_read_total = Counter(
    name="ledger_normalization_rows_read_total",
    documentation="Raw rows read by normalization runs",
    labelnames=["record_type"],
    registry=REGISTRY,
)

normalization_rows_written_total = Counter(
    name="ledger_normalization_rows_written_total",
    documentation="Normalized records written",
    labelnames=["record_type"],
    registry=REGISTRY,
)

normalization_rows_skipped_total = Counter(
    name="ledger_normalization_rows_skipped_total",
    documentation="Raw rows skipped as unprocessable",
    labelnames=["record_type"],
    registry=REGISTRY,
)

normalization_row_errors_total = Counter(
    name="ledger_normalization_row_errors_total",
    documentation="Row writes that failed and counted against the skip limit",
    labelnames=["record_type"],
    registry=REGISTRY,
)

value_fallbacks_total = Counter(
    name="ledger_value_fallbacks_total",
    documentation="Unparseable values replaced by a default",
    labelnames=["record_type"],
    registry=REGISTRY,
)

sku_placeholders_total = Counter(
    name="ledger_sku_placeholders_total",
    documentation="Placeholder SKUs generated for unresolvable rows",
    labelnames=["reason"],  # reason: blank_supplier_sku, no_mapping
    registry=REGISTRY,
)

normalization_runs_total = Counter(
    name="ledger_normalization_runs_total",
    documentation="Normalization runs by outcome",
    labelnames=["record_type", "status"],  # status: completed, empty, aborted
    registry=REGISTRY,
)

normalization_duration_seconds = Histogram(
    name="ledger_normalization_duration_seconds",
    documentation="Duration of normalization runs in seconds",
    labelnames=["record_type"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
    registry=REGISTRY,
)

# =======================
# RECONCILIATION METRICS
# =======================

reconciliation_duration_seconds = Histogram(
    name="ledger_reconciliation_duration_seconds",
    documentation="Duration of merged table rebuilds in seconds",
    labelnames=["status"],  # status: success, error
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
    registry=REGISTRY,
)

merged_records = Gauge(
    name="ledger_merged_records",
    documentation="Rows in the merged table after the last rebuild",
    labelnames=["status_source"],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Content type of generate_metrics() output"""
    return CONTENT_TYPE_LATEST


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    # Imported lazily so importing metrics never binds a port
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(normalization_duration_seconds, record_type="ORDERS"):
            ...
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        self.timer = self.histogram.labels(**self.labels).time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if value:
        counter.labels(**labels).inc(value)


def set_gauge(gauge: Gauge, value: float, **labels) -> None:
    """Set a gauge metric value"""
    gauge.labels(**labels).set(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    """Observe a value in a histogram metric"""
    histogram.labels(**labels).observe(value)


# =======================
# PIPELINE HELPERS
# =======================

def record_ingestion(record_type: str, accepted: int, rejected: int, warnings: int) -> None:
    """
    Record the outcome of a staged upload.

    Args:
        record_type: ORDERS or PAYMENTS
        accepted: Rows staged
        rejected: Rows whose staging failed
        warnings: Schema warnings raised by the upload
    """
    increment_counter(ingested_rows_total, accepted, record_type=record_type, status="accepted")
    increment_counter(ingested_rows_total, rejected, record_type=record_type, status="rejected")
    increment_counter(schema_warnings_total, warnings, record_type=record_type)
    increment_counter(batches_ingested_total, 1, record_type=record_type, status="staged")


def record_step_counts(record_type: str, read: int, written: int, skipped: int, errors: int) -> None:
    """
    Record the read/write/skip counters of a normalization step.

    Args:
        record_type: ORDERS or PAYMENTS
        read: Raw rows read
        written: Normalized records written
        skipped: Rows skipped as unprocessable
        errors: Rows whose write failed
    """
    increment_counter(normalization_rows_read_total, read, record_type=record_type)
    increment_counter(normalization_rows_written_total, written, record_type=record_type)
    increment_counter(normalization_rows_skipped_total, skipped, record_type=record_type)
    increment_counter(normalization_row_errors_total, errors, record_type=record_type)


def record_merged_breakdown(source_breakdown: dict[str, int]) -> None:
    """Publish merged row counts per status source after a rebuild."""
    for source in ("ORDER_FILE", "PAYMENT_FILE", "MERGED"):
        set_gauge(merged_records, source_breakdown.get(source, 0), status_source=source)
