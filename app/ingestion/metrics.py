"""Prometheus metrics for ingestion and retrieval."""

from prometheus_client import REGISTRY, Counter, Histogram

INGESTIONS = Counter(
    "ingestions_total",
    "Total number of ingestion attempts by outcome",
    ["outcome"],  # completed, deduplicated, cancelled, or an error kind
)

INGESTED_BYTES = Counter(
    "ingested_bytes_total",
    "Total payload bytes written to the storage network",
)

INGESTION_DURATION = Histogram(
    "ingestion_duration_seconds",
    "End-to-end ingestion time including the settlement wait",
    buckets=(0.1, 0.5, 1, 5, 15, 30, 60, 120, 300, 600),
)

RETRIEVALS = Counter(
    "retrievals_total",
    "Total number of retrievals by outcome",
    ["outcome"],  # served, or an error kind
)

RECONCILED_RECORDS = Counter(
    "reconciled_records_total",
    "Total number of pending records resolved by reconciliation",
    ["action"],  # marked_failed
)


def register_metrics() -> None:
    """Register metrics with Prometheus."""
    metrics = [
        INGESTIONS,
        INGESTED_BYTES,
        INGESTION_DURATION,
        RETRIEVALS,
        RECONCILED_RECORDS,
    ]
    for metric in metrics:
        try:
            REGISTRY.register(metric)
        except ValueError:
            # Metric already registered
            pass


# Register metrics on module import
register_metrics()
