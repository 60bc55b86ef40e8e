"""Prometheus metrics for settlement tracking."""

from prometheus_client import REGISTRY, Counter, Gauge, Histogram

SETTLEMENT_POLLS = Counter(
    "settlement_polls_total",
    "Total number of settlement status queries",
    ["result"],  # terminal, pending, error
)

SETTLEMENT_WAITS = Counter(
    "settlement_waits_total",
    "Total number of completed settlement waits",
    ["outcome"],  # fulfilled, executed, timed_out, cancelled
)

SETTLEMENT_WAIT_SECONDS = Histogram(
    "settlement_wait_seconds",
    "Time spent waiting for transfers to settle",
    buckets=(0.5, 1, 5, 15, 30, 60, 120, 300, 600),
)

SETTLEMENT_WAITS_IN_FLIGHT = Gauge(
    "settlement_waits_in_flight",
    "Number of settlement waits currently polling",
)


def register_metrics() -> None:
    """Register metrics with Prometheus."""
    metrics = [
        SETTLEMENT_POLLS,
        SETTLEMENT_WAITS,
        SETTLEMENT_WAIT_SECONDS,
        SETTLEMENT_WAITS_IN_FLIGHT,
    ]
    for metric in metrics:
        try:
            REGISTRY.register(metric)
        except ValueError:
            # Metric already registered
            pass


# Register metrics on module import
register_metrics()
