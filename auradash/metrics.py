"""Prometheus counters for sync activity and recovered failures."""

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter("request_count", "Total requests", ["method", "endpoint"])
REQUEST_LATENCY = Histogram(
    "request_latency_seconds", "Request latency", ["endpoint"]
)

SNAPSHOTS_APPLIED = Counter(
    "auradash_snapshots_total", "Snapshots applied to local state", ["stream"]
)
SYNC_ERRORS = Counter(
    "auradash_sync_errors_total", "Recovered sync failures", ["kind"]
)
SEED_WRITES = Counter(
    "auradash_seed_writes_total", "Seed record writes", ["outcome"]
)


def record_error(kind: str) -> None:
    SYNC_ERRORS.labels(kind).inc()
