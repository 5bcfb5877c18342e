"""Prometheus metrics exporter for the ride tracking service.

Upstream calls (OSRM, SMS, Redis) record latency histograms and error
counters; the tracking session counts the fixes and samples it throws away.
"""

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

# Separate registry to avoid default Python process metrics
REGISTRY = CollectorRegistry()

# --- Counters ---

tracking_errors_total = Counter(
    "tracking_errors_total",
    "Total upstream errors by component and type",
    ["component", "error_type"],
    registry=REGISTRY,
)

tracking_fixes_dropped_total = Counter(
    "tracking_fixes_dropped_total",
    "GPS fixes ignored by a tracking session, by reason",
    ["reason"],
    registry=REGISTRY,
)

tracking_speed_samples_discarded_total = Counter(
    "tracking_speed_samples_discarded_total",
    "Instantaneous speeds outside the plausible range",
    registry=REGISTRY,
)

tracking_directions_stale_total = Counter(
    "tracking_directions_stale_total",
    "Directions responses dropped because a newer request was issued",
    registry=REGISTRY,
)

# --- Histograms (latency distributions) ---

OSRM_LATENCY_BUCKETS = (0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, float("inf"))
SMS_LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf"))
REDIS_LATENCY_BUCKETS = (0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, float("inf"))

_latency_histograms = {
    "osrm": Histogram(
        "tracking_osrm_latency_seconds",
        "OSRM directions request latency in seconds",
        buckets=OSRM_LATENCY_BUCKETS,
        registry=REGISTRY,
    ),
    "sms": Histogram(
        "tracking_sms_latency_seconds",
        "SMS API request latency in seconds",
        buckets=SMS_LATENCY_BUCKETS,
        registry=REGISTRY,
    ),
    "redis": Histogram(
        "tracking_redis_latency_seconds",
        "Redis publish latency in seconds",
        buckets=REDIS_LATENCY_BUCKETS,
        registry=REGISTRY,
    ),
}


def observe_latency(component: str, latency_ms: float) -> None:
    """Observe a latency sample; ``component`` is one of "osrm", "sms", "redis"."""
    histogram = _latency_histograms.get(component)
    if histogram is not None:
        histogram.observe(latency_ms / 1000.0)


def record_error(component: str, error_type: str) -> None:
    tracking_errors_total.labels(component=component, error_type=error_type).inc()


def record_dropped_fix(reason: str) -> None:
    tracking_fixes_dropped_total.labels(reason=reason).inc()


def record_discarded_speed_sample() -> None:
    tracking_speed_samples_discarded_total.inc()


def record_stale_directions() -> None:
    tracking_directions_stale_total.inc()


def generate_prometheus_metrics() -> bytes:
    """Prometheus text format for the service registry."""
    result: bytes = generate_latest(REGISTRY)
    return result
