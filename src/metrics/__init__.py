"""Prometheus metrics for the tracking core and its upstream adapters."""

from .prometheus_exporter import (
    REGISTRY,
    generate_prometheus_metrics,
    observe_latency,
    record_discarded_speed_sample,
    record_dropped_fix,
    record_error,
    record_stale_directions,
)

__all__ = [
    "REGISTRY",
    "generate_prometheus_metrics",
    "observe_latency",
    "record_discarded_speed_sample",
    "record_dropped_fix",
    "record_error",
    "record_stale_directions",
]
