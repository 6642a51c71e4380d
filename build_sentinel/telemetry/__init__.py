"""Prometheus counters describing the poller's own activity."""

from build_sentinel.telemetry.metrics import PollMetrics

__all__ = [
    "PollMetrics",
]
