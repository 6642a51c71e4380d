"""Prometheus exposition of the job state store.

:class:`JobHealthCollector` is a ``prometheus_client`` custom collector:
each scrape takes one store snapshot and renders it, so the output always
reflects the latest complete write for every job.
"""

from __future__ import annotations

import math
from typing import Iterator, Optional

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from prometheus_client.core import GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from build_sentinel.constants import METRIC_PREFIX
from build_sentinel.health.store import JobStateStore
from build_sentinel.telemetry.metrics import PollMetrics


# Rendered for values that do not exist yet (e.g. no successful poll).
NO_DATA = math.nan

__all__ = [
    "CONTENT_TYPE_LATEST",
    "JobHealthCollector",
    "NO_DATA",
    "build_registry",
    "render_latest",
]


class JobHealthCollector(Collector):
    """Render every job's :class:`JobHealth` as gauges labelled by ``job``."""

    def __init__(self, store: JobStateStore) -> None:
        self._store = store

    def collect(self) -> Iterator[Metric]:
        records = self._store.snapshot()

        score = GaugeMetricFamily(
            f"{METRIC_PREFIX}_job_health_score",
            "Success rate over the most recent builds (NaN until first successful poll)",
            labels=["job"],
        )
        sampled = GaugeMetricFamily(
            f"{METRIC_PREFIX}_job_sampled_builds",
            "Number of builds used to compute the health score",
            labels=["job"],
        )
        builds = GaugeMetricFamily(
            f"{METRIC_PREFIX}_job_builds",
            "Number of sampled builds per result",
            labels=["job", "result"],
        )
        poll_ok = GaugeMetricFamily(
            f"{METRIC_PREFIX}_job_last_poll_success",
            "1 if the most recent poll of the job succeeded, else 0",
            labels=["job"],
        )
        poll_time = GaugeMetricFamily(
            f"{METRIC_PREFIX}_job_last_poll_timestamp_seconds",
            "Unix time of the most recent poll attempt",
            labels=["job"],
        )
        latest = GaugeMetricFamily(
            f"{METRIC_PREFIX}_job_latest_build_number",
            "Most recent build number seen",
            labels=["job"],
        )

        for name, h in records.items():
            score.add_metric([name], NO_DATA if h.score is None else h.score)
            sampled.add_metric([name], h.sampled_count)
            for result, count in h.result_counts.items():
                builds.add_metric([name, result.value.lower()], count)
            poll_ok.add_metric([name], 1.0 if h.last_poll_success else 0.0)
            poll_time.add_metric(
                [name],
                NO_DATA if h.last_poll_time is None else h.last_poll_time.timestamp(),
            )
            latest.add_metric(
                [name],
                NO_DATA if h.latest_build_number is None else h.latest_build_number,
            )

        yield score
        yield sampled
        yield builds
        yield poll_ok
        yield poll_time
        yield latest


def build_registry(
    store: JobStateStore,
    poll_metrics: Optional[PollMetrics] = None,
) -> CollectorRegistry:
    """Return a registry exposing *store* (and *poll_metrics*' counters).

    When *poll_metrics* is given its registry is reused, so one scrape
    returns both the job gauges and the poller counters.
    """
    registry = poll_metrics.registry if poll_metrics is not None else CollectorRegistry()
    registry.register(JobHealthCollector(store))
    return registry


def render_latest(registry: CollectorRegistry) -> bytes:
    """Render *registry* in the Prometheus text exposition format."""
    return generate_latest(registry)
