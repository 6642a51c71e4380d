"""Poll counters - cycles, upstream requests, errors and skipped ticks.

Wraps ``prometheus_client`` counters bound to an explicit
:class:`~prometheus_client.CollectorRegistry` so that several instances
(tests, one-shot polls) never collide on the global default registry.
"""

from __future__ import annotations

from typing import Optional

from prometheus_client import CollectorRegistry, Counter

from build_sentinel.constants import METRIC_PREFIX


class PollMetrics:
    """Counters updated by the poll scheduler.

    Parameters
    ----------
    registry:
        Registry to register the counters with. A private one is created
        when omitted.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self._cycles = Counter(
            f"{METRIC_PREFIX}_poll_cycles",
            "Number of poll cycles started",
            registry=self.registry,
        )
        self._requests = Counter(
            f"{METRIC_PREFIX}_upstream_requests",
            "Number of build-history requests sent to the upstream service",
            ["job"],
            registry=self.registry,
        )
        self._request_errors = Counter(
            f"{METRIC_PREFIX}_upstream_request_errors",
            "Number of build-history requests that ended in error",
            ["job"],
            registry=self.registry,
        )
        self._skipped = Counter(
            f"{METRIC_PREFIX}_poll_skipped",
            "Number of ticks skipped because the job's previous poll was still running",
            ["job"],
            registry=self.registry,
        )

    def record_cycle(self) -> None:
        self._cycles.inc()

    def record_request(self, job_name: str, *, success: bool) -> None:
        """Record one finished upstream request for *job_name*."""
        self._requests.labels(job=job_name).inc()
        if not success:
            self._request_errors.labels(job=job_name).inc()

    def record_skip(self, job_name: str) -> None:
        self._skipped.labels(job=job_name).inc()
