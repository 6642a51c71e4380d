"""Periodic poller that keeps the job state store up to date.

Runs an asyncio background task that ticks at a fixed rate. On every tick
each configured job gets its own unit of work (fetch, aggregate, publish),
so a slow or failing job never holds up the others.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Optional

from build_sentinel.constants import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_WINDOW_SIZE,
)
from build_sentinel.errors import FetchError
from build_sentinel.health.aggregator import compute_health, tally_results
from build_sentinel.health.store import JobHealth, JobStateStore
from build_sentinel.telemetry.metrics import PollMetrics

logger = logging.getLogger(__name__)


class PollPhase(Enum):
    """Where a job is in its poll cycle."""

    IDLE = "idle"
    FETCHING = "fetching"
    AGGREGATING = "aggregating"
    PUBLISHED = "published"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PollScheduler:
    """Background poll scheduler.

    At most one poll per job is in flight at any time: when a tick arrives
    while a job's previous poll is still running, that job skips the tick.

    Parameters
    ----------
    client:
        Anything with an async ``fetch_recent_builds(job, window, timeout)``
        (normally a :class:`~build_sentinel.upstream.JenkinsClient`).
    store:
        The :class:`JobStateStore` to publish into. Its job list is the set
        of jobs that get polled.
    window_size:
        How many of the most recent builds to look at (default 10).
    interval:
        Seconds between ticks (default 600).
    timeout:
        Per-request timeout in seconds (default 30).
    metrics:
        Optional :class:`PollMetrics` to record activity into.
    clock:
        Returns the current time; defaults to ``datetime.now(timezone.utc)``.
    """

    def __init__(
        self,
        client: Any,
        store: JobStateStore,
        *,
        window_size: int = DEFAULT_WINDOW_SIZE,
        interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        metrics: Optional[PollMetrics] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client = client
        self._store = store
        self._window_size = window_size
        self._interval = interval
        self._timeout = timeout
        self._metrics = metrics
        self._clock = clock

        self._phases: Dict[str, PollPhase] = {name: PollPhase.IDLE for name in store.job_names}
        self._inflight: Dict[str, asyncio.Task[JobHealth]] = {}
        self._task: Optional[asyncio.Task[None]] = None
        self._stopped = asyncio.Event()

    # ── Public API ───────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Launch the background loop. The first tick fires immediately."""
        if self.running:
            logger.warning("Poll scheduler already running.")
            return
        self._stopped.clear()
        self._task = asyncio.create_task(self._run(), name="poll-scheduler")
        logger.info(
            "Poll scheduler started (%d job(s), interval=%.0fs, window=%d, timeout=%.0fs)",
            len(self._store),
            self._interval,
            self._window_size,
            self._timeout,
        )

    async def stop(self) -> None:
        """Signal the loop to stop and abandon in-flight polls."""
        self._stopped.set()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        pending = [t for t in self._inflight.values() if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._inflight.clear()
        logger.info("Poll scheduler stopped.")

    async def run_once(self) -> Dict[str, JobHealth]:
        """Run a single cycle over all jobs and wait for it to finish.

        Returns the store snapshot taken afterwards.
        """
        tasks = self._tick()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        return self._store.snapshot()

    def phase(self, job_name: str) -> PollPhase:
        """Current cycle phase of *job_name*."""
        self._store.get(job_name)  # raises UnknownJobError
        return self._phases[job_name]

    # ── Background loop ─────────────────────────────────────────────────

    async def _run(self) -> None:
        """Tick every ``interval`` seconds until stopped."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while not self._stopped.is_set():
            self._tick()
            next_tick += self._interval
            now = loop.time()
            if next_tick < now:
                # Fell behind (suspended process, stalled loop): don't burst.
                next_tick = now
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=next_tick - now)
                break  # stopped was set
            except asyncio.TimeoutError:
                pass  # interval elapsed, tick again

    def _tick(self) -> List[asyncio.Task[JobHealth]]:
        """Start a poll for every job that is not already being polled."""
        if self._metrics is not None:
            self._metrics.record_cycle()

        started: List[asyncio.Task[JobHealth]] = []
        for name in self._store.job_names:
            previous = self._inflight.get(name)
            if previous is not None and not previous.done():
                logger.warning("[%s] Previous poll still running; skipping this tick.", name)
                if self._metrics is not None:
                    self._metrics.record_skip(name)
                continue
            task = asyncio.create_task(self.poll_job(name), name=f"poll-{name}")
            task.add_done_callback(lambda _t, job=name: self._set_idle(job))
            self._inflight[name] = task
            started.append(task)
        return started

    def _set_idle(self, job_name: str) -> None:
        # PUBLISHED -> IDLE once the scheduled unit of work has finished
        self._phases[job_name] = PollPhase.IDLE

    # ── One unit of work ────────────────────────────────────────────────

    async def poll_job(self, job_name: str) -> JobHealth:
        """Fetch, aggregate and publish one job. Never raises except on cancel."""
        self._phases[job_name] = PollPhase.FETCHING
        try:
            outcomes = await self._client.fetch_recent_builds(
                job_name, self._window_size, self._timeout
            )
        except asyncio.CancelledError:
            self._phases[job_name] = PollPhase.IDLE
            raise
        except FetchError as exc:
            logger.warning("[%s] %s", job_name, exc)
            health = self._failed(job_name, exc.cause)
        except Exception as exc:
            logger.exception("[%s] Unexpected error while polling", job_name)
            health = self._failed(job_name, f"{type(exc).__name__}: {exc}")
        else:
            self._phases[job_name] = PollPhase.AGGREGATING
            outcomes = outcomes[: self._window_size]
            score, sampled = compute_health(outcomes)
            health = JobHealth(
                job_name=job_name,
                score=score,
                sampled_count=sampled,
                result_counts=MappingProxyType(tally_results(outcomes)),
                last_poll_success=True,
                last_poll_time=self._clock(),
                last_error=None,
                latest_build_number=outcomes[0].build_number if outcomes else None,
            )
            logger.info(
                "[%s] score=%s over %d build(s) (latest #%s)",
                job_name,
                "n/a" if score is None else f"{score:.3f}",
                sampled,
                health.latest_build_number,
            )

        if self._metrics is not None:
            self._metrics.record_request(job_name, success=health.last_poll_success)
        self._store.put(health)
        self._phases[job_name] = PollPhase.PUBLISHED
        return health

    def _failed(self, job_name: str, cause: str) -> JobHealth:
        """Previous record with the failure stamped on; score is kept."""
        previous = self._store.get(job_name)
        return dataclasses.replace(
            previous,
            last_poll_success=False,
            last_poll_time=self._clock(),
            last_error=cause,
        )
