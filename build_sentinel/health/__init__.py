"""Job health computation and polling.

Public API
----------
- :class:`PollScheduler` - Background poll scheduler
- :class:`PollPhase` - Per-job cycle phase
- :class:`JobStateStore` - Thread-safe store of per-job records
- :class:`JobHealth` - Immutable per-job health record
- :func:`compute_health` - Success-rate aggregation over a build window
"""

from build_sentinel.health.aggregator import compute_health, tally_results
from build_sentinel.health.scheduler import PollPhase, PollScheduler
from build_sentinel.health.store import JobHealth, JobStateStore

__all__ = [
    "JobHealth",
    "JobStateStore",
    "PollPhase",
    "PollScheduler",
    "compute_health",
    "tally_results",
]
