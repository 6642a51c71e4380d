"""Job state store: last-known health per monitored job.

Records are immutable :class:`JobHealth` values. A write swaps the whole
record for a job under a lock, so a reader sees either the previous record
or the new one, never a mix of both.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from build_sentinel.errors import UnknownJobError
from build_sentinel.upstream.models import BuildResult


def _empty_counts() -> Mapping[BuildResult, int]:
    return MappingProxyType({result: 0 for result in BuildResult})


@dataclass(frozen=True)
class JobHealth:
    """Snapshot of one job's derived health."""

    job_name: str
    score: Optional[float] = None
    sampled_count: int = 0
    result_counts: Mapping[BuildResult, int] = field(default_factory=_empty_counts)
    last_poll_success: bool = False
    last_poll_time: Optional[datetime] = None
    last_error: Optional[str] = None
    latest_build_number: Optional[int] = None

    @classmethod
    def unknown(cls, job_name: str) -> JobHealth:
        """Initial record for a job that has not been polled yet."""
        return cls(job_name=job_name)

    @property
    def has_data(self) -> bool:
        return self.score is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job": self.job_name,
            "score": self.score,
            "sampled_count": self.sampled_count,
            "result_counts": {r.value: n for r, n in self.result_counts.items()},
            "last_poll_success": self.last_poll_success,
            "last_poll_time": self.last_poll_time.isoformat() if self.last_poll_time else None,
            "last_error": self.last_error,
            "latest_build_number": self.latest_build_number,
        }


class JobStateStore:
    """Thread-safe map of job name → :class:`JobHealth`.

    The set of jobs is fixed at construction; every job starts with an
    "unknown" record. Asking for any other job raises
    :class:`~build_sentinel.errors.UnknownJobError`.
    """

    def __init__(self, job_names: Iterable[str]) -> None:
        self._lock = threading.Lock()
        self._job_names: List[str] = list(dict.fromkeys(job_names))
        self._records: Dict[str, JobHealth] = {
            name: JobHealth.unknown(name) for name in self._job_names
        }

    @property
    def job_names(self) -> List[str]:
        """Configured job names, in configuration order."""
        return list(self._job_names)

    def get(self, job_name: str) -> JobHealth:
        """Return the current record for *job_name*."""
        with self._lock:
            try:
                return self._records[job_name]
            except KeyError:
                raise UnknownJobError(job_name) from None

    def put(self, health: JobHealth) -> None:
        """Replace the record for ``health.job_name``."""
        with self._lock:
            if health.job_name not in self._records:
                raise UnknownJobError(health.job_name)
            self._records[health.job_name] = health

    def snapshot(self) -> Dict[str, JobHealth]:
        """Return a consistent copy of all records, in configuration order."""
        with self._lock:
            return {name: self._records[name] for name in self._job_names}

    def __contains__(self, job_name: object) -> bool:
        return job_name in self._records

    def __len__(self) -> int:
        return len(self._job_names)
