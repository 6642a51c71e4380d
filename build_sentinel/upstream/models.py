"""Data models for build history returned by the Jenkins JSON API.

Defines the client-side types (``BuildResult``, ``BuildOutcome``) and the
tolerant parsing of a raw ``builds`` payload into them.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class BuildResult(Enum):
    """Terminal result of one build."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    UNSTABLE = "UNSTABLE"
    ABORTED = "ABORTED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, raw: Any) -> BuildResult:
        """Map a Jenkins ``result`` value onto the enum.

        ``None`` (build still running), ``NOT_BUILT`` and anything
        unrecognised become :attr:`UNKNOWN`.
        """
        if not isinstance(raw, str):
            return cls.UNKNOWN
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class BuildOutcome:
    """One historical build of one job."""

    job_name: str
    build_number: int
    result: BuildResult
    timestamp: Optional[datetime] = None
    duration_seconds: Optional[float] = None

    @classmethod
    def from_dict(cls, job_name: str, data: Dict[str, Any]) -> Optional[BuildOutcome]:
        """Construct from one entry of the API ``builds`` list.

        Returns ``None`` when the entry has no usable build number.
        ``timestamp`` and ``duration`` are milliseconds in the Jenkins API.
        """
        number = data.get("number")
        if isinstance(number, bool) or not isinstance(number, int):
            return None

        timestamp: Optional[datetime] = None
        ts_ms = data.get("timestamp")
        if isinstance(ts_ms, (int, float)) and not isinstance(ts_ms, bool) and ts_ms > 0:
            try:
                timestamp = datetime.fromtimestamp(ts_ms / 1000.0, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                logger.debug("[%s] Build #%d: timestamp %r out of range", job_name, number, ts_ms)

        duration: Optional[float] = None
        dur_ms = data.get("duration")
        if isinstance(dur_ms, (int, float)) and not isinstance(dur_ms, bool) and dur_ms >= 0:
            try:
                seconds = dur_ms / 1000.0
            except OverflowError:
                seconds = math.inf
            if math.isfinite(seconds):
                duration = seconds

        return cls(
            job_name=job_name,
            build_number=number,
            result=BuildResult.parse(data.get("result")),
            timestamp=timestamp,
            duration_seconds=duration,
        )


def parse_builds(job_name: str, payload: Any) -> List[BuildOutcome]:
    """Parse a job's ``api/json`` payload into outcomes, most recent first.

    Raises :class:`ValueError` if the payload does not carry a ``builds``
    list at all; individual malformed entries are dropped.
    """
    if not isinstance(payload, dict):
        raise ValueError("response body is not a JSON object")
    builds_raw = payload.get("builds")
    if not isinstance(builds_raw, list):
        raise ValueError("response body has no 'builds' list")

    outcomes: List[BuildOutcome] = []
    for entry in builds_raw:
        outcome = BuildOutcome.from_dict(job_name, entry) if isinstance(entry, dict) else None
        if outcome is None:
            logger.debug("[%s] Dropping malformed build entry: %r", job_name, entry)
            continue
        outcomes.append(outcome)

    # The API normally lists newest first; don't rely on it.
    outcomes.sort(key=lambda o: o.build_number, reverse=True)
    return outcomes
