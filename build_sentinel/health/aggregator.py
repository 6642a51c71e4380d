"""Turn a window of build outcomes into a health score.

The score is the plain success rate over the window: every build carries
the same weight regardless of age.
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence, Tuple

from build_sentinel.upstream.models import BuildOutcome, BuildResult


def compute_health(outcomes: Sequence[BuildOutcome]) -> Tuple[Optional[float], int]:
    """Return ``(score, sampled_count)`` for *outcomes*.

    ``score`` is the fraction of ``SUCCESS`` results in ``[0.0, 1.0]`` at
    full float precision, or ``None`` when *outcomes* is empty. Every other
    result counts against the score and towards ``sampled_count``.
    """
    total = len(outcomes)
    if total == 0:
        return None, 0
    successes = sum(1 for o in outcomes if o.result is BuildResult.SUCCESS)
    return successes / total, total


def tally_results(outcomes: Sequence[BuildOutcome]) -> Dict[BuildResult, int]:
    """Count outcomes per result. All results are present, zero or not."""
    counts = {result: 0 for result in BuildResult}
    for o in outcomes:
        counts[o.result] += 1
    return counts
