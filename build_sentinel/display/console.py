"""Console rendering of job health and startup banners."""

from typing import List, Mapping

from build_sentinel.config.schema import SentinelConfig
from build_sentinel.constants import METRICS_PATH, SERVER_NAME, SERVER_VERSION
from build_sentinel.health.store import JobHealth
from build_sentinel.upstream.models import BuildResult


_HEADERS = ("JOB", "SCORE", "OK", "FAIL", "SAMPLED", "LATEST", "POLL")


def format_score(score: object) -> str:
    return "n/a" if score is None else f"{score:.3f}"


def render_health_table(records: Mapping[str, JobHealth]) -> str:
    """Render *records* as a fixed-width text table."""
    rows: List[tuple] = []
    for name, h in records.items():
        poll = "ok" if h.last_poll_success else f"FAILED: {h.last_error or 'not polled'}"
        rows.append(
            (
                name,
                format_score(h.score),
                str(h.result_counts.get(BuildResult.SUCCESS, 0)),
                str(h.result_counts.get(BuildResult.FAILURE, 0)),
                str(h.sampled_count),
                "-" if h.latest_build_number is None else f"#{h.latest_build_number}",
                poll,
            )
        )

    widths = [len(col) for col in _HEADERS]
    for row in rows:
        # last column is free-form and left unpadded
        for i, cell in enumerate(row[:-1]):
            widths[i] = max(widths[i], len(cell))

    def _line(cells: tuple) -> str:
        padded = [cell.ljust(widths[i]) for i, cell in enumerate(cells[:-1])]
        return "  ".join(padded + [cells[-1]])

    lines = [_line(_HEADERS)]
    lines.extend(_line(row) for row in rows)
    return "\n".join(lines)


def startup_banner(config: SentinelConfig) -> str:
    """One-line summary printed when the exporter starts."""
    poll = config.poll
    return (
        f"{SERVER_NAME} v{SERVER_VERSION}: exporting on "
        f"http://{config.server.host}:{config.server.port}{METRICS_PATH}, "
        f"monitoring {len(poll.jobs)} job(s) on {poll.jenkins_host} "
        f"with {poll.poll_interval:g} seconds poll interval"
    )
