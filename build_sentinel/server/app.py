"""Starlette ASGI application factory and HTTP handlers."""

import logging
from typing import Any, Optional

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from build_sentinel.config.schema import SentinelConfig
from build_sentinel.constants import (
    HEALTHZ_PATH,
    METRICS_PATH,
    SERVER_NAME,
    SERVER_VERSION,
    STATUS_PATH,
)
from build_sentinel.health.store import JobStateStore
from build_sentinel.server.exposition import CONTENT_TYPE_LATEST, build_registry, render_latest
from build_sentinel.server.lifespan import app_lifespan
from build_sentinel.telemetry.metrics import PollMetrics

logger = logging.getLogger(__name__)


# ── GET /metrics ─────────────────────────────────────────────────────────


async def handle_metrics(request: Request) -> Response:
    """Prometheus scrape endpoint."""
    registry = request.app.state.metrics_registry
    return Response(render_latest(registry), media_type=CONTENT_TYPE_LATEST)


# ── GET /status ──────────────────────────────────────────────────────────


async def handle_status(request: Request) -> JSONResponse:
    """Every job's current record as JSON."""
    state = request.app.state
    store: JobStateStore = state.store
    config: SentinelConfig = state.config
    scheduler = getattr(state, "scheduler", None)

    jobs = []
    for name, health in store.snapshot().items():
        entry = health.to_dict()
        if scheduler is not None:
            entry["phase"] = scheduler.phase(name).value
        jobs.append(entry)

    return JSONResponse(
        {
            "service": {"name": SERVER_NAME, "version": SERVER_VERSION},
            "upstream": {
                "host": config.poll.jenkins_host,
                "window_size": config.poll.window_size,
                "poll_interval": config.poll.poll_interval,
            },
            "polling": scheduler is not None and scheduler.running,
            "jobs": jobs,
        }
    )


# ── GET /healthz ─────────────────────────────────────────────────────────


async def handle_healthz(request: Request) -> JSONResponse:
    """Liveness probe - returns 200 while the process is serving."""
    return JSONResponse({"status": "ok"})


def create_app(config: SentinelConfig, *, client: Optional[Any] = None) -> Starlette:
    """Create the Starlette ASGI application for *config*.

    The job state store and metrics registry are created here so the
    routes work as soon as the app exists; the upstream client and poll
    scheduler are created by the lifespan. Pass *client* to use a
    pre-built upstream client instead of a :class:`JenkinsClient`.
    """
    application = Starlette(
        lifespan=app_lifespan,
        routes=[
            Route(METRICS_PATH, endpoint=handle_metrics),
            Route(STATUS_PATH, endpoint=handle_status),
            Route(HEALTHZ_PATH, endpoint=handle_healthz),
        ],
    )

    store = JobStateStore(config.poll.jobs)
    poll_metrics = PollMetrics()

    app_s = application.state
    app_s.config = config
    app_s.store = store
    app_s.poll_metrics = poll_metrics
    app_s.metrics_registry = build_registry(store, poll_metrics)
    app_s.client = client
    app_s.scheduler = None

    logger.info(
        "Starlette ASGI app '%s' created. Metrics on %s, status on %s, liveness on %s",
        SERVER_NAME,
        METRICS_PATH,
        STATUS_PATH,
        HEALTHZ_PATH,
    )
    return application
