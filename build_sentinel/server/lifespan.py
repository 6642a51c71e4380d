"""Application lifespan management - startup and shutdown sequences.

Startup builds the upstream client and the poll scheduler from the config
on ``app.state`` and starts polling; shutdown stops the scheduler and
closes the client.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from starlette.applications import Starlette

from build_sentinel.config.schema import SentinelConfig
from build_sentinel.constants import SERVER_NAME, SERVER_VERSION
from build_sentinel.health.scheduler import PollScheduler
from build_sentinel.upstream.client import JenkinsClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: Starlette) -> AsyncIterator[None]:
    """Start polling on startup; stop it and release the client on shutdown."""
    app_s = app.state
    config: SentinelConfig = app_s.config
    poll = config.poll
    logger.info("%s v%s lifespan startup.", SERVER_NAME, SERVER_VERSION)

    owns_client = app_s.client is None
    if owns_client:
        app_s.client = JenkinsClient(
            poll.jenkins_host,
            scheme=poll.scheme,
            username=poll.username,
            api_token=poll.api_token,
            timeout=poll.timeout,
            verify_tls=poll.verify_tls,
        )

    scheduler = PollScheduler(
        app_s.client,
        app_s.store,
        window_size=poll.window_size,
        interval=poll.poll_interval,
        timeout=poll.timeout,
        metrics=app_s.poll_metrics,
    )
    app_s.scheduler = scheduler
    scheduler.start()
    try:
        yield
    finally:
        logger.info("%s lifespan shutdown.", SERVER_NAME)
        await scheduler.stop()
        if owns_client:
            await app_s.client.close()
            app_s.client = None
        logger.info("%s shutdown complete.", SERVER_NAME)
