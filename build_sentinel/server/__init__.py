"""HTTP exposition server: ASGI app, lifespan and Prometheus collector."""

from build_sentinel.server.app import create_app
from build_sentinel.server.exposition import JobHealthCollector, build_registry

__all__ = [
    "JobHealthCollector",
    "build_registry",
    "create_app",
]
