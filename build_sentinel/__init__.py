"""
Build Sentinel - a Prometheus exporter for CI job health.

Build Sentinel periodically samples the recent build history of a set of
Jenkins jobs, turns each history into a success-rate health score and serves
the result on a ``/metrics`` endpoint for Prometheus to scrape.
"""

from build_sentinel.constants import SERVER_NAME, SERVER_VERSION

__version__ = SERVER_VERSION
__app_name__ = SERVER_NAME

__all__ = [
    "SERVER_NAME",
    "SERVER_VERSION",
    "__version__",
    "__app_name__",
]
