"""Upstream job-tracking service access: client and build models.

Public API
----------
- :class:`JenkinsClient` - Async client for the Jenkins JSON API
- :class:`BuildOutcome` - One historical build of one job
- :class:`BuildResult` - Closed set of build results
"""

from build_sentinel.upstream.client import JenkinsClient, job_api_path
from build_sentinel.upstream.models import BuildOutcome, BuildResult, parse_builds

__all__ = [
    "BuildOutcome",
    "BuildResult",
    "JenkinsClient",
    "job_api_path",
    "parse_builds",
]
