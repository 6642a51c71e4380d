"""
Defines project-specific exception classes.
"""
from typing import Optional


class SentinelError(Exception):
    """Base class for all custom exceptions in Build Sentinel."""
    pass


class ConfigurationError(SentinelError):
    """Raised when loading or validating the configuration fails."""
    pass


class FetchError(SentinelError):
    """
    Raised when the build history of a job cannot be fetched from the
    upstream job-tracking service.

    Transport failures, timeouts, bad HTTP statuses, unknown jobs and
    malformed payloads all surface as this one type.
    """

    def __init__(self,
                 message: str,
                 job_name: Optional[str] = None,
                 orig_exc: Optional[Exception] = None):
        self.job_name = job_name
        self.orig_exc = orig_exc
        self.cause = message

        full_msg = "Fetch failed"
        if job_name:
            full_msg += f" (job: {job_name})"
        full_msg += f": {message}"
        if orig_exc:
            full_msg += f" (original error: {type(orig_exc).__name__})"
        super().__init__(full_msg)


class UnknownJobError(SentinelError, LookupError):
    """
    Raised when the job state store is asked about a job that was never
    configured. This is a programming error, not a runtime condition.
    """

    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(f"Job '{job_name}' is not a configured job")
