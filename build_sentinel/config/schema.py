"""Pydantic configuration models for Build Sentinel.

Defines the validated config structure using the versioned v1 format.
"""

from __future__ import annotations

import re
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from build_sentinel.constants import (
    DEFAULT_HOST,
    DEFAULT_JENKINS_HOST,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_PORT,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SCHEME,
    DEFAULT_WINDOW_SIZE,
)

# host or host:port, no scheme, path or whitespace
_HOST_RE = re.compile(r"^[A-Za-z0-9.\-\[\]:]+$")


# ── Poller settings ─────────────────────────────────────────────────────


class PollConfig(BaseModel):
    """What to poll, how often, and how much history to look at."""

    model_config = ConfigDict(frozen=True)

    jenkins_host: str = Field(
        default=DEFAULT_JENKINS_HOST,
        min_length=1,
        description="Jenkins hostname (optionally host:port) to monitor the jobs on.",
    )
    scheme: Literal["https", "http"] = DEFAULT_SCHEME
    jobs: List[str] = Field(..., min_length=1, description="Jenkins jobs to monitor.")
    window_size: int = Field(
        default=DEFAULT_WINDOW_SIZE,
        ge=1,
        description="How many of the most recent builds to look at.",
    )
    poll_interval: float = Field(
        default=DEFAULT_POLL_INTERVAL,
        gt=0,
        description="Seconds between poll cycles.",
    )
    timeout: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT,
        gt=0,
        description="Upstream request timeout in seconds.",
    )
    username: Optional[str] = Field(default=None, description="Basic-auth user name.")
    api_token: Optional[str] = Field(
        default=None,
        description="Basic-auth API token. Supports ${ENV_VAR}.",
    )
    verify_tls: bool = True

    @field_validator("jenkins_host")
    @classmethod
    def _validate_host(cls, v: str) -> str:
        v = v.strip()
        if "://" in v:
            raise ValueError(f"host '{v}' must not include a scheme; use 'scheme' instead")
        if not _HOST_RE.match(v):
            raise ValueError(f"host '{v}' is not a valid host[:port]")
        return v

    @field_validator("jobs")
    @classmethod
    def _validate_jobs(cls, v: List[str]) -> List[str]:
        seen = set()
        for name in v:
            stripped = name.strip().strip("/")
            if not stripped:
                raise ValueError("Job name must be a non-empty string")
            if stripped != name:
                raise ValueError(f"Job name '{name}' has leading/trailing whitespace or slashes")
            if name in seen:
                raise ValueError(f"Job '{name}' is listed more than once")
            seen.add(name)
        return v


# ── Server settings ─────────────────────────────────────────────────────


class ServerSettings(BaseModel):
    """Exposition endpoint bind address."""

    model_config = ConfigDict(frozen=True)

    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)


# ── Top-level config ────────────────────────────────────────────────────


class SentinelConfig(BaseModel):
    """Top-level validated configuration for Build Sentinel.

    Supports version ``"1"`` format::

        version: "1"
        server:
          host: 0.0.0.0
          port: 9186
        poll:
          jenkins_host: jenkins.fd.io
          window_size: 10
          jobs:
            - vpp-verify-master-ubuntu2204-x86_64
    """

    model_config = ConfigDict(frozen=True)

    version: Literal["1"] = "1"
    server: ServerSettings = Field(default_factory=ServerSettings)
    poll: PollConfig
