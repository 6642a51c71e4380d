"""Async client for the Jenkins JSON API.

Fetches the most recent builds of a job with a single
``GET /job/<name>/api/json`` request and turns every failure mode into a
:class:`~build_sentinel.errors.FetchError`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional, Tuple
from urllib.parse import quote

import httpx

from build_sentinel.constants import DEFAULT_REQUEST_TIMEOUT, DEFAULT_SCHEME
from build_sentinel.errors import FetchError
from build_sentinel.upstream.models import BuildOutcome, parse_builds

logger = logging.getLogger(__name__)

_BUILD_FIELDS = "number,result,timestamp,duration"


def job_api_path(job_name: str) -> str:
    """Return the API path for *job_name*.

    Folder jobs (``folder/name``) are nested as ``/job/folder/job/name``.
    """
    segments = [s for s in job_name.split("/") if s]
    if not segments:
        raise ValueError("job name must be non-empty")
    return "".join(f"/job/{quote(s, safe='')}" for s in segments) + "/api/json"


class JenkinsClient:
    """Async HTTP client for the Jenkins build-history API.

    Parameters
    ----------
    host:
        Jenkins host, optionally with ``:port`` (e.g. ``jenkins.fd.io``).
    scheme:
        ``https`` (default) or ``http``.
    username, api_token:
        Optional basic-auth credentials, passed through unchanged.
    timeout:
        Default request timeout in seconds.
    verify_tls:
        Verify the server certificate (default ``True``).
    transport:
        Optional custom ``httpx`` transport (used by tests).
    """

    def __init__(
        self,
        host: str,
        *,
        scheme: str = DEFAULT_SCHEME,
        username: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        verify_tls: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = f"{scheme}://{host}"
        self._auth: Optional[Tuple[str, str]] = None
        if username and api_token:
            self._auth = (username, api_token)
        self._timeout = timeout
        self._verify_tls = verify_tls
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self._base_url

    # ── lifecycle ───────────────────────────────────────────────────

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                auth=self._auth,
                timeout=self._timeout,
                verify=self._verify_tls,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> JenkinsClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ── public API ──────────────────────────────────────────────────

    async def fetch_recent_builds(
        self,
        job_name: str,
        window_size: int,
        timeout: Optional[float] = None,
    ) -> List[BuildOutcome]:
        """Return up to *window_size* most recent builds of *job_name*.

        The result is sorted by build number, newest first.

        Raises:
            FetchError: on any transport, HTTP status or payload problem.
            ValueError: if *window_size* < 1 or *timeout* <= 0.
        """
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")
        if timeout is None:
            timeout = self._timeout
        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")

        path = job_api_path(job_name)
        # Ask the server to trim the list; we still trim locally below.
        params = {"tree": f"builds[{_BUILD_FIELDS}]{{0,{window_size}}}"}

        client = self._ensure_client()
        try:
            resp = await asyncio.wait_for(
                client.get(path, params=params, timeout=timeout),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            raise FetchError(f"timed out after {timeout:g}s", job_name, exc) from exc
        except httpx.TimeoutException as exc:
            raise FetchError(f"timed out after {timeout:g}s", job_name, exc) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"request failed: {exc}", job_name, exc) from exc

        if resp.status_code == 404:
            raise FetchError("job not found (HTTP 404)", job_name)
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchError(f"unexpected HTTP status {resp.status_code}", job_name, exc) from exc

        try:
            outcomes = parse_builds(job_name, resp.json())
        except ValueError as exc:
            # json.JSONDecodeError is a ValueError too
            raise FetchError(f"malformed response: {exc}", job_name, exc) from exc

        logger.debug(
            "[%s] Fetched %d build(s) from %s (window=%d)",
            job_name,
            len(outcomes),
            self._base_url,
            window_size,
        )
        return outcomes[:window_size]
