"""Tests for the upstream module - build models, parsing and the Jenkins client."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

import httpx
import pytest

from build_sentinel.errors import FetchError
from build_sentinel.upstream.client import JenkinsClient, job_api_path
from build_sentinel.upstream.models import BuildOutcome, BuildResult, parse_builds

# ── Models ───────────────────────────────────────────────────────────────


class TestBuildResult:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("SUCCESS", BuildResult.SUCCESS),
            ("FAILURE", BuildResult.FAILURE),
            ("UNSTABLE", BuildResult.UNSTABLE),
            ("ABORTED", BuildResult.ABORTED),
            ("success", BuildResult.SUCCESS),
            ("NOT_BUILT", BuildResult.UNKNOWN),
            ("weird", BuildResult.UNKNOWN),
            (None, BuildResult.UNKNOWN),
            (3, BuildResult.UNKNOWN),
        ],
    )
    def test_parse(self, raw: Any, expected: BuildResult) -> None:
        assert BuildResult.parse(raw) is expected


class TestBuildOutcome:
    def test_from_dict_full(self) -> None:
        o = BuildOutcome.from_dict(
            "job",
            {"number": 42, "result": "SUCCESS", "timestamp": 1700000000000, "duration": 1500},
        )
        assert o is not None
        assert o.build_number == 42
        assert o.result is BuildResult.SUCCESS
        assert o.timestamp == datetime.fromtimestamp(1700000000, tz=timezone.utc)
        assert o.duration_seconds == 1.5

    def test_from_dict_running_build(self) -> None:
        o = BuildOutcome.from_dict("job", {"number": 43, "result": None})
        assert o is not None
        assert o.result is BuildResult.UNKNOWN
        assert o.timestamp is None

    def test_from_dict_bad_timestamp(self) -> None:
        o = BuildOutcome.from_dict("job", {"number": 1, "result": "FAILURE", "timestamp": "x"})
        assert o is not None
        assert o.timestamp is None

    @pytest.mark.parametrize("ts", [1e18, 1e300, float("inf"), 10**400])
    def test_from_dict_out_of_range_timestamp(self, ts: Any) -> None:
        o = BuildOutcome.from_dict("job", {"number": 2, "result": "SUCCESS", "timestamp": ts})
        assert o is not None
        assert o.result is BuildResult.SUCCESS
        assert o.timestamp is None

    @pytest.mark.parametrize("dur", [float("inf"), float("nan"), 10**400])
    def test_from_dict_non_finite_duration(self, dur: Any) -> None:
        o = BuildOutcome.from_dict("job", {"number": 2, "result": "SUCCESS", "duration": dur})
        assert o is not None
        assert o.duration_seconds is None

    @pytest.mark.parametrize("number", [None, "7", 1.5, True])
    def test_from_dict_without_usable_number(self, number: Any) -> None:
        assert BuildOutcome.from_dict("job", {"number": number, "result": "SUCCESS"}) is None


class TestParseBuilds:
    def test_sorted_newest_first(self) -> None:
        payload = {
            "builds": [
                {"number": 8, "result": "SUCCESS"},
                {"number": 10, "result": "SUCCESS"},
                {"number": 9, "result": "FAILURE"},
            ]
        }
        outcomes = parse_builds("job", payload)
        assert [o.build_number for o in outcomes] == [10, 9, 8]

    def test_malformed_entries_dropped(self) -> None:
        payload = {"builds": [{"number": 2, "result": "SUCCESS"}, "junk", {"result": "SUCCESS"}]}
        outcomes = parse_builds("job", payload)
        assert [o.build_number for o in outcomes] == [2]

    def test_empty_builds(self) -> None:
        assert parse_builds("job", {"builds": []}) == []

    @pytest.mark.parametrize("payload", [[], "x", {}, {"builds": "nope"}])
    def test_bad_payload_raises(self, payload: Any) -> None:
        with pytest.raises(ValueError):
            parse_builds("job", payload)


class TestJobApiPath:
    def test_simple(self) -> None:
        assert job_api_path("vpp-verify") == "/job/vpp-verify/api/json"

    def test_folder(self) -> None:
        assert job_api_path("team/build") == "/job/team/job/build/api/json"

    def test_quoted(self) -> None:
        assert job_api_path("my job") == "/job/my%20job/api/json"

    def test_empty(self) -> None:
        with pytest.raises(ValueError):
            job_api_path("/")


# ── Client ───────────────────────────────────────────────────────────────


def _client(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> JenkinsClient:
    return JenkinsClient("jenkins.example.com", transport=httpx.MockTransport(handler), **kwargs)


def _builds(*pairs: tuple) -> Dict[str, List[Dict[str, Any]]]:
    return {"builds": [{"number": n, "result": r} for n, r in pairs]}


@pytest.mark.asyncio
class TestJenkinsClient:
    async def test_fetch_success(self) -> None:
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json=_builds((10, "SUCCESS"), (9, "FAILURE"), (8, "SUCCESS"))
            )

        async with _client(handler) as client:
            outcomes = await client.fetch_recent_builds("vpp", 3, 5.0)

        assert [o.build_number for o in outcomes] == [10, 9, 8]
        assert [o.result for o in outcomes] == [
            BuildResult.SUCCESS,
            BuildResult.FAILURE,
            BuildResult.SUCCESS,
        ]
        req = seen[0]
        assert req.url.host == "jenkins.example.com"
        assert req.url.scheme == "https"
        assert req.url.path == "/job/vpp/api/json"
        assert req.url.params["tree"] == "builds[number,result,timestamp,duration]{0,3}"

    async def test_out_of_range_timestamps_keep_outcomes(self) -> None:
        body = (
            b'{"builds": [{"number": 3, "result": "SUCCESS", "timestamp": 1e18},'
            b' {"number": 2, "result": "FAILURE", "timestamp": Infinity},'
            b' {"number": 1, "result": "SUCCESS", "timestamp": 1700000000000}]}'
        )

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, content=body, headers={"Content-Type": "application/json"}
            )

        async with _client(handler) as client:
            outcomes = await client.fetch_recent_builds("vpp", 3)

        assert [o.build_number for o in outcomes] == [3, 2, 1]
        assert outcomes[0].timestamp is None
        assert outcomes[1].timestamp is None
        assert outcomes[2].timestamp == datetime.fromtimestamp(1700000000, tz=timezone.utc)

    async def test_trims_to_window_and_sorts(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json=_builds((1, "SUCCESS"), (3, "FAILURE"), (2, "SUCCESS"), (4, "ABORTED"))
            )

        async with _client(handler) as client:
            outcomes = await client.fetch_recent_builds("vpp", 2)
        assert [o.build_number for o in outcomes] == [4, 3]

    async def test_fewer_builds_than_window(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=_builds((2, "SUCCESS"), (1, "SUCCESS")))

        async with _client(handler) as client:
            outcomes = await client.fetch_recent_builds("vpp", 10)
        assert len(outcomes) == 2

    async def test_basic_auth_passed_through(self) -> None:
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_builds())

        async with _client(handler, username="bot", api_token="s3cret") as client:
            await client.fetch_recent_builds("vpp", 1)
        assert seen[0].headers["Authorization"].startswith("Basic ")

    async def test_not_found(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="Not Found")

        async with _client(handler) as client:
            with pytest.raises(FetchError) as ei:
                await client.fetch_recent_builds("missing", 5)
        assert ei.value.job_name == "missing"
        assert "not found" in ei.value.cause

    async def test_server_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        async with _client(handler) as client:
            with pytest.raises(FetchError, match="503"):
                await client.fetch_recent_builds("vpp", 5)

    async def test_malformed_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>login</html>")

        async with _client(handler) as client:
            with pytest.raises(FetchError, match="malformed"):
                await client.fetch_recent_builds("vpp", 5)

    async def test_missing_builds_key(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=json.dumps({"jobs": []}).encode())

        async with _client(handler) as client:
            with pytest.raises(FetchError, match="builds"):
                await client.fetch_recent_builds("vpp", 5)

    async def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(FetchError) as ei:
                await client.fetch_recent_builds("vpp", 5)
        assert isinstance(ei.value.orig_exc, httpx.ConnectError)

    async def test_timeout(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json=_builds())

        async with _client(handler) as client:
            with pytest.raises(FetchError, match="timed out"):
                await client.fetch_recent_builds("vpp", 5, 0.05)

    async def test_invalid_arguments(self) -> None:
        client = _client(lambda r: httpx.Response(200, json=_builds()))
        with pytest.raises(ValueError):
            await client.fetch_recent_builds("vpp", 0)
        with pytest.raises(ValueError):
            await client.fetch_recent_builds("vpp", 1, 0)
        await client.close()
