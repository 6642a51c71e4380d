"""Tests for CLI parsing, config resolution and the ``poll`` subcommand."""

from __future__ import annotations

import os
import tempfile
from typing import Any, List, Optional
from unittest.mock import patch

import pytest

from build_sentinel import cli
from build_sentinel.display.console import render_health_table
from build_sentinel.health.store import JobHealth, JobStateStore
from build_sentinel.upstream.models import BuildOutcome, BuildResult


class TestParser:
    def test_no_command_exits(self) -> None:
        with pytest.raises(SystemExit) as ei:
            cli.main([])
        assert ei.value.code == 1

    def test_server_flags(self) -> None:
        args = cli.build_parser().parse_args(
            [
                "server",
                "-j",
                "ci.example.org",
                "--last-jobs",
                "5",
                "-p",
                "30",
                "--port",
                "9200",
                "job-a",
                "job-b",
            ]
        )
        assert args.command == "server"
        assert args.jenkins_host == "ci.example.org"
        assert args.window_size == 5
        assert args.poll_interval == 30.0
        assert args.port == 9200
        assert args.jobs == ["job-a", "job-b"]

    def test_unset_flags_are_none(self) -> None:
        args = cli.build_parser().parse_args(["poll", "job-a"])
        assert args.jenkins_host is None
        assert args.window_size is None
        assert not hasattr(args, "port")


class TestLoadCliConfig:
    def test_flags_only(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("BUILD_SENTINEL_CONFIG", raising=False)
        monkeypatch.delenv("JENKINS_API_TOKEN", raising=False)
        with tempfile.TemporaryDirectory() as tmpdir:
            monkeypatch.chdir(tmpdir)
            args = cli.build_parser().parse_args(["server", "--port", "9300", "a", "b"])
            cfg = cli.load_cli_config(args)
        assert cfg.server.port == 9300
        assert cfg.poll.jobs == ["a", "b"]
        assert cfg.poll.api_token is None

    def test_token_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("BUILD_SENTINEL_CONFIG", raising=False)
        monkeypatch.setenv("JENKINS_API_TOKEN", "envtoken")
        with tempfile.TemporaryDirectory() as tmpdir:
            monkeypatch.chdir(tmpdir)
            args = cli.build_parser().parse_args(["poll", "--username", "bot", "a"])
            cfg = cli.load_cli_config(args)
        assert cfg.poll.username == "bot"
        assert cfg.poll.api_token == "envtoken"

    def test_config_from_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "sentinel.yaml")
            with open(path, "w", encoding="utf-8") as f:
                f.write("poll:\n  jobs: [from-file]\n  window_size: 4\n")
            monkeypatch.setenv("BUILD_SENTINEL_CONFIG", path)
            args = cli.build_parser().parse_args(["poll", "--insecure"])
            cfg = cli.load_cli_config(args)
        assert cfg.poll.jobs == ["from-file"]
        assert cfg.poll.window_size == 4
        assert cfg.poll.verify_tls is False


class _Client:
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        pass

    async def __aenter__(self) -> "_Client":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    async def fetch_recent_builds(
        self, job_name: str, window_size: int, timeout: Optional[float] = None
    ) -> List[BuildOutcome]:
        if job_name == "broken":
            from build_sentinel.errors import FetchError

            raise FetchError("job not found (HTTP 404)", job_name)
        return [BuildOutcome(job_name=job_name, build_number=1, result=BuildResult.SUCCESS)]


class TestPollCommand:
    def test_all_ok(self, monkeypatch: pytest.MonkeyPatch, capsys: Any) -> None:
        monkeypatch.delenv("BUILD_SENTINEL_CONFIG", raising=False)
        with tempfile.TemporaryDirectory() as tmpdir:
            monkeypatch.chdir(tmpdir)
            with patch.object(cli, "JenkinsClient", _Client), patch.object(cli, "setup_logging"):
                with pytest.raises(SystemExit) as ei:
                    cli.main(["poll", "good"])
        assert ei.value.code == 0
        out = capsys.readouterr().out
        assert "good" in out
        assert "1.000" in out

    def test_failure_exit_code(self, monkeypatch: pytest.MonkeyPatch, capsys: Any) -> None:
        monkeypatch.delenv("BUILD_SENTINEL_CONFIG", raising=False)
        with tempfile.TemporaryDirectory() as tmpdir:
            monkeypatch.chdir(tmpdir)
            with patch.object(cli, "JenkinsClient", _Client), patch.object(cli, "setup_logging"):
                with pytest.raises(SystemExit) as ei:
                    cli.main(["poll", "good", "broken"])
        assert ei.value.code == 1
        assert "FAILED: job not found" in capsys.readouterr().out

    def test_config_error_exit_code(self, monkeypatch: pytest.MonkeyPatch, capsys: Any) -> None:
        monkeypatch.delenv("BUILD_SENTINEL_CONFIG", raising=False)
        with tempfile.TemporaryDirectory() as tmpdir:
            monkeypatch.chdir(tmpdir)
            with patch.object(cli, "setup_logging"):
                with pytest.raises(SystemExit) as ei:
                    cli.main(["poll", "--last-jobs", "0", "a"])
        assert ei.value.code == 2
        assert "window_size" in capsys.readouterr().err


class TestRenderHealthTable:
    def test_rows(self) -> None:
        store = JobStateStore(["a", "b"])
        store.put(JobHealth(job_name="a", score=0.5, sampled_count=2, last_poll_success=True))
        text = render_health_table(store.snapshot())
        lines = text.splitlines()
        assert lines[0].startswith("JOB")
        assert "0.500" in lines[1]
        assert "n/a" in lines[2]
        assert "FAILED: not polled" in lines[2]
