"""CLI argument parsing and main entry point.

Provides two modes of operation:

* ``build-sentinel server`` - poll Jenkins periodically and serve ``/metrics``.
* ``build-sentinel poll``   - run one poll cycle, print a table and exit.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import socket
import sys
from typing import Any, Dict, List, Optional

import uvicorn

from build_sentinel.config.loader import build_config, find_config_file
from build_sentinel.config.schema import SentinelConfig
from build_sentinel.constants import (
    API_TOKEN_ENV_VAR,
    CONFIG_ENV_VAR,
    SERVER_NAME,
    SERVER_VERSION,
)
from build_sentinel.display.console import render_health_table, startup_banner
from build_sentinel.display.logging_config import secret_redaction_filter, setup_logging
from build_sentinel.errors import ConfigurationError
from build_sentinel.health.scheduler import PollScheduler
from build_sentinel.health.store import JobStateStore
from build_sentinel.upstream.client import JenkinsClient

module_logger = logging.getLogger(__name__)

uvicorn_svr_inst: Optional[uvicorn.Server] = None


def _resolve_config_path(cli_path: Optional[str]) -> Optional[str]:
    """CLI flag → env var → auto-detect in CWD → ``None`` (flags only)."""
    if cli_path:
        return cli_path
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return env_path
    return find_config_file()


def _poll_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    api_token = args.api_token
    if api_token is None:
        api_token = os.environ.get(API_TOKEN_ENV_VAR)
    return {
        "jenkins_host": args.jenkins_host,
        "scheme": args.scheme,
        "jobs": list(args.jobs or []),
        "window_size": args.window_size,
        "poll_interval": args.poll_interval,
        "timeout": args.timeout,
        "username": args.username,
        "api_token": api_token,
        "verify_tls": False if args.insecure else None,
    }


def load_cli_config(args: argparse.Namespace) -> SentinelConfig:
    """Build the validated config from the config file and *args*.

    Raises :class:`ConfigurationError` when the result is invalid.
    """
    cfg_path = _resolve_config_path(getattr(args, "config", None))
    if cfg_path is not None:
        cfg_path = os.path.abspath(cfg_path)
        module_logger.info("Configuration file path resolved to: %s", cfg_path)
    server_overrides = {
        "host": getattr(args, "host", None),
        "port": getattr(args, "port", None),
    }
    config = build_config(
        cfg_path,
        server_overrides=server_overrides,
        poll_overrides=_poll_overrides(args),
    )
    secret_redaction_filter.register(config.poll.api_token)
    return config


def _log_level(args: argparse.Namespace) -> str:
    return "debug" if getattr(args, "verbose", 0) else args.log_level


def _check_port_free(host: str, port: int) -> bool:
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        probe.bind((host, port))
    except OSError as e_bind:
        module_logger.error("Port %s on %s is already in use: %s", port, host, e_bind)
        return False
    finally:
        probe.close()
    return True


# ── ``build-sentinel server`` ───────────────────────────────────────────


async def _run_server(config: SentinelConfig, log_lvl: str) -> None:
    """Async main for the server subcommand."""
    global uvicorn_svr_inst

    from build_sentinel.server.app import create_app

    app = create_app(config)
    uvicorn_cfg = uvicorn.Config(
        app=app,
        host=config.server.host,
        port=config.server.port,
        log_config=None,
        log_level=log_lvl.lower() if log_lvl == "DEBUG" else "warning",
    )
    uvicorn_svr_inst = uvicorn.Server(uvicorn_cfg)

    module_logger.info(
        "Preparing to start Uvicorn server: http://%s:%s", config.server.host, config.server.port
    )
    try:
        await uvicorn_svr_inst.serve()
    finally:
        module_logger.info("%s has shut down or is shutting down.", SERVER_NAME)


def _cmd_server(args: argparse.Namespace) -> int:
    """Entry-point for ``build-sentinel server``."""
    _, log_lvl = setup_logging(_log_level(args), log_dir=args.log_dir)
    module_logger.info("---- %s v%s starting (log level: %s) ----", SERVER_NAME, SERVER_VERSION, log_lvl)

    try:
        config = load_cli_config(args)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    if not _check_port_free(config.server.host, config.server.port):
        print(
            f"Error: Port {config.server.port} on {config.server.host} is already in use.",
            file=sys.stderr,
        )
        return 1

    def _sigterm_handler(sig: int, frame: object) -> None:
        module_logger.info("SIGTERM received - shutting down gracefully...")
        if uvicorn_svr_inst is not None:
            uvicorn_svr_inst.should_exit = True

    signal.signal(signal.SIGTERM, _sigterm_handler)

    print(startup_banner(config))
    try:
        asyncio.run(_run_server(config, log_lvl))
    except KeyboardInterrupt:
        module_logger.info("%s interrupted by KeyboardInterrupt.", SERVER_NAME)
    except Exception as e_fatal:
        module_logger.exception("%s encountered an uncaught fatal error: %s", SERVER_NAME, e_fatal)
        return 1
    module_logger.info("%s application finished.", SERVER_NAME)
    return 0


# ── ``build-sentinel poll`` ─────────────────────────────────────────────


async def _poll_once(config: SentinelConfig) -> JobStateStore:
    poll = config.poll
    store = JobStateStore(poll.jobs)
    async with JenkinsClient(
        poll.jenkins_host,
        scheme=poll.scheme,
        username=poll.username,
        api_token=poll.api_token,
        timeout=poll.timeout,
        verify_tls=poll.verify_tls,
    ) as client:
        scheduler = PollScheduler(
            client,
            store,
            window_size=poll.window_size,
            interval=poll.poll_interval,
            timeout=poll.timeout,
        )
        await scheduler.run_once()
    return store


def _cmd_poll(args: argparse.Namespace) -> int:
    """Entry-point for ``build-sentinel poll``.

    Exits non-zero when any job could not be fetched.
    """
    setup_logging(_log_level(args), log_dir=args.log_dir, quiet=True)
    try:
        config = load_cli_config(args)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    store = asyncio.run(_poll_once(config))
    records = store.snapshot()
    print(render_health_table(records))
    return 0 if all(h.last_poll_success for h in records.values()) else 1


# ── Parser ───────────────────────────────────────────────────────────────


def _add_common_arguments(sp: argparse.ArgumentParser) -> None:
    """Options shared by ``server`` and ``poll``. Unset values come from the config file."""
    sp.add_argument(
        "jobs",
        nargs="*",
        metavar="JOB",
        help="Jenkins jobs to monitor (overrides the config file's list)",
    )
    sp.add_argument(
        "--config",
        type=str,
        default=None,
        metavar="PATH",
        help=(
            f"Path to configuration file (YAML). Default: ${CONFIG_ENV_VAR}, "
            "then config.yaml/config.yml in the working directory"
        ),
    )
    sp.add_argument(
        "-j",
        "--jenkins-host",
        type=str,
        default=None,
        help="Jenkins hostname to monitor the jobs on (default: jenkins.fd.io)",
    )
    sp.add_argument(
        "--scheme",
        choices=["https", "http"],
        default=None,
        help="URL scheme for the Jenkins API (default: https)",
    )
    sp.add_argument(
        "-l",
        "--window-size",
        "--last-jobs",
        dest="window_size",
        type=int,
        default=None,
        help="How many of the last builds to look at (default: 10)",
    )
    sp.add_argument(
        "-p",
        "--poll-interval",
        type=float,
        default=None,
        metavar="SECONDS",
        help="How often to fetch the job builds status (default: 600)",
    )
    sp.add_argument(
        "--timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Upstream request timeout (default: 30)",
    )
    sp.add_argument("--username", type=str, default=None, help="Jenkins user for basic auth")
    sp.add_argument(
        "--api-token",
        type=str,
        default=None,
        help=f"Jenkins API token for basic auth (default: ${API_TOKEN_ENV_VAR})",
    )
    sp.add_argument(
        "--insecure",
        action="store_true",
        default=False,
        help="Do not verify the Jenkins TLS certificate",
    )
    sp.add_argument(
        "--log-level",
        type=str,
        default="info",
        choices=["debug", "info", "warning", "error", "critical"],
        help="Set logging level (default: info)",
    )
    sp.add_argument(
        "--log-dir",
        type=str,
        default=None,
        metavar="DIR",
        help="Also write logs to a timestamped file in DIR",
    )
    sp.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Verbose output (same as --log-level debug)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser with server/poll subcommands."""
    parser = argparse.ArgumentParser(
        prog="build-sentinel",
        description=f"{SERVER_NAME} v{SERVER_VERSION}",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {SERVER_VERSION}")

    subparsers = parser.add_subparsers(dest="command")

    # ── server ──────────────────────────────────────────────────
    sp_server = subparsers.add_parser(
        "server",
        help="Poll Jenkins periodically and export job health for Prometheus",
    )
    _add_common_arguments(sp_server)
    sp_server.add_argument(
        "--host",
        type=str,
        default=None,
        help="Bind the exporter to this address (default: 127.0.0.1)",
    )
    sp_server.add_argument(
        "--port",
        type=int,
        default=None,
        help="Bind the exporter to this port (default: 9186)",
    )
    sp_server.set_defaults(func=_cmd_server)

    # ── poll ─────────────────────────────────────────────────────
    sp_poll = subparsers.add_parser(
        "poll",
        help="Poll every job once, print the health table and exit",
    )
    _add_common_arguments(sp_poll)
    sp_poll.set_defaults(func=_cmd_poll)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Program entry point: parse arguments and dispatch to subcommand."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)
    sys.exit(args.func(args))
