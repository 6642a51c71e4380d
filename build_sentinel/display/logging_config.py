"""Logging configuration setup."""

import copy
import logging
import logging.config
import os
import re
import sys
from datetime import datetime
from typing import Optional, Set, Tuple

from build_sentinel.constants import DEFAULT_LOG_LEVEL

# ── Secret redaction filter ──────────────────────────────────────────────

_REDACTED = "***REDACTED***"

_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class SecretRedactionFilter(logging.Filter):
    """Logging filter that replaces registered secret values with a placeholder.

    The Jenkins API token is registered at startup so that it never shows up
    in request errors that echo URLs or headers.
    """

    def __init__(self) -> None:
        super().__init__()
        self._secrets: Set[str] = set()
        self._pattern: Optional[re.Pattern[str]] = None

    def register(self, value: Optional[str]) -> None:
        """Register a secret value for redaction."""
        if value and len(value) >= 4:  # skip trivially short values
            self._secrets.add(value)
            escaped = sorted((re.escape(s) for s in self._secrets), key=len, reverse=True)
            self._pattern = re.compile("|".join(escaped))

    def _scrub(self, value: object) -> object:
        if isinstance(value, str) and self._pattern is not None:
            return self._pattern.sub(_REDACTED, value)
        return value

    def filter(self, record: logging.LogRecord) -> bool:
        if self._pattern is None:
            return True
        record.msg = self._scrub(record.msg)
        if isinstance(record.args, dict):
            record.args = {k: self._scrub(v) for k, v in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(self._scrub(a) for a in record.args)
        return True


# Module-level singleton so the CLI can register values once config is loaded.
secret_redaction_filter = SecretRedactionFilter()

_APP_LOGGERS = (
    "build_sentinel",
    "uvicorn",
    "uvicorn.error",
    "starlette",
)

BASE_LOG_CFG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": ("%(asctime)s - %(name)30s:%(lineno)-4d - " "%(levelname)-7s - %(message)s"),
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console_handler": {
            "class": "logging.StreamHandler",
            "level": "DEBUG",
            "formatter": "simple",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "uvicorn.access": {
            "handlers": ["console_handler"],
            "propagate": False,
            "level": "WARNING",
        },
        "httpx": {
            "handlers": ["console_handler"],
            "propagate": False,
            "level": "WARNING",
        },
        "httpcore": {
            "handlers": ["console_handler"],
            "propagate": False,
            "level": "WARNING",
        },
    },
    "root": {
        "handlers": ["console_handler"],
        "level": "WARNING",
    },
}


def normalize_level(log_lvl_str: str, *, quiet: bool = False) -> str:
    """Return the upper-cased level name, falling back to the default."""
    log_lvl_valid = (log_lvl_str or "").upper()
    if log_lvl_valid not in _VALID_LEVELS:
        if not quiet:
            print(
                f"Warning: invalid log level '{log_lvl_str}'. Using '{DEFAULT_LOG_LEVEL}'.",
                file=sys.stderr,
            )
        log_lvl_valid = DEFAULT_LOG_LEVEL
    return log_lvl_valid


def build_log_config(log_lvl: str, log_fpath: Optional[str] = None) -> dict:
    """Return the ``dictConfig`` mapping for *log_lvl* (already validated)."""
    log_cfg: dict = copy.deepcopy(BASE_LOG_CFG)
    handlers = ["console_handler"]
    if log_fpath is not None:
        log_cfg["handlers"]["file_handler"] = {
            "class": "logging.FileHandler",
            "level": "DEBUG",
            "formatter": "simple",
            "filename": log_fpath,
            "encoding": "utf-8",
        }
        handlers.append("file_handler")
        for logger_cfg in log_cfg["loggers"].values():
            logger_cfg["handlers"] = list(handlers)
        log_cfg["root"]["handlers"] = list(handlers)

    for name in _APP_LOGGERS:
        log_cfg["loggers"][name] = {
            "handlers": list(handlers),
            "propagate": False,
            "level": log_lvl,
        }

    if log_lvl == "DEBUG":
        log_cfg["loggers"]["uvicorn.access"]["level"] = "INFO"
        log_cfg["loggers"]["httpx"]["level"] = "INFO"
        log_cfg["root"]["level"] = "DEBUG"
    return log_cfg


def setup_logging(
    log_lvl_str: str,
    *,
    log_dir: Optional[str] = None,
    quiet: bool = False,
) -> Tuple[Optional[str], str]:
    """
    Set up the logging system.

    Logs always go to stderr; when *log_dir* is given a timestamped log
    file is written there as well.

    Args:
        log_lvl_str: The desired log level string (e.g., 'debug', 'info').
        log_dir: Optional directory for a log file.
        quiet: If *True*, suppress the ``print()`` status line.

    Returns:
        A tuple of (log_file_path or None, validated_log_level).
    """
    log_lvl_valid = normalize_level(log_lvl_str, quiet=quiet)

    log_fpath: Optional[str] = None
    if log_dir:
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        os.makedirs(log_dir, exist_ok=True)
        log_fpath = os.path.join(log_dir, f"build_sentinel_{ts}_{log_lvl_valid}.log")

    try:
        logging.config.dictConfig(build_log_config(log_lvl_valid, log_fpath))
    except (ValueError, TypeError, AttributeError, ImportError, OSError) as e_log_cfg:
        print(f"Error applying logging configuration: {e_log_cfg}", file=sys.stderr)
        return None, log_lvl_valid

    # Attach the redaction filter to every handler we just created
    configured = set(logging.root.handlers)
    for name in (*_APP_LOGGERS, "uvicorn.access", "httpx", "httpcore"):
        configured.update(logging.getLogger(name).handlers)
    for handler in configured:
        handler.addFilter(secret_redaction_filter)

    if not quiet and log_fpath is not None:
        print(f"Logging initialized. Log level: {log_lvl_valid}, log file: {log_fpath}")

    return log_fpath, log_lvl_valid
