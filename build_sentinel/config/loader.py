"""Configuration file loading and validation.

Loads an optional YAML configuration file, expands ``${ENV_VAR}``
placeholders, layers command-line overrides on top and validates the
result against the Pydantic models defined in :mod:`schema`.

The public API is :func:`load_sentinel_config` (file only) and
:func:`build_config` (file + overrides), both returning a validated
:class:`SentinelConfig`.
"""

import logging
import os
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import ValidationError

from build_sentinel.config.env import expand_env_vars
from build_sentinel.config.schema import SentinelConfig
from build_sentinel.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Recognised config file extensions.
_YAML_EXTS = frozenset({".yaml", ".yml"})

# Config file search order in the working directory (first match wins)
CONFIG_SEARCH_ORDER = ("config.yaml", "config.yml")


def find_config_file(search_dir: Optional[str] = None) -> Optional[str]:
    """Return the first well-known config file in *search_dir*, or ``None``."""
    base_dir = search_dir or os.getcwd()
    for name in CONFIG_SEARCH_ORDER:
        candidate = os.path.join(base_dir, name)
        if os.path.isfile(candidate):
            return candidate
    return None


def read_config_file(cfg_fpath: str) -> Dict[str, Any]:
    """Read and parse a YAML config file from *cfg_fpath*.

    Raises :class:`ConfigurationError` on I/O or parse errors.
    """
    if not os.path.exists(cfg_fpath):
        raise ConfigurationError(f"Configuration file does not exist: {cfg_fpath}")

    ext = os.path.splitext(cfg_fpath)[1].lower()
    if ext not in _YAML_EXTS:
        raise ConfigurationError(
            f"Unsupported config file extension '{ext}'. "
            "Only YAML files (.yaml, .yml) are supported."
        )

    try:
        with open(cfg_fpath, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Error reading configuration file: {cfg_fpath}\n  {exc}") from exc

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise ConfigurationError(
            "Top-level configuration content must be a YAML mapping (dictionary)."
        )
    return raw_data


def _format_validation_errors(exc: ValidationError) -> str:
    """Format Pydantic validation errors into a readable multi-line string."""
    lines: List[str] = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        lines.append(f"  • {loc}: {err['msg']}")
    return "\n".join(lines)


def _apply_overrides(raw_data: Dict[str, Any], section: str, overrides: Mapping[str, Any]) -> None:
    """Set non-``None`` override values into ``raw_data[section]``."""
    values = {k: v for k, v in overrides.items() if v is not None}
    if not values:
        return
    target = raw_data.get(section)
    if not isinstance(target, dict):
        target = {}
        raw_data[section] = target
    target.update(values)


def validate_config(raw_data: Dict[str, Any]) -> SentinelConfig:
    """Validate raw (already expanded) data into a :class:`SentinelConfig`.

    Raises:
        ConfigurationError: with all validation errors reported at once.
    """
    try:
        return SentinelConfig.model_validate(raw_data)
    except ValidationError as exc:
        error_summary = _format_validation_errors(exc)
        raise ConfigurationError(
            f"Configuration validation failed ({len(exc.errors())} error(s)):\n" f"{error_summary}"
        ) from exc


def build_config(
    cfg_fpath: Optional[str] = None,
    *,
    server_overrides: Optional[Mapping[str, Any]] = None,
    poll_overrides: Optional[Mapping[str, Any]] = None,
) -> SentinelConfig:
    """Load, expand, override, validate and return the configuration.

    Steps:
        1. Read YAML file (when *cfg_fpath* is given)
        2. Expand ``${VAR}`` environment variable references
        3. Apply command-line overrides (``None`` values are ignored;
           an empty ``jobs`` list does not replace the file's list)
        4. Validate against :class:`SentinelConfig` (Pydantic)

    Raises:
        ConfigurationError: On file I/O errors, parse errors, or
            validation failures.
    """
    raw_data: Dict[str, Any] = {}
    if cfg_fpath is not None:
        logger.debug("Loading configuration file: %s", cfg_fpath)
        raw_data = read_config_file(cfg_fpath)

    raw_data = expand_env_vars(raw_data)

    poll_values = dict(poll_overrides or {})
    if not poll_values.get("jobs"):
        poll_values.pop("jobs", None)
    _apply_overrides(raw_data, "server", server_overrides or {})
    _apply_overrides(raw_data, "poll", poll_values)

    config = validate_config(raw_data)
    logger.info(
        "Configuration loaded (v%s%s). %d job(s) on %s.",
        config.version,
        f", file '{cfg_fpath}'" if cfg_fpath else "",
        len(config.poll.jobs),
        config.poll.jenkins_host,
    )
    return config


def load_sentinel_config(cfg_fpath: str) -> SentinelConfig:
    """Load and return the full :class:`SentinelConfig` from a file."""
    return build_config(cfg_fpath)
