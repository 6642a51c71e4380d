"""Configuration loading and validation for Build Sentinel."""

from build_sentinel.config.env import expand_env_vars
from build_sentinel.config.loader import (
    build_config,
    find_config_file,
    load_sentinel_config,
    read_config_file,
    validate_config,
)
from build_sentinel.config.schema import PollConfig, SentinelConfig, ServerSettings

__all__ = [
    "PollConfig",
    "SentinelConfig",
    "ServerSettings",
    "build_config",
    "expand_env_vars",
    "find_config_file",
    "load_sentinel_config",
    "read_config_file",
    "validate_config",
]
