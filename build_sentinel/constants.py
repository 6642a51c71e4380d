"""Shared constants for Build Sentinel."""

SERVER_NAME = "Build Sentinel"
SERVER_VERSION = "0.1.0"

# Exposition bind defaults
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9186

# HTTP paths
METRICS_PATH = "/metrics"
STATUS_PATH = "/status"
HEALTHZ_PATH = "/healthz"

# Upstream (Jenkins) defaults
DEFAULT_JENKINS_HOST = "jenkins.fd.io"
DEFAULT_SCHEME = "https"
DEFAULT_WINDOW_SIZE = 10
DEFAULT_POLL_INTERVAL = 600.0  # seconds
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds

# Prefix for every exported metric name
METRIC_PREFIX = "build_sentinel"

# Logging defaults
DEFAULT_LOG_LEVEL = "INFO"

# Environment variables
CONFIG_ENV_VAR = "BUILD_SENTINEL_CONFIG"
API_TOKEN_ENV_VAR = "JENKINS_API_TOKEN"
