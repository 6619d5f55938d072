"""Default configuration values for perfagent.

This module defines the default configuration used when no config file exists
or when config values are not specified. All configuration options are documented
here for reference.

Environment Variables:
    PERFAGENT_CONFIG_PATH: Override default config file path
    SERVER_URL: Collector endpoint (default http://yourserver.com/api/monitor)
    LOGGING: "true" to enable the log file
    Any config value can reference environment variables using ${VAR} syntax

Config File Locations (in order of precedence):
    1. Path specified via --config CLI flag
    2. Path specified via PERFAGENT_CONFIG_PATH environment variable
    3. ~/.config/perfagent/config.yaml (XDG default)
    4. ~/.perfagent/config.yaml (legacy location)
"""

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    # Sampling loop
    "sampling": {
        "interval": 60.0,  # Seconds slept between ticks
        "batch_size": 30,  # Snapshots per delivered batch
        "include_network": True,  # Collect per-interface network counters
    },
    # Delivery to the remote collector
    "delivery": {
        "server_url": "${SERVER_URL:-http://yourserver.com/api/monitor}",
        "compress": True,  # gzip request bodies
        "timeout": 30.0,  # Total request timeout in seconds
        "history_size": 100,  # Recent delivery outcomes kept in memory
    },
    # Log file (append-only)
    "logging": {
        "enabled": "${LOGGING:-false}",
        "level": "INFO",  # DEBUG, INFO, WARNING, ERROR
        "file": "perf_monitor.log",
    },
    # Error tracking (off unless a DSN is configured)
    "sentry": {
        "enabled": False,
        "dsn": "${SENTRY_DSN:-}",
        "environment": "production",
    },
}
