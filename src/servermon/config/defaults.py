"""Default configuration values for servermon.

This module defines the configuration used when no config file exists or when
a value is not specified anywhere else.

Environment Variables:
    SERVERMON_CONFIG_PATH: Override default config file path
    REFRESH_INTERVAL, BATCH_SIZE, API_URL, DB_HOST, ...: See ENV_VAR_MAP
    Any config file value can reference environment variables using ${VAR} syntax

Config File Locations (in order of precedence):
    1. Path specified via --config CLI flag
    2. Path specified via SERVERMON_CONFIG_PATH environment variable
    3. ~/.config/servermon/config.yaml (XDG default)
    4. ~/.servermon/config.yaml (legacy location)
"""

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "refresh_interval_ms": 60000,  # Time between the end of one tick and the next
    "batch_size": 5,  # Buffered snapshots that trigger a flush
    "display_metrics": False,  # Print a console summary after each tick
    "server": {
        "hostname": None,  # Identifier override; the system host name if unset
        "use_ip_as_id": False,  # Report the primary IPv4 address as host name
    },
    "collectors": {
        "timeout_seconds": 10.0,  # Per-collector timeout within a tick
        "top_processes": 5,  # Length of each top-process list
    },
    "cleanup": {
        "days_to_keep": 30,
        "initial_delay_seconds": 60.0,  # First cleanup after start
        "interval_hours": 24.0,
    },
    "api": {
        "enabled": False,
        "url": "",
        "key": "",
        "timeout_seconds": 10.0,
    },
    "db": {
        "enabled": False,
        "host": "localhost",
        "port": 5432,
        "user": "postgres",
        "password": "",
        "name": "server_monitor",
        "ssl": False,
        "pool_min": 1,
        "pool_max": 5,
    },
    "logging": {
        "level": "INFO",
        "file": None,  # e.g. "server-monitor.log"
    },
    "sentry": {
        "dsn": None,  # Error tracking is off unless a DSN is set
        "environment": None,
        "traces_sample_rate": 0.0,
    },
}

# Environment variable -> dotted config key
ENV_VAR_MAP: dict[str, str] = {
    "REFRESH_INTERVAL": "refresh_interval_ms",
    "BATCH_SIZE": "batch_size",
    "DISPLAY_METRICS": "display_metrics",
    "CLEANUP_DAYS_TO_KEEP": "cleanup.days_to_keep",
    "API_ENABLED": "api.enabled",
    "API_URL": "api.url",
    "API_KEY": "api.key",
    "DB_ENABLED": "db.enabled",
    "DB_HOST": "db.host",
    "DB_PORT": "db.port",
    "DB_USER": "db.user",
    "DB_PASSWORD": "db.password",
    "DB_NAME": "db.name",
    "DB_SSL": "db.ssl",
    "SERVER_HOSTNAME": "server.hostname",
    "LOG_LEVEL": "logging.level",
    "LOG_FILE": "logging.file",
    "SENTRY_DSN": "sentry.dsn",
}
