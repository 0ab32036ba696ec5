"""Configuration module for servermon.

This module provides:
- Pydantic models for configuration validation
- YAML config file loading and discovery
- Default configuration values and environment variable overrides
- Clear error messages for config issues
"""

from servermon.config.defaults import DEFAULT_CONFIG, ENV_VAR_MAP
from servermon.config.loader import (
    ApiConfig,
    CleanupConfig,
    CollectorsConfig,
    Config,
    ConfigError,
    ConfigSyntaxError,
    ConfigValidationError,
    DbConfig,
    LoggingConfig,
    SentryConfig,
    ServerConfig,
    get_config_path,
    load_config,
)

__all__ = [
    "Config",
    "ApiConfig",
    "CleanupConfig",
    "CollectorsConfig",
    "ConfigError",
    "ConfigSyntaxError",
    "ConfigValidationError",
    "DbConfig",
    "LoggingConfig",
    "SentryConfig",
    "ServerConfig",
    "DEFAULT_CONFIG",
    "ENV_VAR_MAP",
    "get_config_path",
    "load_config",
]
