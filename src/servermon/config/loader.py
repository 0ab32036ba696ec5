"""Configuration loading and validation for servermon.

This module provides:
- Pydantic models for configuration validation
- YAML config file discovery and loading
- Environment variable overrides and ${VAR} expansion
- Merging of defaults, config file, environment and CLI flags
- Clear, user-friendly error messages for config issues
"""

from collections.abc import Mapping
from difflib import get_close_matches
import os
from pathlib import Path
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import yaml

from servermon.config.defaults import DEFAULT_CONFIG, ENV_VAR_MAP
from servermon.sinks.base import SinkKind


class ConfigError(Exception):
    """Base exception for configuration errors.

    Attributes:
        message: The main error message
        file_path: Path to the config file (if applicable)
        line_number: Line number where the error occurred (if known)
        suggestion: Helpful suggestion for fixing the error
    """

    def __init__(
        self,
        message: str,
        *,
        file_path: str | None = None,
        line_number: int | None = None,
        column: int | None = None,
        suggestion: str | None = None,
        context_lines: list[str] | None = None,
    ) -> None:
        self.message = message
        self.file_path = file_path
        self.line_number = line_number
        self.column = column
        self.suggestion = suggestion
        self.context_lines = context_lines
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with context and suggestions."""
        parts = []

        if self.file_path:
            location = f"Error in {self.file_path}"
            if self.line_number:
                location += f" line {self.line_number}"
            parts.append(location + ":")
        else:
            parts.append("Configuration error:")

        parts.append(f"  {self.message}")

        if self.context_lines and self.column:
            parts.append("")
            for line in self.context_lines:
                parts.append(f"    {line}")
            parts.append(" " * (self.column + 3) + "^")

        if self.suggestion:
            parts.append("")
            parts.append(f"  Suggestion: {self.suggestion}")

        return "\n".join(parts)


class ConfigSyntaxError(ConfigError):
    """Error for YAML syntax issues."""

    pass


class ConfigValidationError(ConfigError):
    """Error for configuration value validation failures."""

    pass


# Known keys per section, for "did you mean" suggestions
VALID_KEYS: dict[tuple[str, ...], set[str]] = {
    (): set(DEFAULT_CONFIG),
    **{
        (section,): set(values)
        for section, values in DEFAULT_CONFIG.items()
        if isinstance(values, dict)
    },
}

# Environment variable pattern: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


def _suggest_key(unknown_key: str, valid_keys: set[str]) -> str | None:
    matches = get_close_matches(unknown_key, list(valid_keys), n=1, cutoff=0.6)
    if matches:
        return f"Did you mean '{matches[0]}'?"
    return None


def _get_type_description(value: Any) -> str:
    """Get a human-readable type description for a value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return f'string "{value}"'
    if isinstance(value, list):
        return "list"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _format_pydantic_error(
    error: ValidationError,
    config_data: dict[str, Any],
    file_path: str | None = None,
) -> ConfigValidationError:
    """Convert a Pydantic ValidationError to a user-friendly ConfigValidationError.

    Only the first error is reported; it is usually the one to fix first.
    """
    errors = error.errors()
    if not errors:
        return ConfigValidationError("Configuration validation failed", file_path=file_path)

    first_error = errors[0]
    loc = first_error.get("loc", ())
    msg = first_error.get("msg", "Invalid value")
    error_type = first_error.get("type", "")
    ctx = first_error.get("ctx", {})

    path = ".".join(str(part) for part in loc)

    actual_value: Any = config_data
    for key in loc:
        if isinstance(actual_value, dict):
            actual_value = actual_value.get(key)
        else:
            break

    suggestion = None

    if error_type == "literal_error":
        expected = ctx.get("expected", "")
        message = f"Invalid value for '{path}': got {_get_type_description(actual_value)}"
        suggestion = f"Expected one of: {expected}"

    elif error_type in ("greater_than_equal", "greater_than", "less_than_equal", "less_than"):
        limit = ctx.get("ge", ctx.get("gt", ctx.get("le", ctx.get("lt"))))
        message = f"Value for '{path}' is out of range: {actual_value}"
        if error_type.startswith("greater"):
            suggestion = f"Value must be at least {limit}"
        else:
            suggestion = f"Value must be at most {limit}"

    elif error_type in ("int_parsing", "float_parsing", "int_from_float"):
        message = f"Invalid number for '{path}': got {_get_type_description(actual_value)}"
        suggestion = "Please provide a valid number"

    elif error_type == "string_type":
        message = f"Expected string for '{path}': got {_get_type_description(actual_value)}"
        suggestion = "Please provide a text value"

    elif error_type in ("bool_type", "bool_parsing"):
        message = f"Expected boolean for '{path}': got {_get_type_description(actual_value)}"
        suggestion = "Use 'true' or 'false'"

    elif error_type == "extra_forbidden":
        unknown_key = str(loc[-1]) if loc else "unknown"
        message = f"Unknown configuration key '{path}'"
        parent = tuple(str(part) for part in loc[:-1])
        valid = VALID_KEYS.get(parent)
        if valid:
            suggestion = _suggest_key(unknown_key, valid)
        if not suggestion:
            suggestion = "Check the documentation for valid configuration options"

    else:
        message = f"Invalid value for '{path}': {msg}"

    return ConfigValidationError(message, file_path=file_path, suggestion=suggestion)


def _format_yaml_error(
    error: yaml.YAMLError,
    file_path: str | None = None,
    content: str | None = None,
) -> ConfigSyntaxError:
    """Convert a YAML error to a user-friendly ConfigSyntaxError."""
    line_number = None
    column = None
    context_lines = None
    suggestion = None

    mark = getattr(error, "problem_mark", None)
    if mark is not None:
        line_number = mark.line + 1
        column = mark.column + 1
        if content:
            lines = content.splitlines()
            if 0 <= mark.line < len(lines):
                context_lines = [lines[mark.line]]

    error_str = str(error).lower()

    if "could not find expected ':'" in error_str:
        suggestion = "Check for missing colons after keys (e.g., 'key: value')"
    elif "found character" in error_str and "tab" in error_str:
        suggestion = "Use spaces instead of tabs for indentation"
    elif "mapping values are not allowed" in error_str:
        suggestion = "Check your indentation - make sure nested keys are properly indented"
    elif "found undefined alias" in error_str:
        suggestion = "Check that all YAML anchors (&name) are defined before aliases (*name)"

    message = "Invalid YAML syntax"
    problem = getattr(error, "problem", None)
    if problem:
        message = f"YAML syntax error: {problem}"

    return ConfigSyntaxError(
        message,
        file_path=file_path,
        line_number=line_number,
        column=column,
        context_lines=context_lines,
        suggestion=suggestion,
    )


def expand_env_vars(value: Any, environ: Mapping[str, str] | None = None) -> Any:
    """Recursively expand environment variables in config values.

    Supports ${VAR} and ${VAR:-default} syntax. Unknown variables without a
    default are left as written.
    """
    env = os.environ if environ is None else environ

    if isinstance(value, str):

        def replace_env_var(match: re.Match[str]) -> str:
            env_value = env.get(match.group(1))
            if env_value is not None:
                return env_value
            if match.group(2) is not None:
                return match.group(2)
            return match.group(0)

        return ENV_VAR_PATTERN.sub(replace_env_var, value)
    if isinstance(value, dict):
        return {k: expand_env_vars(v, env) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item, env) for item in value]
    return value


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Nested config dict built from the variables in ENV_VAR_MAP.

    Empty variables are ignored. Values stay strings; the Config model
    coerces them.
    """
    env = os.environ if environ is None else environ
    result: dict[str, Any] = {}
    for var, dotted in ENV_VAR_MAP.items():
        raw = env.get(var)
        if raw is None or raw.strip() == "":
            continue
        *parents, leaf = dotted.split(".")
        target = result
        for part in parents:
            target = target.setdefault(part, {})
        target[leaf] = raw.strip()
    return result


# Pydantic Configuration Models


class ServerConfig(BaseModel):
    """Host identity settings."""

    model_config = ConfigDict(extra="forbid")

    hostname: str | None = None
    use_ip_as_id: bool = False


class CollectorsConfig(BaseModel):
    """Per-tick collection settings."""

    model_config = ConfigDict(extra="forbid")

    timeout_seconds: float = Field(default=10.0, gt=0, le=300)
    top_processes: int = Field(default=5, ge=1, le=100)


class CleanupConfig(BaseModel):
    """Retention cleanup settings."""

    model_config = ConfigDict(extra="forbid")

    days_to_keep: int = Field(default=30, ge=1)
    initial_delay_seconds: float = Field(default=60.0, ge=0)
    interval_hours: float = Field(default=24.0, gt=0)


class ApiConfig(BaseModel):
    """HTTP API sink settings."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    url: str = ""
    key: str = ""
    timeout_seconds: float = Field(default=10.0, gt=0, le=300)


class DbConfig(BaseModel):
    """PostgreSQL sink settings."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    host: str = "localhost"
    port: int = Field(default=5432, ge=1, le=65535)
    user: str = "postgres"
    password: str = ""
    name: str = "server_monitor"
    ssl: bool = False
    pool_min: int = Field(default=1, ge=1)
    pool_max: int = Field(default=5, ge=1)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    file: str | None = None

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        """Accept lowercase level names and the ``warn`` alias."""
        if isinstance(v, str):
            v = v.strip().upper()
            return "WARNING" if v == "WARN" else v
        return v


class SentryConfig(BaseModel):
    """Error tracking configuration."""

    model_config = ConfigDict(extra="forbid")

    dsn: str | None = None
    environment: str | None = None
    traces_sample_rate: float = Field(default=0.0, ge=0.0, le=1.0)


class Config(BaseModel):
    """Main configuration model for servermon."""

    model_config = ConfigDict(extra="forbid")

    refresh_interval_ms: int = Field(default=60000, ge=100)
    batch_size: int = Field(default=5, ge=1)
    display_metrics: bool = False

    server: ServerConfig = Field(default_factory=ServerConfig)
    collectors: CollectorsConfig = Field(default_factory=CollectorsConfig)
    cleanup: CleanupConfig = Field(default_factory=CleanupConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    db: DbConfig = Field(default_factory=DbConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    sentry: SentryConfig = Field(default_factory=SentryConfig)

    @property
    def sink_kind(self) -> SinkKind:
        """Delivery target: API first, then database, else none."""
        if self.api.enabled:
            return SinkKind.API
        if self.db.enabled:
            return SinkKind.DB
        return SinkKind.NOOP

    @property
    def refresh_interval_seconds(self) -> float:
        return self.refresh_interval_ms / 1000.0


def get_config_path(
    custom_path: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Path | None:
    """Determine the configuration file path.

    Checks locations in this order:
    1. Custom path (if provided via --config flag)
    2. SERVERMON_CONFIG_PATH environment variable
    3. ~/.config/servermon/config.yaml (XDG standard)
    4. ~/.servermon/config.yaml (legacy location)

    Raises:
        FileNotFoundError: If ``custom_path`` is given but does not exist
    """
    env = os.environ if environ is None else environ

    if custom_path:
        path = Path(custom_path).expanduser()
        if path.exists():
            return path
        raise FileNotFoundError(f"Config file not found: {custom_path}")

    env_path = env.get("SERVERMON_CONFIG_PATH")
    if env_path:
        path = Path(env_path).expanduser()
        if path.exists():
            return path
        return None

    xdg_path = Path.home() / ".config" / "servermon" / "config.yaml"
    if xdg_path.exists():
        return xdg_path

    legacy_path = Path.home() / ".servermon" / "config.yaml"
    if legacy_path.exists():
        return legacy_path

    return None


def load_config(
    config_path: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """Load and validate configuration.

    Configuration is merged in this order (later overrides earlier):
    1. Default configuration
    2. Config file (if found), with ${VAR} expansion
    3. Environment variables listed in ENV_VAR_MAP
    4. CLI overrides (if provided)

    Args:
        config_path: Optional custom config file path
        cli_overrides: Optional dict of CLI argument overrides
        environ: Environment to read instead of os.environ

    Returns:
        Validated Config object

    Raises:
        FileNotFoundError: If custom config path doesn't exist
        ConfigSyntaxError: If config file has invalid YAML syntax
        ConfigValidationError: If config values are invalid
    """
    env = os.environ if environ is None else environ
    config_data: dict[str, Any] = deep_merge(DEFAULT_CONFIG, {})
    resolved_path: Path | None = None

    path = get_config_path(config_path, env)
    if path:
        resolved_path = path
        file_content = path.read_text(encoding="utf-8")
        try:
            file_config = yaml.safe_load(file_content) or {}
        except yaml.YAMLError as e:
            raise _format_yaml_error(e, str(path), file_content) from e
        if not isinstance(file_config, dict):
            raise ConfigValidationError(
                "Config file must contain a mapping of settings",
                file_path=str(path),
                suggestion="Start the file with top-level keys such as 'refresh_interval_ms:'",
            )
        config_data = deep_merge(config_data, expand_env_vars(file_config, env))

    config_data = deep_merge(config_data, env_overrides(env))

    if cli_overrides:
        config_data = deep_merge(config_data, cli_overrides)

    try:
        return Config(**config_data)
    except ValidationError as e:
        raise _format_pydantic_error(
            e,
            config_data,
            str(resolved_path) if resolved_path else None,
        ) from e
