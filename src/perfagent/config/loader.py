"""Configuration loading and validation for perfagent.

This module provides:
- Pydantic models for configuration validation
- YAML config file discovery and loading
- Environment variable expansion in config values
- Merging of config file with defaults and command-line overrides
- Clear, user-friendly error messages for config issues
"""

from difflib import get_close_matches
import logging
import os
from pathlib import Path
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import yaml

from perfagent.config.defaults import DEFAULT_CONFIG

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV_VAR = "PERFAGENT_CONFIG_PATH"


class ConfigError(Exception):
    """Base exception for configuration errors.

    Attributes:
        message: The main error message
        file_path: Path to the config file (if applicable)
        line_number: Line number where the error occurred (if known)
        column: Column of the error (if known)
        suggestion: Helpful suggestion for fixing the error
        context_lines: Offending source lines shown under the message
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
        """Format the error message with location, context and suggestion."""
        if self.file_path:
            header = f"Error in {self.file_path}"
            if self.line_number:
                header += f" line {self.line_number}"
            parts = [header + ":"]
        else:
            parts = ["Configuration error:"]

        parts.append(f"  {self.message}")

        if self.context_lines and self.column:
            parts.append("")
            parts.extend(f"    {line}" for line in self.context_lines)
            parts.append(" " * (self.column + 3) + "^")

        if self.suggestion:
            parts.append("")
            parts.append(f"  Suggestion: {self.suggestion}")

        return "\n".join(parts)


class ConfigSyntaxError(ConfigError):
    """Error for YAML syntax issues."""


class ConfigValidationError(ConfigError):
    """Error for configuration value validation failures."""


# Known keys per section, used to suggest fixes for typos
VALID_KEYS: dict[tuple[str, ...], set[str]] = {
    (): {"sampling", "delivery", "logging", "sentry"},
    ("sampling",): {"interval", "batch_size", "include_network"},
    ("delivery",): {"server_url", "compress", "timeout", "history_size"},
    ("logging",): {"enabled", "level", "file"},
    ("sentry",): {"enabled", "dsn", "environment"},
}

# Environment variable pattern: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")

# YAML error text -> hint
_YAML_HINTS = (
    ("could not find expected ':'", "Check for missing colons after keys (e.g., 'key: value')"),
    ("mapping values are not allowed", "Check your indentation - nested keys must be indented"),
    ("found undefined alias", "Define YAML anchors (&name) before using aliases (*name)"),
    ("found character '\\t'", "Use spaces instead of tabs for indentation"),
)


def _suggest_key(unknown_key: str, valid_keys: set[str]) -> str | None:
    """Suggest the closest valid key for a misspelled one."""
    matches = get_close_matches(unknown_key, sorted(valid_keys), n=1, cutoff=0.6)
    if matches:
        return f"Did you mean '{matches[0]}'?"
    return None


def _describe(value: Any) -> str:
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


def _lookup(data: Any, loc: tuple[Any, ...]) -> Any:
    """Follow a pydantic error location into the raw config data."""
    for key in loc:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _format_pydantic_error(
    error: ValidationError,
    config_data: dict[str, Any],
    file_path: str | None = None,
) -> ConfigValidationError:
    """Convert a Pydantic ValidationError to a ConfigValidationError.

    Only the first error is reported; fixing it and re-running surfaces the
    next one.
    """
    errors = error.errors()
    if not errors:
        return ConfigValidationError("Configuration validation failed", file_path=file_path)

    first = errors[0]
    loc = tuple(first.get("loc", ()))
    error_type = first.get("type", "")
    ctx = first.get("ctx") or {}
    path = ".".join(str(part) for part in loc)
    actual = _lookup(config_data, loc)
    suggestion = None

    if error_type == "extra_forbidden":
        message = f"Unknown configuration key '{path}'"
        valid = VALID_KEYS.get(tuple(str(p) for p in loc[:-1]))
        if valid and loc:
            suggestion = _suggest_key(str(loc[-1]), valid)
        if suggestion is None:
            suggestion = "Run 'perfagent config' to see all valid options"
    elif error_type in ("greater_than", "greater_than_equal"):
        limit = ctx.get("gt", ctx.get("ge"))
        message = f"Value for '{path}' is out of range: {actual}"
        suggestion = f"Value must be at least {limit}"
    elif error_type in ("less_than", "less_than_equal"):
        limit = ctx.get("lt", ctx.get("le"))
        message = f"Value for '{path}' is out of range: {actual}"
        suggestion = f"Value must be at most {limit}"
    elif error_type in ("int_parsing", "float_parsing", "int_from_float"):
        message = f"Invalid number for '{path}': got {_describe(actual)}"
        suggestion = "Please provide a valid number"
    elif error_type in ("bool_type", "bool_parsing"):
        message = f"Expected boolean for '{path}': got {_describe(actual)}"
        suggestion = "Use 'true' or 'false'"
    elif error_type == "literal_error":
        message = f"Invalid value for '{path}': got {_describe(actual)}"
        suggestion = f"Expected one of: {ctx.get('expected', '')}"
    else:
        message = f"Invalid value for '{path}': {first.get('msg', 'invalid value')}"

    return ConfigValidationError(message, file_path=file_path, suggestion=suggestion)


def _format_yaml_error(
    error: yaml.YAMLError,
    file_path: str | None = None,
    content: str | None = None,
) -> ConfigSyntaxError:
    """Convert a YAML error to a ConfigSyntaxError with line context."""
    line_number = None
    column = None
    context_lines = None

    mark = getattr(error, "problem_mark", None)
    if mark is not None:
        line_number = mark.line + 1
        column = mark.column + 1
        if content:
            lines = content.splitlines()
            if 0 <= mark.line < len(lines):
                context_lines = [lines[mark.line]]

    error_text = str(error)
    suggestion = next((hint for needle, hint in _YAML_HINTS if needle in error_text), None)

    problem = getattr(error, "problem", None)
    message = f"YAML syntax error: {problem}" if problem else "Invalid YAML syntax"

    return ConfigSyntaxError(
        message,
        file_path=file_path,
        line_number=line_number,
        column=column,
        context_lines=context_lines,
        suggestion=suggestion,
    )


def expand_env_vars(value: Any) -> Any:
    """Recursively expand environment variables in config values.

    Supports ${VAR} and ${VAR:-default} syntax. Unset variables without a
    default are left as written.
    """
    if isinstance(value, str):

        def replace(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            if match.group(2) is not None:
                return match.group(2)
            return match.group(0)

        return ENV_VAR_PATTERN.sub(replace, value)
    if isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence.

    Neither input is modified.
    """
    result = base.copy()
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


# Pydantic Configuration Models


class SamplingConfig(BaseModel):
    """Sampling loop configuration."""

    model_config = ConfigDict(extra="forbid")

    interval: float = Field(default=60.0, ge=0.1, le=86400)
    batch_size: int = Field(default=30, ge=1, le=10000)
    include_network: bool = True


class DeliveryConfig(BaseModel):
    """Collector endpoint configuration."""

    model_config = ConfigDict(extra="forbid")

    server_url: str = "http://yourserver.com/api/monitor"
    compress: bool = True
    timeout: float = Field(default=30.0, gt=0, le=3600)
    history_size: int = Field(default=100, ge=1, le=100000)

    @field_validator("server_url")
    @classmethod
    def validate_server_url(cls, v: str) -> str:
        """Require an absolute http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("server_url must start with http:// or https://")
        return v


class LoggingConfig(BaseModel):
    """Log file configuration."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    file: str = "perf_monitor.log"

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        """Accept lowercase level names."""
        return v.upper() if isinstance(v, str) else v


class SentryConfig(BaseModel):
    """Error tracking configuration."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    dsn: str | None = None
    environment: str = "production"

    @property
    def active(self) -> bool:
        """True when error tracking is enabled and has somewhere to report."""
        return self.enabled and bool(self.dsn)


class Config(BaseModel):
    """Main configuration model for perfagent.

    Loaded from YAML files and overridable from the command line.
    """

    model_config = ConfigDict(extra="forbid")

    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    sentry: SentryConfig = Field(default_factory=SentryConfig)


def get_config_path(custom_path: str | None = None) -> Path | None:
    """Determine the configuration file path.

    Checks locations in this order:
    1. Custom path (if provided via --config flag)
    2. PERFAGENT_CONFIG_PATH environment variable
    3. ~/.config/perfagent/config.yaml (XDG standard)
    4. ~/.perfagent/config.yaml (legacy location)

    Args:
        custom_path: Optional custom config path from CLI

    Returns:
        Path to config file if found, None otherwise

    Raises:
        FileNotFoundError: If custom_path is given but does not exist
    """
    if custom_path:
        path = Path(custom_path).expanduser()
        if path.exists():
            return path
        raise FileNotFoundError(f"Config file not found: {custom_path}")

    env_path = os.environ.get(CONFIG_PATH_ENV_VAR)
    if env_path:
        path = Path(env_path).expanduser()
        if path.exists():
            return path
        logger.warning("%s points to missing file %s, using defaults", CONFIG_PATH_ENV_VAR, env_path)
        return None

    for candidate in (
        Path.home() / ".config" / "perfagent" / "config.yaml",
        Path.home() / ".perfagent" / "config.yaml",
    ):
        if candidate.exists():
            return candidate

    return None


def load_config(
    config_path: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> Config:
    """Load and validate configuration.

    Configuration is merged in this order (later overrides earlier):
    1. Default configuration
    2. Config file (if found)
    3. CLI overrides (if provided)

    Environment variables in config values are expanded after merging.

    Args:
        config_path: Optional custom config file path
        cli_overrides: Optional nested dict of command-line overrides

    Returns:
        Validated Config object

    Raises:
        FileNotFoundError: If custom config path doesn't exist
        ConfigSyntaxError: If config file has invalid YAML syntax
        ConfigValidationError: If config values are invalid
    """
    config_data: dict[str, Any] = DEFAULT_CONFIG
    path = get_config_path(config_path)

    if path is not None:
        content = path.read_text()
        try:
            file_config = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise _format_yaml_error(e, str(path), content) from e
        if not isinstance(file_config, dict):
            raise ConfigSyntaxError(
                f"Top level must be a mapping, got {_describe(file_config)}",
                file_path=str(path),
                suggestion="Start the file with a section such as 'sampling:'",
            )
        config_data = deep_merge(config_data, file_config)
        logger.debug("Loaded config file %s", path)

    if cli_overrides:
        config_data = deep_merge(config_data, cli_overrides)

    config_data = expand_env_vars(config_data)

    # An empty DSN from "${SENTRY_DSN:-}" means no DSN
    sentry_data = config_data.get("sentry")
    if isinstance(sentry_data, dict) and sentry_data.get("dsn") == "":
        config_data = deep_merge(config_data, {"sentry": {"dsn": None}})

    try:
        return Config(**config_data)
    except ValidationError as e:
        raise _format_pydantic_error(e, config_data, str(path) if path else None) from e
