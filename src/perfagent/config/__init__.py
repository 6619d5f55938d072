"""Configuration module for perfagent.

This module provides:
- Pydantic models for configuration validation
- YAML config file loading and discovery
- Default configuration values
- Environment variable expansion
- Clear error messages for config issues
"""

from perfagent.config.defaults import DEFAULT_CONFIG
from perfagent.config.loader import (
    Config,
    ConfigError,
    ConfigSyntaxError,
    ConfigValidationError,
    DeliveryConfig,
    LoggingConfig,
    SamplingConfig,
    SentryConfig,
    deep_merge,
    expand_env_vars,
    get_config_path,
    load_config,
)

__all__ = [
    "Config",
    "ConfigError",
    "ConfigSyntaxError",
    "ConfigValidationError",
    "DEFAULT_CONFIG",
    "DeliveryConfig",
    "LoggingConfig",
    "SamplingConfig",
    "SentryConfig",
    "deep_merge",
    "expand_env_vars",
    "get_config_path",
    "load_config",
]
