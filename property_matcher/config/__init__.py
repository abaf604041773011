"""Configuration management module for the property matcher."""

from .duration import DurationParseError, format_duration, parse_duration
from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config, validate_config_file
from .models import (
    AppConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    MaintenanceConfig,
    MatchingConfig,
    NotificationConfig,
    SearchConfig,
    StorageBackend,
    StorageConfig,
)

__all__ = [
    # Loader functions
    "load_config",
    "validate_config_file",
    "load_environment_config",
    # Configuration models
    "AppConfig",
    "StorageConfig",
    "SearchConfig",
    "MatchingConfig",
    "NotificationConfig",
    "MaintenanceConfig",
    "LoggingConfig",
    "EnvironmentConfig",
    # Enums
    "StorageBackend",
    "LogLevel",
    "LogFormat",
    # Durations
    "parse_duration",
    "format_duration",
    "DurationParseError",
    # Exceptions
    "ConfigurationError",
]
