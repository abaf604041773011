"""Configuration loader for the property matcher."""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from pydantic import ValidationError

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .models import AppConfig
from .validators import check_for_warnings, emit_warnings

DEFAULT_CONFIG_LOCATIONS = (
    Path("config.yaml"),
    Path("config") / "config.yaml",
)


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load and validate configuration from a YAML file and environment variables.

    Config file lookup:
    1. Use config_path if given
    2. Try config.yaml in the current directory
    3. Try ./config/config.yaml
    4. Fail with a helpful error message

    Environment overrides (CLIENTS_FILE, DATABASE_URL, SEARCH_API_URL,
    LOG_LEVEL) are applied on top of the file before validation, so the
    returned AppConfig is the effective configuration.

    Args:
        config_path: Optional path to configuration file

    Returns:
        Tuple of (AppConfig, EnvironmentConfig)

    Raises:
        ConfigurationError: If configuration is invalid or file not found
    """
    config_file = _find_config_file(config_path)
    config_dict = _read_yaml(config_file)

    warnings = check_for_warnings(config_dict)
    if warnings:
        emit_warnings(warnings)

    env_config = load_environment_config()
    _apply_environment_overrides(config_dict, env_config)

    try:
        app_config = AppConfig.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError.from_validation_error(
            e,
            suggestions=[
                "Review config.example.yaml for correct format",
                "Verify field types match the expected schema",
                "Durations accept values like 300ms, 5m, 1h, 7d or PT1H",
            ],
        ) from e

    return app_config, env_config


def validate_config_file(config_path: Path) -> bool:
    """
    Validate a configuration file without applying environment overrides.

    Args:
        config_path: Path to configuration file

    Returns:
        True if valid, False otherwise (errors printed to stdout)
    """
    try:
        config_dict = _read_yaml(config_path)
        AppConfig.model_validate(config_dict)
    except ConfigurationError as e:
        print(f"✗ Configuration validation failed:\n{e}")
        return False
    except ValidationError as e:
        print(f"✗ Configuration validation failed:\n{ConfigurationError.from_validation_error(e)}")
        return False

    print(f"✓ Configuration file {config_path} is valid")
    return True


def _read_yaml(config_file: Path) -> Dict[str, Any]:
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(
            f"Configuration file not found: {config_file}",
            suggestions=[
                "Copy config.example.yaml to config.yaml",
                f"Ensure {config_file} exists and is readable",
            ],
        ) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse YAML configuration: {e}",
            suggestions=[
                "Check YAML syntax in your config file",
                "Ensure proper indentation (use spaces, not tabs)",
            ],
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read configuration file: {e}",
            suggestions=[f"Ensure {config_file} is readable", "Check file permissions"],
        ) from e

    if not config_dict:
        raise ConfigurationError(
            "Configuration file is empty",
            suggestions=[
                "Copy config.example.yaml to config.yaml",
                "Add at least one section, e.g. 'storage:' with its defaults",
            ],
        )

    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            "Configuration file must contain a mapping at the top level",
            errors=[f"Got {type(config_dict).__name__}"],
        )

    return config_dict


def _apply_environment_overrides(config_dict: Dict[str, Any], env_config: EnvironmentConfig) -> None:
    overrides = (
        ("storage", "clients_file", env_config.clients_file),
        ("storage", "database_url", env_config.database_url),
        ("search", "base_url", env_config.search_api_url),
        ("logging", "level", env_config.log_level),
    )

    for section, key, value in overrides:
        if value is None:
            continue
        section_dict = config_dict.get(section)
        if not isinstance(section_dict, dict):
            section_dict = {}
            config_dict[section] = section_dict
        section_dict[key] = value


def _find_config_file(config_path: Optional[Path] = None) -> Path:
    if config_path:
        if not config_path.exists():
            raise ConfigurationError(
                f"Specified configuration file not found: {config_path}",
                suggestions=[f"Ensure {config_path} exists", "Check the path and try again"],
            )
        return config_path

    for candidate in DEFAULT_CONFIG_LOCATIONS:
        if candidate.exists():
            return candidate

    raise ConfigurationError(
        "Configuration file not found",
        errors=[f"Tried: {candidate}" for candidate in DEFAULT_CONFIG_LOCATIONS],
        suggestions=[
            "Copy config.example.yaml to config.yaml",
            "Use --config flag to specify a custom location",
        ],
    )
