"""Environment variable loading and validation."""

import os
from dataclasses import dataclass
from typing import Optional

from .exceptions import ConfigurationError

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class EnvironmentConfig:
    """Deployment overrides read from the process environment.

    Every field is optional; unset fields leave the YAML value in place.
    """

    clients_file: Optional[str] = None
    database_url: Optional[str] = None
    search_api_url: Optional[str] = None
    log_level: Optional[str] = None
    environment: str = "local"


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Optional environment variables:
    - CLIENTS_FILE: Path of the shared client JSON document
    - DATABASE_URL: SQLAlchemy URL for the sql store backend
    - SEARCH_API_URL: Listing search endpoint
    - LOG_LEVEL: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - ENVIRONMENT: Environment label attached to every log line

    Returns:
        EnvironmentConfig with validated values

    Raises:
        ConfigurationError: If a variable is set to an invalid value
    """
    errors = []

    clients_file = _read("CLIENTS_FILE")
    database_url = _read("DATABASE_URL")
    search_api_url = _read("SEARCH_API_URL")
    log_level = _read("LOG_LEVEL")
    environment = _read("ENVIRONMENT") or "local"

    if log_level:
        log_level = log_level.upper()
        if log_level not in VALID_LOG_LEVELS:
            errors.append(
                f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
            )

    if database_url and "://" not in database_url:
        errors.append(
            f"Invalid DATABASE_URL: '{database_url}'. Expected a URL such as sqlite:///./data/clients.db"
        )

    if search_api_url and not search_api_url.startswith(("http://", "https://")):
        errors.append(
            f"Invalid SEARCH_API_URL: '{search_api_url}'. Must start with http:// or https://"
        )

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Check the values in your .env file",
                "Unset variables you do not need; the config file provides defaults",
            ],
        )

    return EnvironmentConfig(
        clients_file=clients_file,
        database_url=database_url,
        search_api_url=search_api_url,
        log_level=log_level,
        environment=environment,
    )


def _read(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None
