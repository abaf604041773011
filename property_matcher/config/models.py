"""Configuration schema models using Pydantic."""

from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .duration import DurationParseError, parse_duration


class StorageBackend(str, Enum):
    """Supported client store backends."""

    JSON = "json"
    SQL = "sql"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


def _validate_duration(value: str, field_name: str) -> str:
    try:
        parse_duration(value)
    except DurationParseError as e:
        raise ValueError(f"{field_name}: {e}") from e
    return value


class StorageConfig(BaseModel):
    """Where client records live."""

    backend: StorageBackend = Field(StorageBackend.JSON, description="json or sql")
    clients_file: Path = Field(
        Path("./data/private_clients.json"),
        description="JSON document shared by every bot process (json backend)",
    )
    database_url: str = Field(
        "sqlite:///./data/clients.db", min_length=1, description="SQLAlchemy URL (sql backend)"
    )
    keep_backup: bool = Field(
        True, description="Copy the previous document to <file>.backup before each write"
    )

    model_config = {"use_enum_values": True, "extra": "forbid"}


class SearchConfig(BaseModel):
    """Fan-out search settings."""

    base_url: str = Field(
        "https://masaak.com/wp-content/search.php",
        min_length=1,
        description="Listing search endpoint",
    )
    timeout: int = Field(15, ge=1, le=120, description="Per sub-query timeout (seconds)")
    user_agent: str = Field("PropertyMatcher/1.0", min_length=1)
    inter_call_delay: str = Field("300ms", description="Fixed delay between sub-queries")
    per_neighborhood_cap: int = Field(
        5, ge=1, le=50, description="Results kept from each neighborhood query"
    )
    max_results: int = Field(20, ge=1, le=200, description="Results returned by a deep search")
    include_variations: bool = Field(True, description="Issue relaxed variation queries")

    model_config = {"extra": "forbid"}

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return stripped

    @field_validator("user_agent")
    @classmethod
    def strip_user_agent(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("user_agent cannot be empty")
        return stripped

    @field_validator("inter_call_delay")
    @classmethod
    def validate_delay(cls, v: str) -> str:
        return _validate_duration(v, "inter_call_delay")

    @property
    def inter_call_delay_seconds(self) -> float:
        return parse_duration(self.inter_call_delay).total_seconds()


class MatchingConfig(BaseModel):
    """Offer-to-request matching rules."""

    similarity_threshold: int = Field(
        70, ge=0, le=100, description="Minimum similarity score for a candidate"
    )
    rate_limit: str = Field("1h", description="Minimum spacing between notifications per client")

    model_config = {"extra": "forbid"}

    @field_validator("rate_limit")
    @classmethod
    def validate_rate_limit(cls, v: str) -> str:
        return _validate_duration(v, "rate_limit")

    @property
    def rate_limit_delta(self) -> timedelta:
        return parse_duration(self.rate_limit)


class NotificationConfig(BaseModel):
    """Deferred match notification settings."""

    deferred: bool = Field(True, description="Queue sends instead of sending inline")
    dispatch_delay: str = Field("5m", description="Delay before a queued send fires")
    staleness_bound: str = Field(
        "10m", description="Queued sends older than this are dropped"
    )
    good_threshold: int = Field(
        70, ge=0, le=100, description="Breakdown sub-score listed as a reason to match"
    )

    model_config = {"extra": "forbid"}

    @field_validator("dispatch_delay", "staleness_bound")
    @classmethod
    def validate_durations(cls, v: str, info) -> str:
        return _validate_duration(v, info.field_name)

    @model_validator(mode="after")
    def validate_window(self):
        if self.dispatch_delay_delta > self.staleness_delta:
            raise ValueError(
                "dispatch_delay cannot exceed staleness_bound, every queued send would be dropped"
            )
        return self

    @property
    def dispatch_delay_delta(self) -> timedelta:
        return parse_duration(self.dispatch_delay)

    @property
    def staleness_delta(self) -> timedelta:
        return parse_duration(self.staleness_bound)


class MaintenanceConfig(BaseModel):
    """Periodic housekeeping of the client store."""

    cleanup_interval: str = Field("24h", description="How often inactive clients are purged")
    inactive_after: str = Field("7d", description="Idle time before an unprotected client is purged")

    model_config = {"extra": "forbid"}

    @field_validator("cleanup_interval", "inactive_after")
    @classmethod
    def validate_durations(cls, v: str, info) -> str:
        return _validate_duration(v, info.field_name)

    @property
    def cleanup_interval_seconds(self) -> int:
        return int(parse_duration(self.cleanup_interval).total_seconds())

    @property
    def inactive_after_delta(self) -> timedelta:
        return parse_duration(self.inactive_after)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True, "extra": "forbid"}


class AppConfig(BaseModel):
    """Root configuration object for the property matcher."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    maintenance: MaintenanceConfig = Field(default_factory=MaintenanceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "forbid"}

    def storage_target(self) -> Optional[str]:
        """Human-readable location of the configured store, for logs."""
        if self.storage.backend == StorageBackend.SQL.value:
            return self.storage.database_url
        return str(self.storage.clients_file)
