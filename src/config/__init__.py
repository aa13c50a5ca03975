"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="policy-engine", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Policy Configuration ==========
    owner_id: str = Field(
        default="default",
        description="Account whose business hours and SLA records are loaded"
    )
    policy_config_path: Path = Field(
        default=Path("policy_config.yaml"),
        description="Path to the YAML file holding business hours and SLA records"
    )
    watch_config_file: bool = Field(
        default=True,
        description="Hot-reload the policy YAML file when it changes"
    )

    # ========== Status Monitoring ==========
    status_endpoint_url: Optional[str] = Field(
        default=None,
        description="Endpoint answering status lookups for monitored instances"
    )
    status_api_key: Optional[str] = Field(
        default=None,
        description="Bearer token sent with status lookups"
    )
    status_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for a single status lookup",
        ge=0.1,
        le=120
    )
    monitor_enabled: bool = Field(default=True, description="Enable status monitoring")
    poll_interval_seconds: float = Field(
        default=30.0,
        description="Seconds between sweeps while every target is settled",
        gt=0
    )
    poll_fast_interval_seconds: float = Field(
        default=10.0,
        description="Seconds between sweeps while any target is transitional",
        gt=0
    )
    poll_initial_delay_seconds: float = Field(
        default=2.0,
        description="Delay before the first sweep after monitoring starts",
        ge=0
    )
    transitional_statuses: List[str] = Field(
        default=["connecting", "pending"],
        description="Statuses that switch the poller to its fast cadence"
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for status change notifications"
    )
    slack_channel: str = Field(
        default="#instance-status",
        description="Slack channel for status change notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("transitional_statuses")
    @classmethod
    def normalize_statuses(cls, v: List[str]) -> List[str]:
        """Statuses are compared lower-cased."""
        return [s.strip().lower() for s in v if s.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# ========== Constants ==========

class SLAKind(str):
    """Which SLA clock a verdict was computed against."""
    FIRST_RESPONSE = "first_response"
    RESOLUTION = "resolution"


class Priority(str):
    """Conversation priority labels with a stock multiplier."""
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PollerPhase(str):
    """Lifecycle phases of a status poller."""
    IDLE = "idle"
    ACTIVE = "active"
    STOPPED = "stopped"


class Cadence(str):
    """Polling cadence while a poller is active."""
    FAST = "fast"
    NORMAL = "normal"


class InstanceStatus(str):
    """Instance statuses the status endpoint is known to report."""
    CONNECTING = "connecting"
    PENDING = "pending"
    CONNECTED = "connected"
    OPEN = "open"
    DISCONNECTED = "disconnected"


# ========== Defaults ==========

DEFAULT_TRANSITIONAL_STATUSES = frozenset({InstanceStatus.CONNECTING, InstanceStatus.PENDING})

DEFAULT_PRIORITY_MULTIPLIERS = {
    Priority.URGENT: 0.25,
    Priority.HIGH: 0.5,
    Priority.MEDIUM: 1.0,
    Priority.LOW: 2.0,
}

DEFAULT_FIRST_RESPONSE_MINUTES = 15
DEFAULT_RESOLUTION_MINUTES = 240
DEFAULT_TIMEZONE = "America/Sao_Paulo"
DEFAULT_AUTO_REPLY_TEMPLATE = (
    "Estamos fora do horário de atendimento. "
    "Voltamos {dia} das {start} às {end}."
)

# SLA warning band: last quarter of the deadline
SLA_WARNING_FRACTION = 0.25

