"""
Application Configuration Module

Centralizes all configuration using environment variables with Pydantic Settings.

Usage:
    from orderdesk.core.config import get_settings

    settings = get_settings()
    ttl = settings.session_ttl_seconds

Every field can be overridden through an environment variable of the same
name (case-insensitive) or a ``.env`` file in the working directory.
"""

import logging
import sys
from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentMode(str, Enum):
    """
    Application environment modes.

    Attributes:
        DEVELOPMENT: Local machine, verbose errors allowed
        STAGING: Pre-production
        PRODUCTION: Live restaurant floor
    """
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    STAGING = "staging"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        env_mode: Current environment (development/production/staging)
        debug: Enable verbose logging and error details

        # Database
        database_url: SQLAlchemy async connection string

        # Authentication
        admin_username / admin_password: Account seeded at startup if absent
        session_ttl_hours: Lifetime of an admin bearer token

        # Live stream
        heartbeat_interval_seconds: Session sweep + ping period
        subscriber_queue_size: Pending events a slow stream may hold

        # Export
        export_enabled: Queue created orders for Excel export via Celery
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # ENVIRONMENT
    # ==========================================================================

    env_mode: EnvironmentMode = Field(
        default=EnvironmentMode.DEVELOPMENT,
        description="Application environment mode"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging"
    )

    # ==========================================================================
    # APPLICATION
    # ==========================================================================

    app_name: str = Field(
        default="Order Desk",
        description="Application display name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    api_port: int = Field(
        default=3000,
        description="API server port"
    )

    # ==========================================================================
    # DATABASE
    # ==========================================================================

    database_url: str = Field(
        default="sqlite+aiosqlite:///./orders.db",
        description="SQLAlchemy async database URL"
    )
    database_echo: bool = Field(
        default=False,
        description="Log every SQL statement"
    )

    # ==========================================================================
    # AUTHENTICATION
    # ==========================================================================

    admin_username: str = Field(
        default="admin",
        description="Username of the admin seeded at startup"
    )
    admin_password: str = Field(
        default="admin123",
        description="Password of the admin seeded at startup"
    )
    session_ttl_hours: float = Field(
        default=12.0,
        gt=0,
        description="Bearer token lifetime in hours"
    )

    # ==========================================================================
    # LIVE ORDER STREAM
    # ==========================================================================

    heartbeat_interval_seconds: float = Field(
        default=25.0,
        gt=0,
        description="Interval between session sweeps and stream pings"
    )
    subscriber_queue_size: int = Field(
        default=100,
        ge=1,
        description="Undelivered events a stream connection may buffer"
    )

    # ==========================================================================
    # REDIS / CELERY
    # ==========================================================================

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )
    export_enabled: bool = Field(
        default=False,
        description="Queue created orders for Excel export"
    )

    # ==========================================================================
    # FILE STORAGE
    # ==========================================================================

    data_directory: str = Field(
        default="data",
        description="Directory for data files"
    )
    excel_filename: str = Field(
        default="orders.xlsx",
        description="Excel export filename"
    )
    excel_lock_timeout: int = Field(
        default=30,
        description="Seconds to wait for file lock"
    )

    # ==========================================================================
    # VALIDATORS
    # ==========================================================================

    @field_validator("env_mode", mode="before")
    @classmethod
    def validate_env_mode(cls, v: str) -> EnvironmentMode:
        """Convert string to EnvironmentMode enum."""
        if isinstance(v, EnvironmentMode):
            return v
        try:
            return EnvironmentMode(v.lower())
        except ValueError:
            valid = [e.value for e in EnvironmentMode]
            raise ValueError(f"Invalid env_mode. Must be one of: {valid}")

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def session_ttl_seconds(self) -> float:
        return self.session_ttl_hours * 3600


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are read once per process; call ``get_settings.cache_clear()``
    after changing the environment (tests do this).

    Returns:
        Settings: Configured application settings
    """
    return Settings()


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured package logger
    """
    settings = get_settings()

    if settings.debug:
        level = logging.DEBUG

    log_format = "%(asctime)s │ %(levelname)-8s │ %(name)-25s │ %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt=date_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    return logging.getLogger("orderdesk")
