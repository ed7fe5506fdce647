"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="storepulse", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/storepulse",
        description="Async database URL (postgresql+asyncpg or sqlite+aiosqlite)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)
    create_tables_on_startup: bool = Field(
        default=True,
        description="Create missing tables at startup (development only)"
    )

    # ========== SLA Policy ==========
    sla_policy_path: Path = Field(
        default=Path("sla_policy.yaml"),
        description="Path to SLA policy YAML file"
    )

    # ========== Scheduler ==========
    scheduler_enabled: bool = Field(
        default=True,
        description="Run the assignment and sweep jobs in-process"
    )
    assignment_cron_hour: int = Field(
        default=9,
        description="Hour of day (server time) for the daily assignment job",
        ge=0,
        le=23
    )
    assignment_cron_minute: int = Field(
        default=0,
        description="Minute of the hour for the daily assignment job",
        ge=0,
        le=59
    )
    sla_sweep_interval_seconds: int = Field(
        default=3600,
        description="Seconds between SLA sweeps of open tasks",
        ge=60
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
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

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

# Ratings at or above this value are positive and never escalate
POSITIVE_RATING_THRESHOLD = 4

MIN_RATING = 1
MAX_RATING = 5


class UserRole(str):
    """User roles."""
    SUPERADMIN = "SUPERADMIN"
    ADMIN = "ADMIN"
    TL = "TL"               # Team lead, owns shop sections


class TaskStatus(str):
    """Task lifecycle statuses."""
    PENDING = "PENDING"
    ON_TIME = "ON_TIME"
    DELAYED = "DELAYED"


class SLAStatus(str):
    """SLA verdicts. PENDING until the task is resolved."""
    ON_TIME = "ON_TIME"
    DELAYED = "DELAYED"
    PENDING = "PENDING"


class DeadlineTier(str):
    """Display-only urgency tiers for open tasks."""
    WITHIN_24H = "within_24h"
    WITHIN_48H = "within_48h"
    OVERDUE = "overdue"


class CronJobName(str):
    """Batch job names written to the cron log."""
    DAILY_TASK_ASSIGNMENT = "DAILY_TASK_ASSIGNMENT"
    SLA_STATUS_SWEEP = "SLA_STATUS_SWEEP"


class CronJobStatus(str):
    """Outcome of a batch run."""
    SUCCESS = "SUCCESS"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    FAILED = "FAILED"


# ========== Lists for validation ==========

TERMINAL_TASK_STATUSES = [TaskStatus.ON_TIME, TaskStatus.DELAYED]
