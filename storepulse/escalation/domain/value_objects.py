"""
SLA Value Objects
==================

Immutable value objects and pure calculations for the escalation domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from storepulse.config import DeadlineTier, SLAStatus

DEFAULT_ON_TIME_HOURS = 24
DEFAULT_OVERDUE_HOURS = 48


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class SLAClock:
    """
    Pure functions for SLA calculations.

    Stateless utility class - all SLA timing rules in one place, no I/O.
    Thresholds are compared against the exact elapsed duration, so a task
    closed at 24h00m is on time and one closed at 24h01m is delayed.
    """

    @staticmethod
    def as_utc(value: datetime) -> datetime:
        """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @staticmethod
    def elapsed(assigned_at: datetime, until: datetime) -> timedelta:
        """Duration between the SLA clock start and the given instant."""
        return SLAClock.as_utc(until) - SLAClock.as_utc(assigned_at)

    @staticmethod
    def elapsed_hours(assigned_at: datetime, until: datetime) -> int:
        """Whole hours elapsed, truncated toward zero (display value)."""
        return int(SLAClock.elapsed(assigned_at, until) / timedelta(hours=1))

    @staticmethod
    def resolve_sla_status(
        assigned_at: datetime,
        resolved_at: Optional[datetime] = None,
        on_time_hours: int = DEFAULT_ON_TIME_HOURS
    ) -> str:
        """
        SLA verdict for a task.

        Args:
            assigned_at: When the SLA clock started
            resolved_at: When the task was closed, None while open
            on_time_hours: Hours allowed for an on-time resolution

        Returns:
            ON_TIME or DELAYED for resolved tasks; PENDING for open ones,
            however long they have been open.
        """
        if resolved_at is None:
            return SLAStatus.PENDING

        if SLAClock.elapsed(assigned_at, resolved_at) <= timedelta(hours=on_time_hours):
            return SLAStatus.ON_TIME
        return SLAStatus.DELAYED

    @staticmethod
    def deadline_tier(
        assigned_at: datetime,
        now: Optional[datetime] = None,
        on_time_hours: int = DEFAULT_ON_TIME_HOURS,
        overdue_hours: int = DEFAULT_OVERDUE_HOURS
    ) -> str:
        """
        Urgency tier for display; never persisted.

        Returns:
            within_24h, within_48h or overdue (for the default thresholds)
        """
        elapsed = SLAClock.elapsed(assigned_at, now or utc_now())

        if elapsed <= timedelta(hours=on_time_hours):
            return DeadlineTier.WITHIN_24H
        if elapsed <= timedelta(hours=overdue_hours):
            return DeadlineTier.WITHIN_48H
        return DeadlineTier.OVERDUE


class SLAPolicy(BaseModel):
    """
    SLA thresholds loaded from YAML.

    This is a value object - immutable and defined by its attributes.
    """
    model_config = ConfigDict(frozen=True)

    on_time_hours: int = Field(
        default=DEFAULT_ON_TIME_HOURS,
        ge=1,
        description="Hours within which a resolution counts as on time"
    )
    overdue_hours: int = Field(
        default=DEFAULT_OVERDUE_HOURS,
        ge=1,
        description="Hours after which an open task is shown as overdue"
    )

    @model_validator(mode="after")
    def validate_thresholds(self) -> "SLAPolicy":
        if self.overdue_hours < self.on_time_hours:
            raise ValueError("overdue_hours must be >= on_time_hours")
        return self

    def resolve_sla_status(
        self,
        assigned_at: datetime,
        resolved_at: Optional[datetime] = None
    ) -> str:
        return SLAClock.resolve_sla_status(assigned_at, resolved_at, self.on_time_hours)

    def deadline_tier(self, assigned_at: datetime, now: Optional[datetime] = None) -> str:
        return SLAClock.deadline_tier(
            assigned_at, now, self.on_time_hours, self.overdue_hours
        )
