"""Pydantic v2 schemas for the meeting reminder domain.

Defines the data contracts for meetings, their lifecycle status, the three
reminder flags, and the query criteria the store accepts. The reminder
engine, the meeting service, and the repository all import from this module.

All instants are timezone-aware UTC datetimes. Naive inputs are interpreted
as UTC.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ── Enums ────────────────────────────────────────────────────────────────────


class MeetingStatus(str, Enum):
    """Lifecycle status of a meeting.

    scheduled -> in-progress -> completed is driven by the reminder engine.
    cancelled is set externally and is absorbing.
    """

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (MeetingStatus.COMPLETED, MeetingStatus.CANCELLED)


class ReminderKind(str, Enum):
    """The three time-relative reminders a meeting can receive."""

    ONE_DAY_BEFORE = "one_day_before"
    ONE_HOUR_BEFORE = "one_hour_before"
    FIFTEEN_MINS_BEFORE = "fifteen_mins_before"


# ── Meeting Models ───────────────────────────────────────────────────────────


class RemindersSent(BaseModel):
    """Per-meeting reminder flags. Each flips false -> true at most once."""

    one_day_before: bool = False
    one_hour_before: bool = False
    fifteen_mins_before: bool = False

    def is_sent(self, kind: ReminderKind) -> bool:
        return getattr(self, kind.value)


class MeetingCreate(BaseModel):
    """Input for creating a meeting."""

    title: str = Field(min_length=1, max_length=500)
    description: str | None = None
    start_time: datetime
    end_time: datetime
    participants: list[str] = Field(min_length=1)
    meet_url: str | None = None
    created_by: str | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @field_validator("participants")
    @classmethod
    def _clean_participants(cls, value: list[str]) -> list[str]:
        cleaned = [p.strip() for p in value if p and p.strip()]
        if not cleaned:
            raise ValueError("at least one participant is required")
        return cleaned

    @model_validator(mode="after")
    def _check_time_order(self) -> MeetingCreate:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class Meeting(BaseModel):
    """A persisted meeting as seen by the reminder engine."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime
    participants: list[str] = Field(default_factory=list)
    status: MeetingStatus = MeetingStatus.SCHEDULED
    reminders_sent: RemindersSent = Field(default_factory=RemindersSent)
    meet_url: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def duration_minutes(self) -> int:
        return round((self.end_time - self.start_time).total_seconds() / 60)


# ── Query Criteria ───────────────────────────────────────────────────────────


class MeetingCriteria(BaseModel):
    """Predicate for store queries and bulk deletes. Unset fields match all."""

    statuses: list[MeetingStatus] | None = None
    starts_before: datetime | None = None
    ended_before: datetime | None = None
    created_by: str | None = None

    def matches(self, meeting: Meeting) -> bool:
        """Evaluate the predicate in memory (used by non-SQL stores)."""
        if self.statuses is not None and meeting.status not in self.statuses:
            return False
        if self.starts_before is not None and not meeting.start_time < self.starts_before:
            return False
        if self.ended_before is not None and not meeting.end_time < self.ended_before:
            return False
        if self.created_by is not None and meeting.created_by != self.created_by:
            return False
        return True
