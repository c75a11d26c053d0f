"""Meeting repository -- async store for meetings and their reminder state.

Provides MeetingRepository with the session_factory callable pattern and the
MeetingStore protocol the reminder engine depends on. Handles serialization
between Pydantic schemas and the SQLAlchemy model.

Every mutation the engine performs is a field-scoped UPDATE guarded by a
WHERE clause on the current value (compare-and-set), so the sweep and the
per-meeting timers can race without a lock and without clobbering each
other's columns. Updates against a vanished record return False instead of
raising.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone
from typing import Any, Protocol

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.app.meetings.models import MeetingModel
from src.app.meetings.schemas import (
    Meeting,
    MeetingCreate,
    MeetingCriteria,
    MeetingStatus,
    ReminderKind,
    RemindersSent,
)

logger = structlog.get_logger(__name__)

REMINDER_COLUMNS: dict[ReminderKind, str] = {
    ReminderKind.ONE_DAY_BEFORE: "reminder_one_day_sent",
    ReminderKind.ONE_HOUR_BEFORE: "reminder_one_hour_sent",
    ReminderKind.FIFTEEN_MINS_BEFORE: "reminder_fifteen_mins_sent",
}

# Columns writable through update_fields()
UPDATABLE_FIELDS = frozenset(
    {"title", "description", "status", "meet_url", *REMINDER_COLUMNS.values()}
)


class MeetingStore(Protocol):
    """Store contract consumed by the reminder engine and meeting service."""

    async def create_meeting(self, data: MeetingCreate) -> Meeting: ...

    async def get_meeting(self, meeting_id: str) -> Meeting | None: ...

    async def find_meetings(self, criteria: MeetingCriteria) -> list[Meeting]: ...

    async def update_fields(self, meeting_id: str, fields: dict[str, Any]) -> bool: ...

    async def mark_reminder_sent(self, meeting_id: str, kind: ReminderKind) -> bool: ...

    async def transition_status(
        self, meeting_id: str, from_status: MeetingStatus, to_status: MeetingStatus
    ) -> bool: ...

    async def delete_meeting(self, meeting_id: str) -> bool: ...

    async def delete_meetings(self, criteria: MeetingCriteria) -> int: ...


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_meeting(model: MeetingModel) -> Meeting:
    """Convert MeetingModel to Meeting schema."""
    return Meeting(
        id=model.id,
        title=model.title,
        description=model.description,
        start_time=model.start_time,
        end_time=model.end_time,
        participants=list(model.participants_data or []),
        status=MeetingStatus(model.status),
        reminders_sent=RemindersSent(
            one_day_before=model.reminder_one_day_sent,
            one_hour_before=model.reminder_one_hour_sent,
            fifteen_mins_before=model.reminder_fifteen_mins_sent,
        ),
        meet_url=model.meet_url,
        created_by=model.created_by,
        created_at=model.created_at,
        updated_at=model.updated_at or model.created_at,
    )


def _criteria_clauses(criteria: MeetingCriteria) -> list:
    """Translate MeetingCriteria into SQLAlchemy WHERE clauses."""
    clauses = []
    if criteria.statuses is not None:
        clauses.append(MeetingModel.status.in_([s.value for s in criteria.statuses]))
    if criteria.starts_before is not None:
        clauses.append(MeetingModel.start_time < criteria.starts_before)
    if criteria.ended_before is not None:
        clauses.append(MeetingModel.end_time < criteria.ended_before)
    if criteria.created_by is not None:
        clauses.append(MeetingModel.created_by == criteria.created_by)
    return clauses


# ── Repository ──────────────────────────────────────────────────────────────


class MeetingRepository:
    """Async CRUD and compare-and-set updates for meetings.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def create_meeting(self, data: MeetingCreate) -> Meeting:
        """Persist a new meeting with status scheduled and all flags false.

        Args:
            data: Validated MeetingCreate.

        Returns:
            Meeting with all persisted fields.
        """
        async for session in self._session_factory():
            model = MeetingModel(
                id=uuid.uuid4(),
                title=data.title,
                description=data.description,
                start_time=data.start_time,
                end_time=data.end_time,
                participants_data=list(data.participants),
                status=MeetingStatus.SCHEDULED.value,
                reminder_one_day_sent=False,
                reminder_one_hour_sent=False,
                reminder_fifteen_mins_sent=False,
                meet_url=data.meet_url,
                created_by=data.created_by,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_meeting(model)

    async def get_meeting(self, meeting_id: str) -> Meeting | None:
        """Get a meeting by ID, or None if it does not exist or the ID is malformed."""
        try:
            key = uuid.UUID(meeting_id)
        except ValueError:
            return None
        async for session in self._session_factory():
            stmt = select(MeetingModel).where(MeetingModel.id == key)
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                return None
            return _model_to_meeting(model)

    async def find_meetings(self, criteria: MeetingCriteria) -> list[Meeting]:
        """Get all meetings matching the criteria, ordered by start time."""
        async for session in self._session_factory():
            stmt = (
                select(MeetingModel)
                .where(*_criteria_clauses(criteria))
                .order_by(MeetingModel.start_time)
            )
            result = await session.execute(stmt)
            return [_model_to_meeting(m) for m in result.scalars().all()]

    async def update_fields(self, meeting_id: str, fields: dict[str, Any]) -> bool:
        """Field-scoped partial update.

        Only the named columns are written; other columns keep whatever a
        concurrent writer stored.

        Returns:
            True if a row was updated, False if the meeting does not exist.

        Raises:
            ValueError: If a field is not updatable.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)}")

        values = {
            key: (value.value if isinstance(value, MeetingStatus) else value)
            for key, value in fields.items()
        }
        values["updated_at"] = datetime.now(timezone.utc)
        return await self._execute_update(
            update(MeetingModel)
            .where(MeetingModel.id == uuid.UUID(meeting_id))
            .values(**values)
        )

    async def mark_reminder_sent(self, meeting_id: str, kind: ReminderKind) -> bool:
        """Set a reminder flag only if it is currently false.

        Returns:
            True if this call flipped the flag, False if it was already set
            or the meeting no longer exists.
        """
        column = getattr(MeetingModel, REMINDER_COLUMNS[kind])
        updated = await self._execute_update(
            update(MeetingModel)
            .where(MeetingModel.id == uuid.UUID(meeting_id), column.is_(False))
            .values({column: True, MeetingModel.updated_at: datetime.now(timezone.utc)})
        )
        if not updated:
            logger.debug(
                "reminder_flag_not_updated",
                meeting_id=meeting_id,
                kind=kind.value,
            )
        return updated

    async def transition_status(
        self, meeting_id: str, from_status: MeetingStatus, to_status: MeetingStatus
    ) -> bool:
        """Move status from one value to another only if it still holds from_status.

        Returns:
            True if the transition happened, False if the status had already
            changed (e.g. cancelled) or the meeting is gone.
        """
        return await self._execute_update(
            update(MeetingModel)
            .where(
                MeetingModel.id == uuid.UUID(meeting_id),
                MeetingModel.status == from_status.value,
            )
            .values(status=to_status.value, updated_at=datetime.now(timezone.utc))
        )

    async def delete_meeting(self, meeting_id: str) -> bool:
        """Delete one meeting. Returns False if it did not exist."""
        async for session in self._session_factory():
            result = await session.execute(
                delete(MeetingModel).where(MeetingModel.id == uuid.UUID(meeting_id))
            )
            await session.commit()
            return (result.rowcount or 0) > 0

    async def delete_meetings(self, criteria: MeetingCriteria) -> int:
        """Delete every meeting matching the criteria. Returns the count deleted.

        Raises:
            ValueError: If the criteria are empty (would delete every meeting).
        """
        clauses = _criteria_clauses(criteria)
        if not clauses:
            raise ValueError("Refusing bulk delete without criteria")
        async for session in self._session_factory():
            result = await session.execute(delete(MeetingModel).where(*clauses))
            await session.commit()
            return result.rowcount or 0

    async def _execute_update(self, stmt) -> bool:
        async for session in self._session_factory():
            result = await session.execute(stmt)
            await session.commit()
            return (result.rowcount or 0) > 0
