"""Shared test doubles and fixtures for the reminder engine tests.

Provides:
- InMemoryMeetingStore: dict-backed MeetingStore with compare-and-set updates
- RecordingSender: NotificationSender that records every send
- A fixed reference instant and a meeting factory relative to it
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from src.app.meetings.reminders.dispatcher import ReminderDispatcher
from src.app.meetings.reminders.sweep import ReminderSweep
from src.app.meetings.repository import REMINDER_COLUMNS, UPDATABLE_FIELDS
from src.app.meetings.schemas import (
    Meeting,
    MeetingCreate,
    MeetingCriteria,
    MeetingStatus,
    ReminderKind,
    RemindersSent,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


# ── Test Doubles ─────────────────────────────────────────────────────────────


class InMemoryMeetingStore:
    """In-memory test double for MeetingRepository.

    Mirrors the MeetingStore protocol using a dict for storage. Flag and
    status updates are compare-and-set like the SQL implementation.
    """

    def __init__(self) -> None:
        self.meetings: dict[str, Meeting] = {}
        self.fail_find = False
        self.fail_transition_for: set[str] = set()

    def add(self, meeting: Meeting) -> Meeting:
        self.meetings[str(meeting.id)] = meeting
        return meeting

    async def create_meeting(self, data: MeetingCreate) -> Meeting:
        meeting = Meeting(
            id=uuid.uuid4(),
            title=data.title,
            description=data.description,
            start_time=data.start_time,
            end_time=data.end_time,
            participants=list(data.participants),
            meet_url=data.meet_url,
            created_by=data.created_by,
            created_at=datetime.now(timezone.utc),
            updated_at=datetime.now(timezone.utc),
        )
        return self.add(meeting)

    async def get_meeting(self, meeting_id: str) -> Meeting | None:
        return self.meetings.get(meeting_id)

    async def find_meetings(self, criteria: MeetingCriteria) -> list[Meeting]:
        if self.fail_find:
            raise ConnectionError("store unavailable")
        results = [m for m in self.meetings.values() if criteria.matches(m)]
        return sorted(results, key=lambda m: m.start_time)

    async def update_fields(self, meeting_id: str, fields: dict[str, Any]) -> bool:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)}")
        meeting = self.meetings.get(meeting_id)
        if meeting is None:
            return False
        update: dict[str, Any] = {}
        flags = meeting.reminders_sent.model_dump()
        for key, value in fields.items():
            kind = next((k for k, col in REMINDER_COLUMNS.items() if col == key), None)
            if kind is not None:
                flags[kind.value] = value
            else:
                update[key] = value
        update["reminders_sent"] = RemindersSent(**flags)
        self.meetings[meeting_id] = meeting.model_copy(update=update)
        return True

    async def mark_reminder_sent(self, meeting_id: str, kind: ReminderKind) -> bool:
        meeting = self.meetings.get(meeting_id)
        if meeting is None or meeting.reminders_sent.is_sent(kind):
            return False
        flags = meeting.reminders_sent.model_copy(update={kind.value: True})
        self.meetings[meeting_id] = meeting.model_copy(update={"reminders_sent": flags})
        return True

    async def transition_status(
        self, meeting_id: str, from_status: MeetingStatus, to_status: MeetingStatus
    ) -> bool:
        if meeting_id in self.fail_transition_for:
            raise RuntimeError("transition failed")
        meeting = self.meetings.get(meeting_id)
        if meeting is None or meeting.status != from_status:
            return False
        self.meetings[meeting_id] = meeting.model_copy(update={"status": to_status})
        return True

    async def delete_meeting(self, meeting_id: str) -> bool:
        return self.meetings.pop(meeting_id, None) is not None

    async def delete_meetings(self, criteria: MeetingCriteria) -> int:
        doomed = [mid for mid, m in self.meetings.items() if criteria.matches(m)]
        for mid in doomed:
            del self.meetings[mid]
        return len(doomed)


class RecordingSender:
    """NotificationSender double that records sends and can be told to fail."""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.raise_error: Exception | None = None
        self.sent: list[dict[str, Any]] = []

    async def send(self, recipients: Sequence[str], subject: str, body: str) -> bool:
        self.sent.append({"recipients": list(recipients), "subject": subject, "body": body})
        if self.raise_error is not None:
            raise self.raise_error
        return self.succeed


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def store() -> InMemoryMeetingStore:
    return InMemoryMeetingStore()


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def dispatcher(store, sender) -> ReminderDispatcher:
    return ReminderDispatcher(store, sender)


@pytest.fixture
def sweep(store, dispatcher) -> ReminderSweep:
    return ReminderSweep(store, dispatcher)


@pytest.fixture
def make_meeting(store):
    """Factory adding a meeting that starts `starts_in` after `base` (NOW)."""

    def _make(
        starts_in: timedelta,
        duration: timedelta = timedelta(minutes=30),
        status: MeetingStatus = MeetingStatus.SCHEDULED,
        reminders_sent: RemindersSent | None = None,
        base: datetime = NOW,
        **overrides: Any,
    ) -> Meeting:
        start = base + starts_in
        meeting = Meeting(
            title=overrides.pop("title", "Quarterly planning"),
            description=overrides.pop("description", "Roadmap review"),
            start_time=start,
            end_time=start + duration,
            participants=overrides.pop("participants", ["a@example.com", "b@example.com"]),
            status=status,
            reminders_sent=reminders_sent or RemindersSent(),
            meet_url=overrides.pop("meet_url", "https://meet.google.com/abc-defg-hij"),
            **overrides,
        )
        return store.add(meeting)

    return _make
