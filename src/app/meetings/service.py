"""MeetingService -- the producer side of the reminder engine.

Creates meetings (validation, Meet link, persistence, invitation, timer
arming), lists them per creator, and applies manual status changes and
deletions. The engine itself only ever reads what this service writes.
"""

from __future__ import annotations

import secrets
import string
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from src.app.meetings.exceptions import (
    InvalidStatusTransition,
    MeetingNotFoundError,
    MeetingValidationError,
)
from src.app.meetings.reminders.content import build_invitation_message
from src.app.meetings.schemas import Meeting, MeetingCreate, MeetingCriteria, MeetingStatus

if TYPE_CHECKING:
    from src.app.meetings.reminders.scheduler import ReminderScheduler
    from src.app.meetings.repository import MeetingStore
    from src.app.services.notifications import NotificationSender

logger = structlog.get_logger(__name__)

MEET_BASE_URL = "https://meet.google.com/"

# Manual status changes; completed and cancelled are terminal
_ALLOWED_TRANSITIONS: dict[MeetingStatus, frozenset[MeetingStatus]] = {
    MeetingStatus.SCHEDULED: frozenset({MeetingStatus.IN_PROGRESS, MeetingStatus.CANCELLED}),
    MeetingStatus.IN_PROGRESS: frozenset({MeetingStatus.COMPLETED, MeetingStatus.CANCELLED}),
    MeetingStatus.COMPLETED: frozenset(),
    MeetingStatus.CANCELLED: frozenset(),
}


def generate_meet_url() -> str:
    """Random link in Google Meet's abc-defg-hij shape."""
    letters = string.ascii_lowercase
    alphanumeric = letters + string.digits
    code = "-".join(
        [
            "".join(secrets.choice(letters) for _ in range(3)),
            "".join(secrets.choice(alphanumeric) for _ in range(4)),
            "".join(secrets.choice(alphanumeric) for _ in range(3)),
        ]
    )
    return f"{MEET_BASE_URL}{code}"


class MeetingService:
    """Meeting creation and management on top of the store.

    Args:
        store: MeetingStore holding meetings.
        scheduler: ReminderScheduler that arms per-meeting timers, or None
            in short-lived processes whose timers would never fire. Those
            meetings are reminded by the running service's sweep.
        sender: NotificationSender for invitation e-mails.
    """

    def __init__(
        self,
        store: MeetingStore,
        scheduler: ReminderScheduler | None,
        sender: NotificationSender,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._sender = sender

    async def create_meeting(
        self, data: MeetingCreate | dict[str, Any], now: datetime | None = None
    ) -> Meeting:
        """Validate, persist, invite participants and arm reminder timers.

        Args:
            data: MeetingCreate or a raw mapping of its fields.
            now: Reference instant. Defaults to the current UTC time.

        Returns:
            The persisted Meeting.

        Raises:
            MeetingValidationError: Start not in the future, end not after
                start, no participants, or otherwise malformed input.
        """
        now = now or datetime.now(timezone.utc)

        if not isinstance(data, MeetingCreate):
            try:
                data = MeetingCreate.model_validate(data)
            except ValidationError as exc:
                raise MeetingValidationError(str(exc)) from exc

        if data.start_time <= now:
            raise MeetingValidationError("Meeting start time must be in the future")

        if data.meet_url is None:
            data = data.model_copy(update={"meet_url": generate_meet_url()})

        meeting = await self._store.create_meeting(data)
        logger.info(
            "meeting_created",
            meeting_id=str(meeting.id),
            title=meeting.title,
            start_time=meeting.start_time.isoformat(),
            participant_count=len(meeting.participants),
        )

        await self._send_invitation(meeting)
        if self._scheduler is not None:
            self._scheduler.on_meeting_created(meeting, now)
        else:
            logger.info("reminder_timers_left_to_sweep", meeting_id=str(meeting.id))
        return meeting

    async def _send_invitation(self, meeting: Meeting) -> None:
        message = build_invitation_message(meeting)
        try:
            sent = await self._sender.send(meeting.participants, message.subject, message.body)
        except Exception:
            logger.exception("meeting_invitation_error", meeting_id=str(meeting.id))
            return
        if not sent:
            logger.warning("meeting_invitation_failed", meeting_id=str(meeting.id))

    async def get_meeting(self, meeting_id: str, created_by: str | None = None) -> Meeting:
        """Load a meeting, optionally scoped to its creator.

        Raises:
            MeetingNotFoundError: Missing, or owned by someone else.
        """
        meeting = await self._store.get_meeting(meeting_id)
        if meeting is None or (created_by is not None and meeting.created_by != created_by):
            raise MeetingNotFoundError(meeting_id)
        return meeting

    async def list_meetings(self, created_by: str) -> list[Meeting]:
        """All meetings created by one user, ordered by start time."""
        meetings = await self._store.find_meetings(MeetingCriteria(created_by=created_by))
        return sorted(meetings, key=lambda m: m.start_time)

    async def update_status(
        self,
        meeting_id: str,
        status: MeetingStatus,
        created_by: str | None = None,
    ) -> Meeting:
        """Apply a manual status change.

        Setting the current status again is a no-op. Otherwise the change
        must move forward along scheduled -> in-progress -> completed, or
        cancel a meeting that is not yet terminal.

        Raises:
            MeetingNotFoundError: If the meeting does not exist.
            InvalidStatusTransition: If the change is not allowed.
        """
        status = MeetingStatus(status)
        meeting = await self.get_meeting(meeting_id, created_by)

        if meeting.status == status:
            return meeting

        if status not in _ALLOWED_TRANSITIONS[meeting.status]:
            raise InvalidStatusTransition(meeting.status.value, status.value)

        moved = await self._store.transition_status(meeting_id, meeting.status, status)
        if not moved:
            # Status changed underneath us (sweep or another writer)
            current = await self._store.get_meeting(meeting_id)
            if current is None:
                raise MeetingNotFoundError(meeting_id)
            raise InvalidStatusTransition(current.status.value, status.value)

        logger.info(
            "meeting_status_updated",
            meeting_id=meeting_id,
            from_status=meeting.status.value,
            to_status=status.value,
        )
        return meeting.model_copy(update={"status": status})

    async def cancel_meeting(self, meeting_id: str, created_by: str | None = None) -> Meeting:
        return await self.update_status(meeting_id, MeetingStatus.CANCELLED, created_by)

    async def delete_meeting(self, meeting_id: str, created_by: str | None = None) -> Meeting:
        """Delete a meeting. Armed timers for it become no-ops.

        Returns:
            The meeting as it was before deletion.

        Raises:
            MeetingNotFoundError: If the meeting does not exist.
        """
        meeting = await self.get_meeting(meeting_id, created_by)
        if not await self._store.delete_meeting(meeting_id):
            raise MeetingNotFoundError(meeting_id)
        logger.info("meeting_deleted", meeting_id=meeting_id, title=meeting.title)
        return meeting
