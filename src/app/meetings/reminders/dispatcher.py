"""ReminderDispatcher -- the single send-then-flag operation.

Shared by the sweep and the per-meeting timers. Delivery is best-effort:
one attempt per call, failures are logged, and the reminder flag is set
after the attempt whether or not the send succeeded, so a failing transport
never causes repeated resends.

Callers hand over a meeting id, never a snapshot. The meeting is re-read
from the store right before sending, and nothing goes out when it has been
deleted, has left `scheduled`, or already carries the flag. An in-process
in-flight set keeps the sweep and a timer from both passing that check for
the same reminder; it needs no lock because everything runs on one event
loop and there is no await between the membership check and the insert.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

import structlog

from src.app.core.monitoring import reminders_delivered_total
from src.app.meetings.reminders.content import build_reminder_message
from src.app.meetings.schemas import Meeting, MeetingStatus, ReminderKind

if TYPE_CHECKING:
    from src.app.meetings.repository import MeetingStore
    from src.app.services.notifications import NotificationSender

logger = structlog.get_logger(__name__)


class DeliveryOutcome(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"
    STALE = "stale"


class ReminderDispatcher:
    """Builds reminder content, sends it, and marks the reminder flag.

    Args:
        store: MeetingStore used to reload the meeting and for the flag
            compare-and-set.
        sender: NotificationSender that delivers to all participants.
    """

    def __init__(self, store: MeetingStore, sender: NotificationSender) -> None:
        self._store = store
        self._sender = sender
        self._in_flight: set[tuple[str, ReminderKind]] = set()

    async def deliver(
        self, meeting_id: str, kind: ReminderKind, source: str = "sweep"
    ) -> DeliveryOutcome:
        """Send one reminder kind for a meeting and flag it as attempted.

        Never raises.

        Args:
            meeting_id: Meeting to remind.
            kind: Which reminder to send.
            source: "sweep" or "timer", for logs and metrics.

        Returns:
            SENT or FAILED after an attempt. SKIPPED if the same reminder
            is already being delivered by the other path. STALE if the
            stored meeting is gone, no longer scheduled, or already flagged.
            FAILED without a flag write if the meeting could not be loaded.
        """
        key = (meeting_id, kind)
        if key in self._in_flight:
            logger.debug(
                "reminder_already_in_flight",
                meeting_id=meeting_id,
                kind=kind.value,
                source=source,
            )
            return self._count(kind, DeliveryOutcome.SKIPPED, source)

        self._in_flight.add(key)
        try:
            try:
                meeting = await self._store.get_meeting(meeting_id)
            except Exception as exc:
                # No attempt was made, so the flag stays clear for the next sweep
                logger.error(
                    "reminder_meeting_lookup_failed",
                    meeting_id=meeting_id,
                    kind=kind.value,
                    source=source,
                    error=str(exc),
                )
                return self._count(kind, DeliveryOutcome.FAILED, source)

            if not self._still_due(meeting, kind):
                logger.debug(
                    "reminder_no_longer_due",
                    meeting_id=meeting_id,
                    kind=kind.value,
                    source=source,
                    status=meeting.status.value if meeting else None,
                )
                return self._count(kind, DeliveryOutcome.STALE, source)

            sent = await self._send(meeting, kind)
            await self._mark_sent(meeting_id, kind)
        finally:
            self._in_flight.discard(key)

        if sent:
            logger.info(
                "reminder_sent",
                meeting_id=meeting_id,
                title=meeting.title,
                kind=kind.value,
                source=source,
                recipient_count=len(meeting.participants),
            )
            return self._count(kind, DeliveryOutcome.SENT, source)

        logger.warning(
            "reminder_delivery_failed",
            meeting_id=meeting_id,
            title=meeting.title,
            kind=kind.value,
            source=source,
        )
        return self._count(kind, DeliveryOutcome.FAILED, source)

    @staticmethod
    def _still_due(meeting: Meeting | None, kind: ReminderKind) -> bool:
        return (
            meeting is not None
            and meeting.status == MeetingStatus.SCHEDULED
            and not meeting.reminders_sent.is_sent(kind)
        )

    @staticmethod
    def _count(kind: ReminderKind, outcome: DeliveryOutcome, source: str) -> DeliveryOutcome:
        reminders_delivered_total.labels(
            kind=kind.value, outcome=outcome.value, source=source
        ).inc()
        return outcome

    async def _send(self, meeting: Meeting, kind: ReminderKind) -> bool:
        try:
            message = build_reminder_message(meeting, kind)
            return await self._sender.send(meeting.participants, message.subject, message.body)
        except Exception:
            logger.exception(
                "reminder_send_error",
                meeting_id=str(meeting.id),
                kind=kind.value,
            )
            return False

    async def _mark_sent(self, meeting_id: str, kind: ReminderKind) -> None:
        try:
            await self._store.mark_reminder_sent(meeting_id, kind)
        except Exception:
            logger.exception(
                "reminder_flag_update_failed",
                meeting_id=meeting_id,
                kind=kind.value,
            )
