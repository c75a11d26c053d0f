"""ReminderSweep -- periodic catch-up pass and stale-meeting eviction.

The sweep is the source of truth for reminders and lifecycle status. Every
run re-derives what to do purely from wall-clock time and the stored flags,
so repeated or overlapping runs are harmless:

1. Load every scheduled and in-progress meeting.
2. For scheduled meetings, fire whichever reminder window the start time
   currently falls in, unless that flag is already set. The dispatcher
   re-reads the meeting before sending, so a cancel or a timer delivery
   landing after step 1 is honoured.
3. Advance status: scheduled -> in-progress once started, in-progress ->
   completed once ended. Transitions are compare-and-set on the current
   status, so a cancelled meeting is never touched.

A reminder whose window passes entirely between two runs (process down,
long stall) is skipped for good; there is no catch-up for elapsed windows.

Eviction runs on its own daily cadence and deletes completed meetings that
ended more than the retention period ago.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel

from src.app.core.monitoring import meeting_status_transitions_total, meetings_evicted_total
from src.app.meetings.reminders.dispatcher import DeliveryOutcome
from src.app.meetings.reminders.windows import due_reminders, next_status
from src.app.meetings.schemas import Meeting, MeetingCriteria, MeetingStatus

if TYPE_CHECKING:
    from src.app.meetings.reminders.dispatcher import ReminderDispatcher
    from src.app.meetings.repository import MeetingStore

logger = structlog.get_logger(__name__)

# ── Constants ────────────────────────────────────────────────────────────────

DEFAULT_RETENTION_DAYS = 7

ACTIVE_STATUSES = [MeetingStatus.SCHEDULED, MeetingStatus.IN_PROGRESS]


class SweepResult(BaseModel):
    """Counters for one sweep run."""

    meetings_checked: int = 0
    reminders_sent: int = 0
    reminders_failed: int = 0
    reminders_skipped: int = 0
    meetings_started: int = 0
    meetings_completed: int = 0
    errors: int = 0


class ReminderSweep:
    """Runs the reminder/status sweep and the stale-meeting eviction.

    Args:
        store: MeetingStore for queries, status transitions and deletes.
        dispatcher: ReminderDispatcher shared with the per-meeting timers.
        retention_days: How long completed meetings are kept after they end.
    """

    def __init__(
        self,
        store: MeetingStore,
        dispatcher: ReminderDispatcher,
        retention_days: int = DEFAULT_RETENTION_DAYS,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._retention = timedelta(days=retention_days)

    # ── Sweep ────────────────────────────────────────────────────────────

    async def run(self, now: datetime | None = None) -> SweepResult:
        """Run one sweep over all non-terminal meetings.

        Failures are isolated per meeting and logged; this method does not
        raise.

        Args:
            now: Evaluation instant. Defaults to the current UTC time.

        Returns:
            SweepResult with per-run counters.
        """
        now = now or datetime.now(timezone.utc)
        result = SweepResult()

        try:
            meetings = await self._store.find_meetings(
                MeetingCriteria(statuses=ACTIVE_STATUSES)
            )
        except Exception as exc:
            logger.error("reminder_sweep_query_failed", error=str(exc))
            result.errors += 1
            return result

        result.meetings_checked = len(meetings)

        for meeting in meetings:
            try:
                await self._process_meeting(meeting, now, result)
            except Exception:
                result.errors += 1
                logger.exception(
                    "reminder_sweep_meeting_failed",
                    meeting_id=str(meeting.id),
                    title=meeting.title,
                )

        logger.info("reminder_sweep_complete", now=now.isoformat(), **result.model_dump())
        return result

    async def _process_meeting(
        self, meeting: Meeting, now: datetime, result: SweepResult
    ) -> None:
        """Fire due reminders, then advance status for one meeting."""
        for kind in due_reminders(meeting, now):
            outcome = await self._dispatcher.deliver(str(meeting.id), kind, source="sweep")
            if outcome == DeliveryOutcome.SENT:
                result.reminders_sent += 1
            elif outcome == DeliveryOutcome.FAILED:
                result.reminders_failed += 1
            else:
                result.reminders_skipped += 1

        await self._advance_status(meeting, now, result)

    async def _advance_status(
        self, meeting: Meeting, now: datetime, result: SweepResult
    ) -> None:
        """Apply every transition that is due, one compare-and-set at a time.

        A meeting that both started and ended since the last run goes
        scheduled -> in-progress -> completed within the same sweep.
        """
        status = meeting.status
        target = next_status(status, meeting, now)

        while target is not None:
            moved = await self._store.transition_status(str(meeting.id), status, target)
            if not moved:
                # Cancelled, deleted, or already advanced by an overlapping run
                logger.debug(
                    "status_transition_skipped",
                    meeting_id=str(meeting.id),
                    from_status=status.value,
                    to_status=target.value,
                )
                return

            meeting_status_transitions_total.labels(to_status=target.value).inc()
            if target == MeetingStatus.IN_PROGRESS:
                result.meetings_started += 1
            else:
                result.meetings_completed += 1
            logger.info(
                "meeting_status_advanced",
                meeting_id=str(meeting.id),
                from_status=status.value,
                to_status=target.value,
            )

            status = target
            target = next_status(status, meeting, now)

    # ── Eviction ─────────────────────────────────────────────────────────

    async def evict_stale(self, now: datetime | None = None) -> int:
        """Delete completed meetings that ended more than the retention ago.

        Args:
            now: Evaluation instant. Defaults to the current UTC time.

        Returns:
            Number of meetings deleted (0 on failure).
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - self._retention

        try:
            deleted = await self._store.delete_meetings(
                MeetingCriteria(statuses=[MeetingStatus.COMPLETED], ended_before=cutoff)
            )
        except Exception as exc:
            logger.error("stale_meeting_eviction_failed", error=str(exc))
            return 0

        if deleted:
            meetings_evicted_total.inc(deleted)
        logger.info(
            "stale_meetings_evicted",
            deleted=deleted,
            cutoff=cutoff.isoformat(),
        )
        return deleted
