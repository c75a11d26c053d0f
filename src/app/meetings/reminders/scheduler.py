"""Background scheduler for the reminder sweep, eviction, and per-meeting timers.

Wraps an APScheduler AsyncIOScheduler running on the application's event
loop:
- Reminder sweep every SWEEP_INTERVAL_SECONDS (first run at start)
- Stale-meeting eviction daily at EVICTION_HOUR_UTC:00
- One-shot DateTrigger jobs armed per meeting at creation time for
  start-24h, start-1h and start-15m

Per-meeting timers live only in this process. A restart drops them and the
sweep delivers whatever windows are still open. Every job body catches and
logs its own failures so nothing reaches APScheduler or the host.

Exports:
    ReminderScheduler: Hosts the periodic cadences and the per-meeting timers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from src.app.core.monitoring import reminder_timers_armed_total, track_sweep
from src.app.meetings.reminders.windows import fire_instants
from src.app.meetings.schemas import Meeting, ReminderKind

if TYPE_CHECKING:
    from src.app.meetings.reminders.dispatcher import ReminderDispatcher
    from src.app.meetings.reminders.sweep import ReminderSweep

logger = structlog.get_logger(__name__)

# ── Constants ────────────────────────────────────────────────────────────────

SWEEP_JOB_ID = "reminder_sweep"
EVICTION_JOB_ID = "stale_meeting_eviction"


def timer_job_id(meeting_id: str, kind: ReminderKind) -> str:
    return f"reminder:{meeting_id}:{kind.value}"


class ReminderScheduler:
    """Hosts the reminder engine's cadences and one-shot timers.

    Args:
        dispatcher: ReminderDispatcher shared with the sweep.
        sweep: ReminderSweep run on the periodic cadences.
        sweep_interval_seconds: Seconds between sweep runs.
        eviction_hour_utc: Hour of day (UTC) for the daily eviction.
    """

    def __init__(
        self,
        dispatcher: ReminderDispatcher,
        sweep: ReminderSweep,
        sweep_interval_seconds: int = 60,
        eviction_hour_utc: int = 0,
    ) -> None:
        self._dispatcher = dispatcher
        self._sweep = sweep
        self._sweep_interval_seconds = sweep_interval_seconds
        self._eviction_hour_utc = eviction_hour_utc
        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    # ── Lifecycle ────────────────────────────────────────────────────────

    def start(self) -> None:
        """Register the periodic jobs and start the scheduler.

        Must be called once per process from inside the running event loop.
        """
        # Overlapping sweeps are skipped rather than stacked
        self._scheduler.add_job(
            self.run_sweep_job,
            trigger=IntervalTrigger(seconds=self._sweep_interval_seconds),
            id=SWEEP_JOB_ID,
            name="Reminder sweep and status advancement",
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self._sweep_interval_seconds,
        )

        self._scheduler.add_job(
            self.run_eviction_job,
            trigger=CronTrigger(hour=self._eviction_hour_utc, minute=0, timezone=timezone.utc),
            id=EVICTION_JOB_ID,
            name="Evict completed meetings past retention",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )

        self._scheduler.start()
        self._started = True
        logger.info(
            "reminder_scheduler_started",
            sweep_interval_seconds=self._sweep_interval_seconds,
            eviction_schedule=f"Daily {self._eviction_hour_utc:02d}:00 UTC",
            pending_timers=len(self.pending_timer_ids()),
        )

    def stop(self) -> None:
        """Shut down the scheduler without waiting for running jobs."""
        if self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False
            logger.info("reminder_scheduler_stopped")

    # ── Per-Meeting Timers ───────────────────────────────────────────────

    def on_meeting_created(
        self, meeting: Meeting, now: datetime | None = None
    ) -> list[ReminderKind]:
        """Arm one-shot timers for the meeting's future reminder instants.

        Call once, right after the meeting is persisted. Instants already in
        the past are skipped; the sweep covers any window still open.
        Timer ids are stable per (meeting, kind), so a repeated call replaces
        the earlier timers instead of adding more.

        Args:
            meeting: The newly created meeting.
            now: Reference instant. Defaults to the current UTC time.

        Returns:
            Reminder kinds that got a timer.
        """
        now = now or datetime.now(timezone.utc)
        meeting_id = str(meeting.id)
        armed: list[ReminderKind] = []

        for kind, fire_at in fire_instants(meeting, now):
            self._scheduler.add_job(
                self.fire_timer,
                trigger=DateTrigger(run_date=fire_at, timezone=timezone.utc),
                args=[meeting_id, kind],
                id=timer_job_id(meeting_id, kind),
                name=f"{kind.value} reminder for meeting {meeting_id}",
                replace_existing=True,
                misfire_grace_time=self._sweep_interval_seconds,
            )
            reminder_timers_armed_total.labels(kind=kind.value).inc()
            armed.append(kind)

        logger.info(
            "reminder_timers_armed",
            meeting_id=meeting_id,
            kinds=[k.value for k in armed],
            skipped=[k.value for k in ReminderKind if k not in armed],
        )
        return armed

    def pending_timer_ids(self, meeting_id: str | None = None) -> list[str]:
        """Ids of armed per-meeting timers, optionally for one meeting."""
        prefix = f"reminder:{meeting_id}:" if meeting_id else "reminder:"
        return [job.id for job in self._scheduler.get_jobs() if job.id.startswith(prefix)]

    async def fire_timer(self, meeting_id: str, kind: ReminderKind) -> None:
        """Timer body: deliver the reminder if the stored meeting still needs it.

        The dispatcher reloads the meeting, so a meeting that was deleted,
        cancelled, or already reminded by the sweep is a silent no-op.
        """
        outcome = await self._dispatcher.deliver(meeting_id, kind, source="timer")
        logger.debug(
            "reminder_timer_fired",
            meeting_id=meeting_id,
            kind=kind.value,
            outcome=outcome.value,
        )

    # ── Periodic Jobs ────────────────────────────────────────────────────

    async def run_sweep_job(self) -> None:
        """Sweep job body with metrics; never raises."""
        try:
            async with track_sweep() as tracker:
                result = await self._sweep.run()
                tracker["meetings"] = result.meetings_checked
        except Exception:
            logger.exception("reminder_sweep_job_failed")

    async def run_eviction_job(self) -> None:
        """Eviction job body; never raises."""
        try:
            await self._sweep.evict_stale()
        except Exception:
            logger.exception("stale_meeting_eviction_job_failed")
