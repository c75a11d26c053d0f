"""Process host for the meeting reminder service.

Wires the store, notification sender, dispatcher, sweep, scheduler and
meeting service, then keeps the reminder scheduler running on the event loop
until SIGINT or SIGTERM.

Run with:
    python -m src.app.main
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import structlog

from src.app.config import Settings, get_settings
from src.app.core.database import close_db, get_session, init_db
from src.app.core.logging import configure_structlog
from src.app.core.monitoring import init_sentry, start_metrics_server
from src.app.meetings.reminders import ReminderDispatcher, ReminderScheduler, ReminderSweep
from src.app.meetings.repository import MeetingRepository
from src.app.meetings.service import MeetingService
from src.app.services.notifications import NotificationSender, build_notification_sender

logger = structlog.get_logger(__name__)


@dataclass
class ReminderApp:
    """Wired components of one running process."""

    repository: MeetingRepository
    sender: NotificationSender
    dispatcher: ReminderDispatcher
    sweep: ReminderSweep
    scheduler: ReminderScheduler
    meetings: MeetingService


def build_app(settings: Settings, arm_timers: bool = True) -> ReminderApp:
    """Wire the reminder engine against the configured store and sender.

    Pass arm_timers=False from one-shot scripts: the scheduler there is never
    started, so new meetings are left to the service's sweep.
    """
    repository = MeetingRepository(session_factory=get_session)
    sender = build_notification_sender(settings)
    dispatcher = ReminderDispatcher(repository, sender)
    sweep = ReminderSweep(
        repository,
        dispatcher,
        retention_days=settings.EVICTION_RETENTION_DAYS,
    )
    scheduler = ReminderScheduler(
        dispatcher,
        sweep,
        sweep_interval_seconds=settings.SWEEP_INTERVAL_SECONDS,
        eviction_hour_utc=settings.EVICTION_HOUR_UTC,
    )
    meetings = MeetingService(repository, scheduler if arm_timers else None, sender)
    return ReminderApp(
        repository=repository,
        sender=sender,
        dispatcher=dispatcher,
        sweep=sweep,
        scheduler=scheduler,
        meetings=meetings,
    )


@asynccontextmanager
async def lifespan(settings: Settings | None = None) -> AsyncGenerator[ReminderApp, None]:
    """Init logging, monitoring and the database; start and stop the scheduler."""
    settings = settings or get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    try:
        start_metrics_server(settings.METRICS_PORT)
    except OSError:
        logger.warning("metrics_server_start_failed", port=settings.METRICS_PORT, exc_info=True)

    await init_db()
    app = build_app(settings)
    app.scheduler.start()
    logger.info("reminder_service_started", environment=settings.ENVIRONMENT.value)

    try:
        yield app
    finally:
        app.scheduler.stop()
        await close_db()
        logger.info("reminder_service_stopped")


async def main() -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    async with lifespan():
        await stop_event.wait()
        logger.info("shutdown_signal_received")


if __name__ == "__main__":
    asyncio.run(main())
