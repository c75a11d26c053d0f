"""Tests for ReminderScheduler: per-meeting timers, cadences and lifecycle."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from src.app.meetings.reminders.dispatcher import ReminderDispatcher
from src.app.meetings.reminders.scheduler import (
    EVICTION_JOB_ID,
    SWEEP_JOB_ID,
    ReminderScheduler,
    timer_job_id,
)
from src.app.meetings.schemas import MeetingStatus, ReminderKind, RemindersSent


@pytest_asyncio.fixture
async def scheduler(store, dispatcher, sweep):
    sched = ReminderScheduler(dispatcher, sweep, sweep_interval_seconds=60)
    yield sched
    sched.stop()


# ── Timer Arming ─────────────────────────────────────────────────────────────


class TestOnMeetingCreated:
    def test_arms_all_three_for_distant_meeting(self, scheduler, now, make_meeting):
        meeting = make_meeting(timedelta(days=2))

        armed = scheduler.on_meeting_created(meeting, now)

        assert armed == list(ReminderKind)
        assert sorted(scheduler.pending_timer_ids(str(meeting.id))) == sorted(
            timer_job_id(str(meeting.id), kind) for kind in ReminderKind
        )

    def test_timer_fires_at_start_minus_lead(self, scheduler, now, make_meeting):
        meeting = make_meeting(timedelta(days=2))
        scheduler.on_meeting_created(meeting, now)

        job = scheduler._scheduler.get_job(
            timer_job_id(str(meeting.id), ReminderKind.ONE_HOUR_BEFORE)
        )

        assert job.trigger.run_date == meeting.start_time - timedelta(hours=1)
        assert job.args == (str(meeting.id), ReminderKind.ONE_HOUR_BEFORE)

    def test_past_instants_are_skipped(self, scheduler, now, make_meeting):
        meeting = make_meeting(timedelta(minutes=90))

        armed = scheduler.on_meeting_created(meeting, now)

        assert armed == [ReminderKind.ONE_HOUR_BEFORE, ReminderKind.FIFTEEN_MINS_BEFORE]

    def test_nothing_armed_inside_final_window(self, scheduler, now, make_meeting):
        meeting = make_meeting(timedelta(minutes=5))

        assert scheduler.on_meeting_created(meeting, now) == []
        assert scheduler.pending_timer_ids() == []


# ── Timer Firing ─────────────────────────────────────────────────────────────


class TestFireTimer:
    @pytest.mark.asyncio
    async def test_delivers_and_flags(self, scheduler, store, sender, make_meeting):
        meeting = make_meeting(timedelta(hours=1))

        await scheduler.fire_timer(str(meeting.id), ReminderKind.ONE_HOUR_BEFORE)

        assert len(sender.sent) == 1
        assert store.meetings[str(meeting.id)].reminders_sent.one_hour_before is True

    @pytest.mark.asyncio
    async def test_deleted_meeting_is_noop(self, scheduler, store, sender, make_meeting):
        meeting = make_meeting(timedelta(hours=1))
        del store.meetings[str(meeting.id)]

        await scheduler.fire_timer(str(meeting.id), ReminderKind.ONE_HOUR_BEFORE)

        assert sender.sent == []

    @pytest.mark.asyncio
    async def test_cancelled_meeting_is_noop(self, scheduler, sender, make_meeting):
        meeting = make_meeting(timedelta(hours=1), status=MeetingStatus.CANCELLED)

        await scheduler.fire_timer(str(meeting.id), ReminderKind.ONE_HOUR_BEFORE)

        assert sender.sent == []

    @pytest.mark.asyncio
    async def test_already_flagged_by_sweep_is_noop(self, scheduler, sender, make_meeting):
        meeting = make_meeting(
            timedelta(hours=1), reminders_sent=RemindersSent(one_hour_before=True)
        )

        await scheduler.fire_timer(str(meeting.id), ReminderKind.ONE_HOUR_BEFORE)

        assert sender.sent == []

    @pytest.mark.asyncio
    async def test_store_failure_is_contained(self, sweep, sender):
        broken_store = AsyncMock()
        broken_store.get_meeting.side_effect = ConnectionError("db gone")
        sched = ReminderScheduler(ReminderDispatcher(broken_store, sender), sweep)

        await sched.fire_timer("00000000-0000-0000-0000-000000000000", ReminderKind.ONE_DAY_BEFORE)

        assert sender.sent == []

    @pytest.mark.asyncio
    async def test_timer_and_sweep_send_once(self, scheduler, sweep, sender, now, make_meeting):
        meeting = make_meeting(timedelta(minutes=45))

        await sweep.run(now)
        await scheduler.fire_timer(str(meeting.id), ReminderKind.ONE_HOUR_BEFORE)

        assert len(sender.sent) == 1

    @pytest.mark.asyncio
    async def test_timer_completing_mid_sweep_sends_once(
        self, scheduler, store, sweep, sender, now, make_meeting
    ):
        """A timer that delivers after the sweep's query is not repeated by the sweep."""
        meeting = make_meeting(timedelta(hours=1))
        original_find = store.find_meetings

        async def find_then_fire(criteria):
            found = await original_find(criteria)
            await scheduler.fire_timer(str(meeting.id), ReminderKind.ONE_HOUR_BEFORE)
            return found

        store.find_meetings = find_then_fire

        result = await sweep.run(now)

        assert len(sender.sent) == 1
        assert result.reminders_sent == 0
        assert result.reminders_skipped == 1
        assert store.meetings[str(meeting.id)].reminders_sent.one_hour_before is True


# ── Lifecycle ────────────────────────────────────────────────────────────────


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_registers_cadences(self, scheduler):
        scheduler.start()

        sweep_job = scheduler._scheduler.get_job(SWEEP_JOB_ID)
        eviction_job = scheduler._scheduler.get_job(EVICTION_JOB_ID)

        assert scheduler.running is True
        assert isinstance(sweep_job.trigger, IntervalTrigger)
        assert sweep_job.trigger.interval == timedelta(seconds=60)
        assert sweep_job.max_instances == 1
        assert sweep_job.coalesce is True
        assert isinstance(eviction_job.trigger, CronTrigger)

    @pytest.mark.asyncio
    async def test_start_runs_a_sweep_immediately(self, scheduler, sender, make_meeting):
        make_meeting(timedelta(minutes=45), base=datetime.now(timezone.utc))

        scheduler.start()
        for _ in range(100):
            if sender.sent:
                break
            await asyncio.sleep(0.01)

        assert len(sender.sent) == 1

    @pytest.mark.asyncio
    async def test_repeated_arming_replaces_timers(self, scheduler, make_meeting):
        scheduler.start()
        meeting = make_meeting(timedelta(days=2), base=datetime.now(timezone.utc))

        scheduler.on_meeting_created(meeting)
        scheduler.on_meeting_created(meeting)

        assert len(scheduler.pending_timer_ids(str(meeting.id))) == 3

    @pytest.mark.asyncio
    async def test_stop_shuts_down(self, scheduler):
        scheduler.start()
        scheduler.stop()

        assert scheduler.running is False

    def test_stop_before_start_is_noop(self, scheduler):
        scheduler.stop()

        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_job_bodies_never_raise(self, dispatcher):
        failing_sweep = MagicMock()
        failing_sweep.run = AsyncMock(side_effect=RuntimeError("boom"))
        failing_sweep.evict_stale = AsyncMock(side_effect=RuntimeError("boom"))
        sched = ReminderScheduler(dispatcher, failing_sweep)

        await sched.run_sweep_job()
        await sched.run_eviction_job()

        failing_sweep.run.assert_awaited_once()
        failing_sweep.evict_stale.assert_awaited_once()
