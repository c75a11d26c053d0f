"""Pure time arithmetic for reminder windows and lifecycle status.

Windows are half-open: inclusive on the near side, exclusive on the far
side, so every instant before a meeting's start belongs to exactly one
window:

    24h window: now+1h  < start <= now+24h
    1h window:  now+15m < start <= now+1h
    15m window: now     < start <= now+15m
"""

from __future__ import annotations

from datetime import datetime, timedelta

from src.app.meetings.schemas import Meeting, MeetingStatus, ReminderKind

# ── Constants ────────────────────────────────────────────────────────────────

LEAD_TIMES: dict[ReminderKind, timedelta] = {
    ReminderKind.ONE_DAY_BEFORE: timedelta(hours=24),
    ReminderKind.ONE_HOUR_BEFORE: timedelta(hours=1),
    ReminderKind.FIFTEEN_MINS_BEFORE: timedelta(minutes=15),
}

# Far edge of each window is the next kind's lead time (zero for the last)
_WINDOW_FLOORS: dict[ReminderKind, timedelta] = {
    ReminderKind.ONE_DAY_BEFORE: LEAD_TIMES[ReminderKind.ONE_HOUR_BEFORE],
    ReminderKind.ONE_HOUR_BEFORE: LEAD_TIMES[ReminderKind.FIFTEEN_MINS_BEFORE],
    ReminderKind.FIFTEEN_MINS_BEFORE: timedelta(0),
}


def in_window(kind: ReminderKind, start_time: datetime, now: datetime) -> bool:
    """Whether start_time falls inside the kind's window as seen from now."""
    return now + _WINDOW_FLOORS[kind] < start_time <= now + LEAD_TIMES[kind]


def due_reminders(meeting: Meeting, now: datetime) -> list[ReminderKind]:
    """Reminder kinds a sweep at `now` should fire for this meeting.

    Only scheduled meetings receive reminders, and a kind whose flag is
    already set never fires again. At most one kind is returned because
    the windows are disjoint.
    """
    if meeting.status != MeetingStatus.SCHEDULED:
        return []
    return [
        kind
        for kind in ReminderKind
        if not meeting.reminders_sent.is_sent(kind)
        and in_window(kind, meeting.start_time, now)
    ]


def fire_instants(
    meeting: Meeting, now: datetime
) -> list[tuple[ReminderKind, datetime]]:
    """Absolute instants for per-meeting timers that are still in the future."""
    instants = []
    for kind, lead in LEAD_TIMES.items():
        fire_at = meeting.start_time - lead
        if fire_at > now:
            instants.append((kind, fire_at))
    return instants


def next_status(status: MeetingStatus, meeting: Meeting, now: datetime) -> MeetingStatus | None:
    """Engine-driven status a meeting in `status` should move to, if any."""
    if status == MeetingStatus.SCHEDULED and meeting.start_time <= now:
        return MeetingStatus.IN_PROGRESS
    if status == MeetingStatus.IN_PROGRESS and meeting.end_time <= now:
        return MeetingStatus.COMPLETED
    return None


def remaining_time_phrase(kind: ReminderKind) -> str:
    """Human phrase for how long until the meeting starts."""
    return {
        ReminderKind.ONE_DAY_BEFORE: "24 hours",
        ReminderKind.ONE_HOUR_BEFORE: "1 hour",
        ReminderKind.FIFTEEN_MINS_BEFORE: "15 minutes",
    }[kind]
