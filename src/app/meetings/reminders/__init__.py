"""Reminder scheduling engine.

Two cooperating paths deliver the 24h / 1h / 15m reminders:
- ReminderSweep: 60-second idempotent pass over all non-terminal meetings
  that fires entered reminder windows and advances lifecycle status
- ReminderScheduler: hosts the sweep and daily eviction cadences and arms
  one-shot per-meeting timers at creation time

Both paths go through ReminderDispatcher, the single send-then-flag
operation.
"""

from src.app.meetings.reminders.dispatcher import DeliveryOutcome, ReminderDispatcher
from src.app.meetings.reminders.scheduler import ReminderScheduler
from src.app.meetings.reminders.sweep import ReminderSweep, SweepResult

__all__ = [
    "DeliveryOutcome",
    "ReminderDispatcher",
    "ReminderScheduler",
    "ReminderSweep",
    "SweepResult",
]
