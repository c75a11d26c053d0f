"""Plain-text message content for meeting invitations and reminders."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from src.app.meetings.reminders.windows import remaining_time_phrase
from src.app.meetings.schemas import Meeting, ReminderKind

NO_DESCRIPTION = "No description provided"


class MessageContent(BaseModel):
    """Subject and body handed to the notification sender."""

    subject: str
    body: str


def format_instant(value: datetime) -> str:
    return value.strftime("%A, %B %d, %Y at %H:%M UTC")


def _details_block(meeting: Meeting) -> list[str]:
    lines = [
        "Meeting details:",
        f"- Title: {meeting.title}",
        f"- Description: {meeting.description or NO_DESCRIPTION}",
        f"- Start time: {format_instant(meeting.start_time)}",
        f"- End time: {format_instant(meeting.end_time)}",
        f"- Duration: {meeting.duration_minutes} minutes",
    ]
    if meeting.meet_url:
        lines.append(f"- Join link: {meeting.meet_url}")
    return lines


def build_reminder_message(meeting: Meeting, kind: ReminderKind) -> MessageContent:
    """Reminder subject and body for one reminder kind."""
    remaining = remaining_time_phrase(kind)
    lines = [
        "MEETING REMINDER",
        "",
        f'Your meeting "{meeting.title}" is starting in {remaining}.',
        "",
        *_details_block(meeting),
        "",
        "Don't forget to join the meeting!",
    ]
    if kind == ReminderKind.FIFTEEN_MINS_BEFORE:
        lines += ["", "This is your final reminder - the meeting starts very soon."]

    return MessageContent(
        subject=f'Reminder: "{meeting.title}" starts in {remaining}',
        body="\n".join(lines),
    )


def build_invitation_message(meeting: Meeting) -> MessageContent:
    """Invitation sent once when a meeting is created."""
    lines = [
        "You have been invited to a meeting.",
        "",
        *_details_block(meeting),
        "",
        "You will receive reminders 24 hours, 1 hour and 15 minutes before it starts.",
    ]
    return MessageContent(
        subject=f"Meeting Invitation: {meeting.title}",
        body="\n".join(lines),
    )
