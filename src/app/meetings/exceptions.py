"""Domain exceptions raised by the meeting service."""

from __future__ import annotations


class MeetingError(Exception):
    """Base class for meeting domain errors."""


class MeetingNotFoundError(MeetingError):
    def __init__(self, meeting_id: str) -> None:
        super().__init__(f"Meeting not found: {meeting_id}")
        self.meeting_id = meeting_id


class MeetingValidationError(MeetingError):
    """Meeting input rejected before it reaches the store."""


class InvalidStatusTransition(MeetingError):
    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Cannot change meeting status from {current} to {requested}")
        self.current = current
        self.requested = requested
