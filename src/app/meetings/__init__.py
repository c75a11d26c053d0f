"""Meetings module -- schemas, persistence, service, and the reminder engine.

Provides the meeting data layer (Pydantic schemas, SQLAlchemy model,
MeetingRepository), MeetingService for creating and managing meetings, and
the reminders subpackage that delivers 24h / 1h / 15m reminders and drives
meeting lifecycle status.
"""
