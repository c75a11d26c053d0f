"""Pydantic schemas for Gmail message models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class EmailMessage(BaseModel):
    """Email message to send via Gmail API."""

    to: list[str] = Field(min_length=1)
    subject: str
    body_text: str
    body_html: str | None = None
    reply_to: str | None = None
    cc: list[str] = Field(default_factory=list)
    bcc: list[str] = Field(default_factory=list)


class SentEmailResult(BaseModel):
    """Result from sending an email via Gmail API."""

    message_id: str
    thread_id: str
    label_ids: list[str] = Field(default_factory=list)
