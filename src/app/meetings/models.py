"""Meeting persistence model.

A single SQLAlchemy model backs the meeting store. The three reminder flags
are separate boolean columns rather than a JSON blob so that the sweep and
the per-meeting timers can update them with field-scoped UPDATE statements
without clobbering each other.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    String,
    Text,
    Uuid,
    false,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.app.core.database import Base


class MeetingModel(Base):
    """Meeting with lifecycle status and reminder flags.

    Status moves scheduled -> in-progress -> completed under the reminder
    engine; cancelled is written externally. Participants stored as a JSON
    list of e-mail addresses.
    """

    __tablename__ = "meetings"
    __table_args__ = (
        Index("ix_meetings_status_start", "status", "start_time"),
        Index("ix_meetings_status_end", "status", "end_time"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    end_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    participants_data: Mapped[list] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(
        String(50),
        default="scheduled",
        server_default=text("'scheduled'"),
        nullable=False,
    )
    reminder_one_day_sent: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    reminder_one_hour_sent: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    reminder_fifteen_mins_sent: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    meet_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(300), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )
