"""Create the meetings table.

Revision ID: 001_meetings
Revises:
Create Date: 2026-10-19

Creates the single table behind the reminder engine:
- meetings: Meeting window, participants, lifecycle status, and the three
  reminder flags as separate boolean columns (field-scoped updates)

Indexes cover the sweep query (status + start_time) and the daily eviction
(status + end_time).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_meetings"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── meetings table ───────────────────────────────────────────────────

    op.create_table(
        "meetings",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("participants_data", sa.JSON(), nullable=True),
        sa.Column(
            "status",
            sa.String(50),
            server_default=sa.text("'scheduled'"),
            nullable=False,
        ),
        sa.Column(
            "reminder_one_day_sent",
            sa.Boolean(),
            server_default=sa.false(),
            nullable=False,
        ),
        sa.Column(
            "reminder_one_hour_sent",
            sa.Boolean(),
            server_default=sa.false(),
            nullable=False,
        ),
        sa.Column(
            "reminder_fifteen_mins_sent",
            sa.Boolean(),
            server_default=sa.false(),
            nullable=False,
        ),
        sa.Column("meet_url", sa.String(500), nullable=True),
        sa.Column("created_by", sa.String(300), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_index(
        "ix_meetings_status_start",
        "meetings",
        ["status", "start_time"],
    )
    op.create_index(
        "ix_meetings_status_end",
        "meetings",
        ["status", "end_time"],
    )


def downgrade() -> None:
    op.drop_index("ix_meetings_status_end", table_name="meetings")
    op.drop_index("ix_meetings_status_start", table_name="meetings")
    op.drop_table("meetings")
