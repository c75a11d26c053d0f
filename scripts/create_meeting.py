#!/usr/bin/env python3
"""CLI script to create a meeting and send the invitation.

Usage:
    uv run python scripts/create_meeting.py --title "Planning" \
        --start 2026-11-02T15:00:00Z --end 2026-11-02T16:00:00Z \
        --participant alice@example.com --participant bob@example.com

Connects directly to the database using DATABASE_URL from environment or .env file.
No per-meeting timers are armed here; the running service's sweep delivers
the reminders.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from datetime import datetime

# Ensure project root is on sys.path so we can import src.app
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


async def create(args: argparse.Namespace) -> int:
    from src.app.config import get_settings
    from src.app.core.database import close_db, init_db
    from src.app.core.logging import configure_structlog
    from src.app.main import build_app
    from src.app.meetings.exceptions import MeetingValidationError

    configure_structlog()
    await init_db()

    try:
        app = build_app(get_settings(), arm_timers=False)
        meeting = await app.meetings.create_meeting(
            {
                "title": args.title,
                "description": args.description,
                "start_time": datetime.fromisoformat(args.start),
                "end_time": datetime.fromisoformat(args.end),
                "participants": args.participant,
                "created_by": args.created_by,
            }
        )
    except MeetingValidationError as exc:
        print(f"Invalid meeting: {exc}", file=sys.stderr)
        return 1
    finally:
        await close_db()

    print("Meeting created:")
    print(f"  ID:    {meeting.id}")
    print(f"  Title: {meeting.title}")
    print(f"  Start: {meeting.start_time.isoformat()}")
    print(f"  Link:  {meeting.meet_url}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a meeting")
    parser.add_argument("--title", required=True, help="Meeting title")
    parser.add_argument("--description", default=None, help="Meeting description")
    parser.add_argument("--start", required=True, help="Start time, ISO 8601 (UTC if no offset)")
    parser.add_argument("--end", required=True, help="End time, ISO 8601 (UTC if no offset)")
    parser.add_argument(
        "--participant",
        action="append",
        required=True,
        help="Participant e-mail (repeat for each participant)",
    )
    parser.add_argument("--created-by", default=None, help="Creator identifier")
    args = parser.parse_args()

    sys.exit(asyncio.run(create(args)))


if __name__ == "__main__":
    main()
