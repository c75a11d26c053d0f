#!/usr/bin/env python3
"""CLI script to run one reminder sweep on demand.

Usage:
    uv run python scripts/run_sweep.py
    uv run python scripts/run_sweep.py --evict

Connects directly to the database using DATABASE_URL from environment or .env file.
Fires any reminder window meetings are currently in, advances meeting status,
and with --evict also deletes completed meetings past the retention period.
Safe to run alongside the service: every step is idempotent.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Ensure project root is on sys.path so we can import src.app
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


async def run(evict: bool) -> int:
    """Run the sweep (and optional eviction). Returns the process exit code."""
    from src.app.config import get_settings
    from src.app.core.database import close_db, init_db
    from src.app.core.logging import configure_structlog
    from src.app.main import build_app

    settings = get_settings()
    configure_structlog()
    await init_db()

    try:
        app = build_app(settings)
        result = await app.sweep.run()
        print("Sweep complete:")
        for field, value in result.model_dump().items():
            print(f"  {field:<20} {value}")

        if evict:
            deleted = await app.sweep.evict_stale()
            print(f"  {'meetings_evicted':<20} {deleted}")
    finally:
        await close_db()

    return 1 if result.errors else 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Run one reminder sweep")
    parser.add_argument(
        "--evict",
        action="store_true",
        help="Also delete completed meetings older than EVICTION_RETENTION_DAYS",
    )
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args.evict)))


if __name__ == "__main__":
    main()
