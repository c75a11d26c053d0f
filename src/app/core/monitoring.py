"""Prometheus metrics and Sentry integration for the reminder engine.

Provides:
- Reminder, status transition, and eviction counters
- track_sweep(): Context manager for sweep duration and outcome metrics
- init_sentry(): Initialize Sentry with meeting-aware before_send callback
- start_metrics_server(): Optional Prometheus exposition server
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import sentry_sdk
import structlog
from prometheus_client import Counter, Histogram, start_http_server

logger = structlog.get_logger(__name__)

# ── Reminder Metrics ─────────────────────────────────────────────────────────

reminders_delivered_total = Counter(
    "reminders_delivered_total",
    "Reminder delivery attempts",
    ["kind", "outcome", "source"],
)

reminder_timers_armed_total = Counter(
    "reminder_timers_armed_total",
    "One-shot reminder timers armed at meeting creation",
    ["kind"],
)

# ── Lifecycle Metrics ────────────────────────────────────────────────────────

meeting_status_transitions_total = Counter(
    "meeting_status_transitions_total",
    "Engine-driven meeting status transitions",
    ["to_status"],
)

meetings_evicted_total = Counter(
    "meetings_evicted_total",
    "Completed meetings deleted by the daily eviction",
)

# ── Sweep Metrics ────────────────────────────────────────────────────────────

sweep_runs_total = Counter(
    "reminder_sweep_runs_total",
    "Reminder sweep runs",
    ["status"],
)

sweep_duration_seconds = Histogram(
    "reminder_sweep_duration_seconds",
    "Reminder sweep duration in seconds",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)


@asynccontextmanager
async def track_sweep() -> AsyncGenerator[dict[str, Any], None]:
    """Context manager that tracks sweep metrics.

    Usage:
        async with track_sweep() as tracker:
            result = await sweep.run()
            tracker["meetings"] = result.meetings_checked

    Automatically records duration and run count (success/error).
    """
    tracker: dict[str, Any] = {"meetings": 0}
    start_time = time.perf_counter()
    status = "success"

    try:
        yield tracker
    except Exception:
        status = "error"
        raise
    finally:
        duration = time.perf_counter() - start_time
        sweep_runs_total.labels(status=status).inc()
        sweep_duration_seconds.observe(duration)


# ── Sentry Integration ───────────────────────────────────────────────────────


def init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry SDK with meeting-aware event tagging.

    Args:
        dsn: Sentry DSN string.
        environment: Deployment environment (development, staging, production).
    """
    traces_sample_rate = 0.1 if environment == "production" else 1.0

    def before_send(event: dict, hint: dict) -> dict:
        """Lift meeting_id from structured log extras into a Sentry tag."""
        meeting_id = (event.get("extra") or {}).get("meeting_id")
        if meeting_id:
            event.setdefault("tags", {})["meeting_id"] = str(meeting_id)
        return event

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        before_send=before_send,
    )
    logger.info("sentry_initialized", environment=environment)


# ── Metrics Exposition ───────────────────────────────────────────────────────


def start_metrics_server(port: int) -> bool:
    """Start the Prometheus exposition server. Returns False when disabled."""
    if port <= 0:
        return False
    start_http_server(port)
    logger.info("metrics_server_started", port=port)
    return True
