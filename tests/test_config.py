"""Tests for settings defaults and process wiring."""

from __future__ import annotations

from src.app.config import Environment, Settings
from src.app.main import build_app
from src.app.meetings.reminders import ReminderScheduler
from src.app.services.notifications import LoggingNotificationSender


class TestSettings:
    def test_reminder_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.SWEEP_INTERVAL_SECONDS == 60
        assert settings.EVICTION_RETENTION_DAYS == 7
        assert settings.EVICTION_HOUR_UTC == 0
        assert settings.METRICS_PORT == 0
        assert settings.ENVIRONMENT == Environment.development

    def test_sender_email_prefers_explicit_from_address(self):
        settings = Settings(
            _env_file=None,
            REMINDER_FROM_EMAIL="reminders@example.com",
            GOOGLE_DELEGATED_USER_EMAIL="admin@example.com",
        )

        assert settings.sender_email == "reminders@example.com"

    def test_sender_email_falls_back_to_delegated_user(self):
        settings = Settings(_env_file=None, GOOGLE_DELEGATED_USER_EMAIL="admin@example.com")

        assert settings.sender_email == "admin@example.com"

    def test_service_account_path_from_base64(self, tmp_path, monkeypatch):
        monkeypatch.setattr("tempfile.gettempdir", lambda: str(tmp_path))
        settings = Settings(_env_file=None, GOOGLE_SERVICE_ACCOUNT_JSON_B64="eyJ0eXBlIjogInRlc3QifQ==")

        path = settings.get_service_account_path()

        assert path == str(tmp_path / "gcp-service-account.json")
        assert (tmp_path / "gcp-service-account.json").read_text() == '{"type": "test"}'

    def test_service_account_path_unset(self):
        assert Settings(_env_file=None).get_service_account_path() is None


class TestBuildApp:
    def test_wires_components_from_settings(self):
        settings = Settings(_env_file=None, SWEEP_INTERVAL_SECONDS=30, EVICTION_HOUR_UTC=3)

        app = build_app(settings)

        assert isinstance(app.sender, LoggingNotificationSender)
        assert isinstance(app.scheduler, ReminderScheduler)
        assert app.scheduler._sweep_interval_seconds == 30
        assert app.scheduler._eviction_hour_utc == 3
        assert app.scheduler.running is False

    def test_one_shot_wiring_arms_no_timers(self):
        app = build_app(Settings(_env_file=None), arm_timers=False)

        assert app.meetings._scheduler is None
        assert app.scheduler.pending_timer_ids() == []
