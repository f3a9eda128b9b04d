"""Tests for pipeline telemetry and configuration."""

from __future__ import annotations

import json
import logging

from aegis_notify.core.config import Settings, TelemetryConfig
from aegis_notify.telemetry import PipelineEventType, TelemetryLogger


class TestTelemetryLogger:
    def test_events_kept_in_memory(self) -> None:
        telemetry = TelemetryLogger()
        telemetry.emit(PipelineEventType.LISTENER_ESTABLISHED, "10")
        telemetry.emit(PipelineEventType.LISTENER_ERROR, "11", error="boom")

        assert telemetry.count == 2
        assert telemetry.log_path is None
        errors = telemetry.query(PipelineEventType.LISTENER_ERROR)
        assert errors[0].details == {"error": "boom"}
        assert telemetry.query(group_id="10")[0].event_type == PipelineEventType.LISTENER_ESTABLISHED

    def test_events_written_to_jsonl(self, tmp_path) -> None:
        telemetry = TelemetryLogger(TelemetryConfig(log_dir=str(tmp_path / "events")))
        telemetry.emit(PipelineEventType.DELIVERY_SUCCEEDED, "10", recipient_user_id=3)
        telemetry.emit(PipelineEventType.DELIVERY_FAILED, "10", recipient_user_id=4, error="x")

        events = telemetry.read_log()
        assert [e.event_type for e in events] == [
            PipelineEventType.DELIVERY_SUCCEEDED,
            PipelineEventType.DELIVERY_FAILED,
        ]
        assert events[1].details["recipient_user_id"] == 4

    def test_retention_capped(self) -> None:
        telemetry = TelemetryLogger(TelemetryConfig(max_events=50))
        for recipient in range(2000):
            telemetry.emit(PipelineEventType.DELIVERY_SUCCEEDED, "10", recipient_user_id=recipient)

        assert telemetry.count == 50
        retained = telemetry.query(PipelineEventType.DELIVERY_SUCCEEDED)
        assert retained[0].details["recipient_user_id"] == 1950
        assert retained[-1].details["recipient_user_id"] == 1999

    def test_file_keeps_events_beyond_memory_cap(self, tmp_path) -> None:
        telemetry = TelemetryLogger(TelemetryConfig(log_dir=str(tmp_path), max_events=2))
        for recipient in range(5):
            telemetry.emit(PipelineEventType.DELIVERY_SUCCEEDED, "10", recipient_user_id=recipient)
        telemetry.close()

        assert telemetry.count == 2
        lines = telemetry.log_path.read_text().splitlines()
        assert [json.loads(line)["details"]["recipient_user_id"] for line in lines] == [0, 1, 2, 3, 4]

    def test_close_twice_is_safe(self, tmp_path) -> None:
        telemetry = TelemetryLogger(TelemetryConfig(log_dir=str(tmp_path)))
        telemetry.emit(PipelineEventType.LISTENER_CLOSED, "10")
        telemetry.close()
        telemetry.close()
        assert len(telemetry.read_log()) == 1

    def test_failures_logged_as_warnings(self, caplog) -> None:
        telemetry = TelemetryLogger()
        with caplog.at_level(logging.INFO, logger="aegis_notify.telemetry"):
            telemetry.emit(PipelineEventType.MEMBERSHIP_RESOLUTION_FAILED, "10")
            telemetry.emit(PipelineEventType.LISTENER_CLOSED, "10")
        levels = [r.levelno for r in caplog.records]
        assert levels == [logging.WARNING, logging.INFO]


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.groups_cache.ttl_seconds == 30.0
        assert settings.notify.body_max_length == 100
        assert settings.notify.ellipsis == "..."
        assert settings.backend.max_retries == 1
        assert settings.telemetry.max_events == 1000

    def test_env_override(self, monkeypatch) -> None:
        monkeypatch.setenv("AEGIS_GROUPS_CACHE_TTL_SECONDS", "5")
        monkeypatch.setenv("AEGIS_NOTIFY_DEFAULT_TITLE", "Nuevo mensaje")
        settings = Settings()
        assert settings.groups_cache.ttl_seconds == 5.0
        assert settings.notify.default_title == "Nuevo mensaje"
