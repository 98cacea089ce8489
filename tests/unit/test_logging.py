"""Tests for the structlog setup."""

from __future__ import annotations

import io
import json
from collections.abc import Iterator

import pytest
import structlog

from vigil.observability.logging import get_logger, setup_logging


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


class TestSetupLogging:
    def test_json_lines_carry_service_and_component(self) -> None:
        stream = io.StringIO()
        setup_logging("info", version="1.2.3", stream=stream)

        get_logger("lifecycle").info("alert_triggered", alert_id="low_success_rate_1")

        record = json.loads(stream.getvalue())
        assert record["event"] == "alert_triggered"
        assert record["component"] == "lifecycle"
        assert record["service"] == "vigil"
        assert record["version"] == "1.2.3"
        assert record["level"] == "info"
        assert record["ts"].endswith("Z")

    def test_level_filter(self) -> None:
        stream = io.StringIO()
        setup_logging("warning", stream=stream)

        log = get_logger("scheduler")
        log.info("pass_completed")
        log.warning("pass_skipped", pass_name="alerts")

        lines = stream.getvalue().splitlines()
        assert [json.loads(line)["event"] for line in lines] == ["pass_skipped"]

    def test_exception_is_rendered(self) -> None:
        stream = io.StringIO()
        setup_logging("info", stream=stream)

        try:
            raise RuntimeError("smtp down")
        except RuntimeError:
            get_logger("notifications").exception("notification_failed")

        record = json.loads(stream.getvalue())
        assert "RuntimeError: smtp down" in record["exception"]

    def test_console_format(self) -> None:
        stream = io.StringIO()
        setup_logging("info", fmt="console", stream=stream)

        get_logger("app").info("vigil_starting")

        output = stream.getvalue()
        assert "vigil_starting" in output
        assert "component=app" in output
