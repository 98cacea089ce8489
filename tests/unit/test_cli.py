"""Tests for the vigil command-line interface."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
from click.testing import CliRunner

from vigil import __version__
from vigil.cli import cli

_GOOD = {
    "ruleId": "low_success_rate",
    "type": "performance",
    "metric": "success_rate",
    "condition": "below",
    "threshold": 0.95,
    "severity": "high",
}


def _write(tmp_path: Path, payload: object) -> str:
    path = tmp_path / "rules.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


class TestValidateRules:
    def test_all_valid(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["validate-rules", _write(tmp_path, [_GOOD])])
        assert result.exit_code == 0
        assert "low_success_rate" in result.output

    def test_json_output(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["validate-rules", "--json", _write(tmp_path, {"rules": [_GOOD]})])
        assert result.exit_code == 0
        assert '"rule_id": "low_success_rate"' in result.output

    def test_invalid_rule_exits_1(self, tmp_path: Path) -> None:
        path = _write(tmp_path, [_GOOD, {**_GOOD, "ruleId": "bad", "severity": "urgent"}])
        result = CliRunner().invoke(cli, ["validate-rules", path])
        assert result.exit_code == 1

    def test_unreadable_file_exits_2(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.json"
        path.write_text("{not json", encoding="utf-8")
        result = CliRunner().invoke(cli, ["validate-rules", str(path)])
        assert result.exit_code == 2


class TestTrigger:
    def test_reports_failure_exit_code(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def _post(url: str, timeout: float) -> httpx.Response:
            assert url == "http://vigil:8080/api/v1/passes/alerts/trigger"
            return httpx.Response(200, json={"pass_name": "alerts", "success": False, "skipped": True})

        monkeypatch.setattr(httpx, "post", _post)
        result = CliRunner().invoke(cli, ["trigger", "alerts", "--url", "http://vigil:8080/"])
        assert result.exit_code == 1
        assert '"skipped": true' in result.output

    def test_success(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(httpx, "post", lambda url, timeout: httpx.Response(200, json={"success": True}))
        assert CliRunner().invoke(cli, ["trigger", "escalations"]).exit_code == 0


def test_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])
    assert __version__ in result.output
