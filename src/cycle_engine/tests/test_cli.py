"""Tests for the ``python -m src.cycle_engine`` entry point."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from src.cycle_engine import __main__ as cli
from src.cycle_engine.tests.conftest import FIXTURES_DIR


@pytest.fixture
def logging_calls(monkeypatch) -> list:
    calls: list = []
    monkeypatch.setattr(cli, "configure_logging", lambda *args: calls.append(args))
    return calls


class TestMain:
    def test_prints_report_and_installs_logging(self, capsys, logging_calls) -> None:
        assert cli.main([str(FIXTURES_DIR / "cycle_history.json"), "--offset", "0"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert logging_calls == [()]
        assert data["offsetSource"] == "explicit"
        assert data["offsetMinutes"] == 0
        assert data["periods"][0]["startDayNumber"] == data["forecast"]["periodStartDayNumber"]
        assert data["symptomReport"]["skippedEntries"] == 1
        assert data["moodReport"]["kind"] == "mood"

    def test_offset_inferred_when_omitted(self, capsys, logging_calls) -> None:
        assert cli.main([str(FIXTURES_DIR / "cycle_history.json")]) == 0
        assert json.loads(capsys.readouterr().out)["offsetSource"] == "inferred"

    def test_missing_file(self, tmp_path: Path, capsys, logging_calls) -> None:
        assert cli.main([str(tmp_path / "nope.json")]) == 1
        assert capsys.readouterr().out == ""

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
    def test_unusable_payload(self, tmp_path: Path, content: str, logging_calls) -> None:
        path = tmp_path / "history.json"
        path.write_text(content)
        assert cli.main([str(path)]) == 1
