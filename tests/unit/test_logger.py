"""
tests/unit/test_logger.py — Structured Logger Tests

Covers:
  - setup_logging() writes JSON lines to <log_dir>/jarvis.log
  - bind_session() context lands on every line of the turn
  - clear_session() drops it again
  - "~" in log_dir is expanded
"""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from jarvis.observability.logger import (
    LOG_FILE_NAME,
    bind_session,
    clear_session,
    get_logger,
    setup_logging,
)


@pytest.fixture
def reset_logging():
    yield
    clear_session()
    structlog.reset_defaults()
    root = logging.getLogger()
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)


def _read_events(path, prefix: str) -> list[dict]:
    for handler in logging.getLogger().handlers:
        handler.flush()
    lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]
    return [line for line in lines if line.get("event", "").startswith(prefix)]


class TestSetupLogging:
    def test_json_file_with_turn_context(self, tmp_path, reset_logging):
        path = setup_logging(level="DEBUG", log_dir=tmp_path)
        assert path == tmp_path / LOG_FILE_NAME

        log = get_logger("jarvis.tests.logger_context")
        bind_session("s-1", "u-1")
        log.info("logtest.turn_start", turn=1)
        clear_session()
        log.info("logtest.idle")

        start, idle = _read_events(path, "logtest.")
        assert start["session_id"] == "s-1"
        assert start["user_id"] == "u-1"
        assert start["turn"] == 1
        assert start["level"] == "info"
        assert "timestamp" in start
        assert "session_id" not in idle

    def test_level_filters_file(self, tmp_path, reset_logging):
        path = setup_logging(level="WARNING", log_dir=tmp_path)
        log = get_logger("jarvis.tests.logger_level")
        log.info("logtest.hidden")
        log.warning("logtest.shown")
        assert [e["event"] for e in _read_events(path, "logtest.")] == ["logtest.shown"]

    def test_home_directory_expanded(self, tmp_path, monkeypatch, reset_logging):
        monkeypatch.setenv("HOME", str(tmp_path))
        path = setup_logging(log_dir="~/logs")
        assert path == tmp_path / "logs" / LOG_FILE_NAME
        assert path.parent.is_dir()
