"""Tests for structured logging configuration."""

import json
import logging
from pathlib import Path

import pytest

from deploystate.contracts import CheckpointNotFoundError, InvalidArgumentError
from deploystate.core.checkpoint import backup_file
from deploystate.core.checkpoint import store as store_module
from deploystate.core.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


def _last_json_line(text: str) -> dict:
    return json.loads(text.strip().split("\n")[-1])


class TestLoggingConfig:
    def test_get_logger_returns_logger(self) -> None:
        logger = get_logger("test")
        assert hasattr(logger, "info")
        assert hasattr(logger, "bind")

    def test_json_output_goes_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True)

        get_logger("test").info("test message", key="value")

        captured = capsys.readouterr()
        assert captured.out == ""
        data = _last_json_line(captured.err)
        assert data["event"] == "test message"
        assert data["key"] == "value"
        assert data["level"] == "info"

    def test_console_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=False)

        get_logger("test").info("test message", key="value")

        captured = capsys.readouterr()
        assert "test message" in captured.err
        assert not captured.err.strip().startswith("{")

    def test_stdlib_loggers_emit_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True)

        logging.getLogger("test.stdlib.module").info("message from stdlib logger")

        data = _last_json_line(capsys.readouterr().err)
        assert data["event"] == "message from stdlib logger"
        assert "_record" not in data

    def test_level_filters(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True, level="WARNING")

        get_logger("test").info("hidden")

        assert capsys.readouterr().err == ""

    def test_noisy_loggers_not_below_warning(self) -> None:
        configure_logging(level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("dynaconf").getEffectiveLevel() >= logging.WARNING


class TestCheckpointLogging:
    def test_backup_failure_is_logged_as_warning(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        configure_logging(json_output=True)
        source = tmp_path / "prod.json"
        source.write_text("{}")

        def failing_replace(src, dst):
            raise PermissionError("denied")

        monkeypatch.setattr(store_module.os, "replace", failing_replace)

        assert backup_file(source) is False

        data = _last_json_line(capsys.readouterr().err)
        assert data["event"] == "checkpoint_backup_failed"
        assert data["level"] == "warning"
        assert data["path"] == str(source)
        assert source.exists()

    def test_not_found_is_logged_as_error(self, store, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True)

        with pytest.raises(CheckpointNotFoundError):
            store.get("ghost")

        data = _last_json_line(capsys.readouterr().err)
        assert data["event"] == "checkpoint_not_found"
        assert data["environment"] == "ghost"

    @pytest.mark.parametrize("call", ["get", "save", "remove"])
    def test_invalid_argument_is_logged_as_error(self, store, capsys: pytest.CaptureFixture[str], call: str) -> None:
        configure_logging(json_output=True)

        with pytest.raises(InvalidArgumentError):
            if call == "get":
                store.get("a/b")
            else:
                getattr(store, call)(None)

        data = _last_json_line(capsys.readouterr().err)
        assert data["event"] == "checkpoint_invalid_argument"
        assert data["level"] == "error"
