"""Tests for logger.py: setup_logging() and JsonFormatter.

basicConfig is patched and its keyword arguments inspected, because
pytest's log capture installs handlers that make a real basicConfig
call a no-op.
"""

import json
import logging
import sys
from unittest.mock import patch

import pytest

from todoist_sync_server.logger import (
    DEFAULT_MCP_LOG_FILE,
    JsonFormatter,
    setup_logging,
)


@pytest.fixture
def basic_config():
    with patch("todoist_sync_server.logger.logging.basicConfig") as mock_basic:
        yield mock_basic
    # FileHandlers opened by setup_logging are never handed to logging
    for call in mock_basic.call_args_list:
        for handler in call.kwargs.get("handlers", []):
            handler.close()


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_cli_mode_logs_to_stderr(self, basic_config):
        setup_logging(mode="cli")

        handlers = basic_config.call_args.kwargs["handlers"]
        assert len(handlers) == 1
        assert handlers[0].stream is sys.stderr

    def test_cli_mode_with_log_file(self, basic_config, tmp_path):
        log_file = tmp_path / "cli.log"

        setup_logging(mode="cli", log_file=str(log_file))

        handlers = basic_config.call_args.kwargs["handlers"]
        assert [type(h) for h in handlers] == [logging.StreamHandler, logging.FileHandler]
        assert handlers[1].baseFilename == str(log_file)

    def test_mcp_mode_only_logs_to_file(self, basic_config, tmp_path):
        log_file = tmp_path / "mcp.log"

        setup_logging(mode="mcp", log_file=str(log_file))

        handlers = basic_config.call_args.kwargs["handlers"]
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.FileHandler)
        assert handlers[0].baseFilename == str(log_file)

    def test_mcp_mode_log_file_from_env(self, basic_config, tmp_path, monkeypatch):
        log_file = tmp_path / "env.log"
        monkeypatch.setenv("LOG_FILE", str(log_file))

        setup_logging(mode="mcp")

        handler = basic_config.call_args.kwargs["handlers"][0]
        assert handler.baseFilename == str(log_file)

    def test_default_mcp_log_file(self):
        assert DEFAULT_MCP_LOG_FILE == "/tmp/todoist-sync-server.log"

    @pytest.mark.parametrize(
        "mode, expected",
        [("mcp", logging.WARNING), ("cli", logging.INFO)],
    )
    def test_default_levels(self, basic_config, monkeypatch, tmp_path, mode, expected):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("LOG_FILE", str(tmp_path / "default.log"))

        setup_logging(mode=mode)

        assert basic_config.call_args.kwargs["level"] == expected

    def test_env_log_level(self, basic_config, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")
        setup_logging(mode="cli")
        assert basic_config.call_args.kwargs["level"] == logging.ERROR

    def test_debug_beats_env(self, basic_config, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(mode="cli", debug=True)
        assert basic_config.call_args.kwargs["level"] == logging.DEBUG

    def test_json_format(self, basic_config):
        setup_logging(mode="cli", debug_format="json")

        handler = basic_config.call_args.kwargs["handlers"][0]
        assert isinstance(handler.formatter, JsonFormatter)

    def test_noisy_loggers_quietened(self, basic_config, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging(mode="cli")

        for name in ("urllib3", "httpx", "httpcore", "uvicorn.access"):
            assert logging.getLogger(name).level == logging.WARNING


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def _record(self, **kwargs):
        defaults = {
            "name": "todoist_sync_server.sync.engine",
            "level": logging.INFO,
            "pathname": "engine.py",
            "lineno": 1,
            "msg": "Sync pass finished: %d results",
            "args": (3,),
            "exc_info": None,
        }
        defaults.update(kwargs)
        return logging.LogRecord(**defaults)

    def test_single_line_json(self):
        output = JsonFormatter(datefmt="%Y-%m-%d").format(self._record())

        assert "\n" not in output
        data = json.loads(output)
        assert data["level"] == "INFO"
        assert data["logger"] == "todoist_sync_server.sync.engine"
        assert data["msg"] == "Sync pass finished: 3 results"
        assert "exc" not in data

    def test_exception_included(self):
        try:
            raise RuntimeError("push failed")
        except RuntimeError:
            exc_info = sys.exc_info()

        output = JsonFormatter().format(
            self._record(level=logging.ERROR, msg="oops", args=(), exc_info=exc_info)
        )

        assert "RuntimeError: push failed" in json.loads(output)["exc"]
