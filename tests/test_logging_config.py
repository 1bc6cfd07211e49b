"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
import logging.handlers


class TestJSONFormatter:
    def test_json_output(self):
        from src.logging_config import JSONFormatter

        formatter = JSONFormatter()
        record = logging.LogRecord(
            name="src.reconcile.reconciler",
            level=logging.INFO,
            pathname="",
            lineno=0,
            msg="Paired %d trades",
            args=(2,),
            exc_info=None,
        )
        record.run_id = "abc123"

        data = json.loads(formatter.format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "src.reconcile.reconciler"
        assert data["msg"] == "Paired 2 trades"
        assert data["run_id"] == "abc123"
        assert "ts" in data

    def test_json_without_run_id(self):
        from src.logging_config import JSONFormatter

        formatter = JSONFormatter()
        record = logging.LogRecord(
            name="test",
            level=logging.WARNING,
            pathname="",
            lineno=0,
            msg="no run",
            args=(),
            exc_info=None,
        )

        data = json.loads(formatter.format(record))
        assert data["run_id"] == ""
        assert data["level"] == "WARNING"


class TestSetupLogging:
    def test_setup_returns_run_id(self, tmp_path):
        from src.logging_config import setup_logging

        run_id = setup_logging(log_dir=tmp_path)
        assert len(run_id) == 12
        assert run_id.isalnum()

        logging.getLogger().handlers.clear()

    def test_creates_log_dir(self, tmp_path):
        from src.logging_config import setup_logging

        log_dir = tmp_path / "nested" / "logs"
        setup_logging(log_dir=log_dir)
        assert log_dir.exists()
        assert (log_dir / "reconcile.log").exists()

        logging.getLogger().handlers.clear()

    def test_structured_file_handler(self, tmp_path):
        from src.logging_config import JSONFormatter, setup_logging

        setup_logging(structured=True, log_dir=tmp_path)
        file_handlers = [
            h for h in logging.getLogger().handlers
            if isinstance(h, logging.handlers.TimedRotatingFileHandler)
        ]
        assert len(file_handlers) == 1
        assert isinstance(file_handlers[0].formatter, JSONFormatter)

        for h in logging.getLogger().handlers:
            h.close()
        logging.getLogger().handlers.clear()

    def test_repeated_setup_does_not_stack_handlers(self, tmp_path):
        from src.logging_config import setup_logging

        setup_logging(log_dir=tmp_path)
        setup_logging(log_dir=tmp_path)
        assert len(logging.getLogger().handlers) == 2

        for h in logging.getLogger().handlers:
            h.close()
        logging.getLogger().handlers.clear()
