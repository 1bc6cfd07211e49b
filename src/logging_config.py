"""Structured logging configuration.

JSON formatter + TimedRotatingFileHandler for reconciliation runs.
setup_logging returns a run_id; pass it to reconcile(run_id=...) and its
batch summary records carry it (the "run_id" field in JSON output).
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import uuid
from pathlib import Path

from src.config import settings

LOG_DIR = Path(__file__).resolve().parent.parent / "data" / "logs"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """JSON structured log formatter with run_id support."""

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(
            {
                "ts": self.formatTime(record),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                "run_id": getattr(record, "run_id", ""),
            },
            ensure_ascii=False,
        )


def setup_logging(
    structured: bool = False,
    log_dir: Path | str | None = None,
) -> str:
    """Configure root logger. Returns the run_id for this batch.

    Args:
        structured: If True, use JSON format. Also enabled by settings.structured_logging
            (STRUCTURED_LOGGING env var).
        log_dir: Override log directory. Defaults to settings.log_dir, then data/logs/.
    """
    run_id = uuid.uuid4().hex[:12]
    log_dir = log_dir or settings.log_dir
    log_path = Path(log_dir) if log_dir else LOG_DIR
    log_path.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.INFO)

    # avoid duplicate handlers on repeated setup
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(console)

    # daily rotation, 30 days retention
    use_structured = structured or settings.structured_logging
    file_handler = logging.handlers.TimedRotatingFileHandler(
        log_path / "reconcile.log",
        when="midnight",
        backupCount=30,
        encoding="utf-8",
    )
    if use_structured:
        file_handler.setFormatter(JSONFormatter())
    else:
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(file_handler)

    return run_id
