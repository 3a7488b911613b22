"""
ReviewLens Logging
==================

One root configuration shared by the CLI and the API. Log lines go to
stderr (stdout carries the CLI report) and optionally to a rotating file.

Two line formats:
    text: "2025-01-05 09:12:00 [INFO    ] src.ai.llm_client | claude completion received ..."
    json: {"ts": "...", "level": "INFO", "logger": "src.ai.llm_client", "msg": "...", "provider": "claude"}

Call sites attach context through `extra=`; the JSON formatter lifts the
known keys (see CONTEXT_FIELDS) to the top level of each line.

Usage:
    from src.orchestrator.logging_config import setup_logging

    setup_logging(level="DEBUG", json_output=True, log_file="logs/reviewlens.log")
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

CONTEXT_FIELDS = ("business", "provider", "task", "attempt", "duration")

TEXT_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)-30s | %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"

# SDK and transport loggers are chatty at INFO (one line per HTTP request)
QUIET_LOGGERS = ("httpx", "httpcore", "openai", "anthropic")

ROTATE_BYTES = 10 * 1024 * 1024
ROTATE_KEEP = 5


class JSONFormatter(logging.Formatter):
    """One JSON object per record, timestamped from the record itself."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(
            (name, getattr(record, name))
            for name in CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _handlers(log_file: Optional[str], max_bytes: int, backup_count: int) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8",
        ))
    return handlers


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
    max_bytes: int = ROTATE_BYTES,
    backup_count: int = ROTATE_KEEP,
) -> None:
    """
    Replace the root handlers with a stderr handler (and a rotating file
    handler when log_file is set), all sharing one formatter.

    Unknown level names fall back to INFO. Safe to call more than once:
    earlier handlers are dropped, not stacked.
    """
    formatter = JSONFormatter() if json_output else logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT)

    root = logging.getLogger()
    root.handlers.clear()
    numeric = getattr(logging, level.upper(), None)
    root.setLevel(numeric if isinstance(numeric, int) else logging.INFO)

    for handler in _handlers(log_file, max_bytes, backup_count):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging ready (level={level}, json={json_output}, file={log_file or '-'})"
    )
