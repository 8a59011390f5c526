"""JSONL log formatting with ISO 8601 UTC timestamps."""

from __future__ import annotations

__all__ = ["ISO8601Formatter"]

import json
import logging
from datetime import datetime, timezone


class ISO8601Formatter(logging.Formatter):
    """Format records as one JSON object per line.

    Format: {"time": "YYYY-MM-DDTHH:MM:SS.sssZ", "level": ..., **event}
    Example: {"time": "2025-01-15T12:00:00.123Z", "level": "INFO", "event": "decision", ...}

    Dict messages (the structured events every module logs) are merged into
    the entry; plain string messages land under "message".

    Args:
        include_logger: Add the emitting logger's name as "logger". The system
            log mixes every module logger, the decision log does not.
    """

    def __init__(self, *, include_logger: bool = False) -> None:
        super().__init__()
        self._include_logger = include_logger

    def format(self, record: logging.LogRecord) -> str:
        timestamp = (
            datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )

        entry: dict[str, object] = {"time": timestamp, "level": record.levelname}
        if self._include_logger:
            entry["logger"] = record.name

        if isinstance(record.msg, dict):
            entry.update(record.msg)
        else:
            entry["message"] = record.getMessage()

        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)
