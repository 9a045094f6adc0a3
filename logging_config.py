"""
logging_config.py - Centralized logging configuration.

Provides consistent logging setup across all modules. Library modules only
ask for named loggers; configuring handlers is left to entry points.
"""

from __future__ import annotations

import json
import logging
import os
import sys

from dotenv import load_dotenv

LOG_LEVEL_ENV = "SHEET_ASSERT_LOG_LEVEL"
LOG_JSON_ENV = "SHEET_ASSERT_LOG_JSON"

EVENT_SEPARATOR = " | "


class EventJSONFormatter(logging.Formatter):
    """One JSON object per record.

    Messages follow `event | key=value | key=value`; the event and each pair
    become top-level fields. Parts without `=` are kept under "detail".
    """

    def format(self, record: logging.LogRecord) -> str:
        event, *parts = record.getMessage().split(EVENT_SEPARATOR)
        payload: dict[str, object] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.name,
            "event": event.strip(),
        }
        details: list[str] = []
        for part in parts:
            key, sep, value = part.partition("=")
            if sep and key.strip():
                payload[key.strip()] = value.strip()
            else:
                details.append(part.strip())
        if details:
            payload["detail"] = details
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: int = logging.INFO, json_format: bool = False) -> None:
    """Configure root logger with consistent formatting.

    Args:
        level: Logging level.
        json_format: If True, emit one JSON object per line (EventJSONFormatter).
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    if json_format:
        formatter: logging.Formatter = EventJSONFormatter(datefmt="%H:%M:%S")
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(name)-20s] %(levelname)-7s %(message)s",
            datefmt="%H:%M:%S",
        )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root.addHandler(handler)


def setup_logging_from_env() -> None:
    """Configure logging from SHEET_ASSERT_LOG_LEVEL / SHEET_ASSERT_LOG_JSON.

    A `.env` file in the working directory is honored when present.
    Unknown level names fall back to INFO.
    """
    load_dotenv()
    level_name = os.getenv(LOG_LEVEL_ENV, "INFO").strip().upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO
    json_format = os.getenv(LOG_JSON_ENV, "").strip().lower() in {"1", "true", "yes", "on"}
    setup_logging(level=level, json_format=json_format)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger."""
    return logging.getLogger(name)
