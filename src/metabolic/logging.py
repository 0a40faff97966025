"""Logging configuration for the metabolic engine.

Records may carry ``metabolic_*`` extras (user, date, day count). The text
format appends them as ``key=value`` pairs; the JSON format nests them
under ``context`` with the prefix dropped.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from metabolic.config.settings import LoggingConfig

CONTEXT_PREFIX = "metabolic_"

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """The record's ``metabolic_*`` extras, keyed without the prefix."""
    return {
        key[len(CONTEXT_PREFIX):]: value
        for key, value in vars(record).items()
        if key.startswith(CONTEXT_PREFIX)
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = record_context(record)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ContextFormatter(logging.Formatter):
    """Plain-text lines with the record context appended."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        head, newline, rest = line.partition("\n")
        return f"{head} [{pairs}]{newline}{rest}"


class UserLogAdapter(logging.LoggerAdapter):
    """Stamps every record with the user it concerns.

    Per-call extras are merged in rather than replaced.
    """

    def __init__(self, logger: logging.Logger, user_id: str):
        super().__init__(logger, {f"{CONTEXT_PREFIX}user_id": user_id})

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def setup_logging(config: LoggingConfig) -> None:
    """Send root logging to stderr in the configured format and level.

    Replaces any handlers already installed, so calling it twice is safe.
    """
    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    if config.format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ContextFormatter(TEXT_FORMAT))

    logging.basicConfig(level=level, handlers=[handler], force=True)
