"""Logging setup for the ``retrier`` logger namespace.

The library logs through stdlib loggers (``retrier.retry``, ``retrier.token``)
and never configures output on import. Applications either route those
loggers through their own handlers or call ``configure_logging`` once:

    >>> from retrier.runtime.observability import configure_logging
    >>> configure_logging(format="text", level="INFO")
    >>> # 2024-01-03 10:30:45 [INFO] retrier.retry: [fetch] Retry 1/5 after 0.100s (...) attempt=1 delay=0.1

    >>> configure_logging(format="json")  # JSON lines for log aggregation

Structured fields passed through ``extra=`` (attempt, delay, error...) are
appended as ``key=value`` pairs in text mode and as top-level keys in JSON.
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TextIO

import orjson

if TYPE_CHECKING:
    from retrier.foundation.config import LoggingSettings

ROOT_LOGGER = "retrier"

# Attributes every LogRecord has; anything else came from ``extra=``
_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

logging.getLogger(ROOT_LOGGER).addHandler(logging.NullHandler())


def _extras(record: logging.LogRecord) -> dict[str, object]:
    return {k: v for k, v in vars(record).items() if k not in _RESERVED and not k.startswith("_")}


class TextFormatter(logging.Formatter):
    """Human-readable lines: timestamp [level] logger: message key=value ..."""

    def __init__(self, include_timestamps: bool = True) -> None:
        super().__init__()
        self.include_timestamps = include_timestamps

    def format(self, record: logging.LogRecord) -> str:
        parts: list[str] = []
        if self.include_timestamps:
            parts.append(datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S"))
        parts.append(f"[{record.levelname}]")
        parts.append(f"{record.name}: {record.getMessage()}")
        parts.extend(f"{k}={v}" for k, v in sorted(_extras(record).items()))
        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class JsonFormatter(logging.Formatter):
    """JSON Lines output, one object per record."""

    def __init__(self, include_timestamps: bool = True) -> None:
        super().__init__()
        self.include_timestamps = include_timestamps

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, object] = {}
        if self.include_timestamps:
            data["timestamp"] = datetime.fromtimestamp(record.created, tz=UTC).isoformat()
        data["level"] = record.levelname.lower()
        data["logger"] = record.name
        data["event"] = record.getMessage()
        data.update(_extras(record))
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(data, default=str, option=orjson.OPT_NON_STR_KEYS).decode()


def configure_logging(
    format: str | None = None,  # noqa: A002 - matches LoggingSettings.format
    level: str | None = None,
    *,
    stream: TextIO | None = None,
    settings: LoggingSettings | None = None,
) -> logging.Handler:
    """Attach a single handler to the ``retrier`` logger.

    Unset arguments fall back to ``settings`` (default: environment settings).
    Calling again replaces the handler installed by the previous call.

    Args:
        format: "text" (human) or "json" (machine)
        level: Minimum level - DEBUG, INFO, WARNING, ERROR, CRITICAL
        stream: Output stream (default: stderr)
        settings: LoggingSettings to read defaults from

    Returns:
        The installed handler

    Raises:
        ValueError: If format or level is unknown
    """
    if settings is None:
        from retrier.foundation.config import get_settings
        settings = get_settings().logging
    format = format or settings.format
    level_name = (level or settings.level).upper()

    level_int = logging.getLevelName(level_name)
    if not isinstance(level_int, int):
        raise ValueError(f"Unknown level: {level_name}")

    formatter: logging.Formatter
    if format == "text":
        formatter = TextFormatter(settings.include_timestamps)
    elif format == "json":
        formatter = JsonFormatter(settings.include_timestamps)
    else:
        raise ValueError(f"Unknown format: {format}. Use 'text' or 'json'")

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)
    handler._retrier_managed = True  # type: ignore[attr-defined]

    root = logging.getLogger(ROOT_LOGGER)
    for existing in [h for h in root.handlers if getattr(h, "_retrier_managed", False)]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level_int)
    return handler
