"""
Logging setup for llm-orchestrator.

Modules log through ``logging.getLogger(__name__)`` under the
``llm_orchestrator`` hierarchy. ``configure_logging`` attaches a handler with
either the JSON or the text formatter; event hooks (``LoggingHook``) add
``event``, ``request_id`` and ``payload`` fields that both formatters render.
"""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import orjson

from .config.logging import LoggingConfig

ROOT_LOGGER = "llm_orchestrator"

_EXTRA_FIELDS = ("event", "request_id", "payload")


# =============================================================================
# Formatters
# =============================================================================


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, include_timestamp: bool = True) -> None:
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.include_timestamp:
            log_data["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()

        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return orjson.dumps(log_data, default=str).decode("utf-8")


class TextFormatter(logging.Formatter):
    """Single-line console output, optionally colored by level."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, include_timestamp: bool = True, color: bool = True) -> None:
        super().__init__()
        self.include_timestamp = include_timestamp
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "") if self.color else ""
        reset = self.RESET if color else ""
        parts = []
        if self.include_timestamp:
            parts.append(datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3])
        parts.append(f"{color}{record.levelname:8}{reset}")
        parts.append(f"[{record.name}]")
        parts.append(record.getMessage())

        request_id = getattr(record, "request_id", None)
        if request_id:
            parts.append(f"request_id={request_id}")
        payload = getattr(record, "payload", None)
        if payload:
            parts.append(" ".join(f"{k}={truncate_for_log(str(v), 80)}" for k, v in payload.items()))

        text = " ".join(parts)
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text


# =============================================================================
# Setup
# =============================================================================


def configure_logging(config: LoggingConfig | None = None, *, stream: Any = None) -> logging.Logger:
    """
    Configure the package logger from a ``LoggingConfig``.

    Replaces handlers previously installed by this function, so calling it
    again reconfigures instead of duplicating output.
    """
    config = config or LoggingConfig()
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, config.level))

    for handler in list(logger.handlers):
        if getattr(handler, "_llm_orchestrator", False):
            logger.removeHandler(handler)

    if config.log_file:
        handler: logging.Handler = logging.FileHandler(config.log_file)
    else:
        handler = logging.StreamHandler(stream or sys.stderr)
    if config.format == "json":
        handler.setFormatter(JSONFormatter(include_timestamp=config.include_timestamp))
    else:
        handler.setFormatter(TextFormatter(include_timestamp=config.include_timestamp, color=not config.log_file))
    handler._llm_orchestrator = True  # type: ignore[attr-defined]
    logger.addHandler(handler)

    events_logger = logging.getLogger(f"{ROOT_LOGGER}.events")
    events_logger.setLevel(logging.DEBUG if config.log_events else logging.WARNING)
    return logger


# =============================================================================
# Utilities
# =============================================================================


def redact_api_key(key: str | None) -> str:
    """Keep only the first and last four characters of ``key``."""
    if not key:
        return "<not set>"
    if len(key) <= 8:
        return "***"
    return f"{key[:4]}...{key[-4:]}"


def truncate_for_log(text: str, max_length: int = 200) -> str:
    """Truncate text for logging."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + f"... ({len(text)} chars total)"


@dataclass
class Timer:
    """Simple timer for measuring durations."""

    start_time: float = field(default_factory=time.perf_counter)
    end_time: float | None = None

    def stop(self) -> float:
        """Stop the timer and return duration in milliseconds."""
        self.end_time = time.perf_counter()
        return self.elapsed_ms

    @property
    def elapsed_ms(self) -> float:
        end = self.end_time or time.perf_counter()
        return (end - self.start_time) * 1000


@contextmanager
def timed() -> Iterator[Timer]:
    """Context manager for timing operations."""
    timer = Timer()
    try:
        yield timer
    finally:
        timer.stop()


__all__ = [
    "JSONFormatter",
    "TextFormatter",
    "configure_logging",
    "redact_api_key",
    "truncate_for_log",
    "Timer",
    "timed",
]
