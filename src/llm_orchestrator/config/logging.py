"""
Logging section of the settings.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, get_args

from ..errors import InvalidConfigError

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["text", "json"]


@dataclass
class LoggingConfig:
    """How ``configure_logging`` sets up the ``llm_orchestrator`` logger.

    ``log_events`` lowers the ``llm_orchestrator.events`` logger to DEBUG so
    a ``LoggingHook`` prints every runtime event, not only failures.
    """

    level: LogLevel = "INFO"
    format: LogFormat = "text"
    log_file: Path | None = None
    include_timestamp: bool = True
    log_events: bool = False

    def __post_init__(self):
        if self.level not in get_args(LogLevel):
            raise InvalidConfigError(f"level must be one of {get_args(LogLevel)}, got {self.level!r}")
        if self.format not in get_args(LogFormat):
            raise InvalidConfigError(f"format must be one of {get_args(LogFormat)}, got {self.format!r}")
        if isinstance(self.log_file, str):
            self.log_file = Path(self.log_file)


__all__ = ["LogLevel", "LogFormat", "LoggingConfig"]
