"""Structured JSON logging."""

import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class LogConfig:
    """Structured logging configuration."""

    level: str = "INFO"
    logger_name: str = "routing"
    extra_labels: dict[str, str] = field(default_factory=dict)


class StructuredLogger:
    """Structured logging with JSON output."""

    def __init__(self, name: str, config: LogConfig | None = None):
        self.name = name
        self.config = config or LogConfig()
        self._logger = logging.getLogger(name)

    def _create_record(
        self,
        level: str,
        message: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Create structured log record."""
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "logger": self.name,
            "message": message,
            "labels": self.config.extra_labels,
            **kwargs,
        }

    def _emit(self, level: int, message: str, **kwargs: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        record = self._create_record(logging.getLevelName(level), message, **kwargs)
        self._logger.log(level, json.dumps(record, default=str))

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self._emit(logging.INFO, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message."""
        self._emit(logging.ERROR, message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        self._emit(logging.DEBUG, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self._emit(logging.WARNING, message, **kwargs)


class JsonFormatter(logging.Formatter):
    """JSON log formatter. Plain records are wrapped, JSON messages pass through."""

    def format(self, record: logging.LogRecord) -> str:
        """Format record as JSON."""
        message = record.getMessage()
        if message.startswith("{"):
            return message
        return json.dumps({
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
        })


def configure_logging(config: LogConfig | None = None) -> logging.Logger:
    """Attach a stdout JSON handler to the configured logger, once."""
    config = config or LogConfig()
    logger = logging.getLogger(config.logger_name)
    logger.setLevel(config.level)

    if not any(isinstance(h.formatter, JsonFormatter) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)

    return logger
