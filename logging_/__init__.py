"""Structured JSON logging for the router."""

from logging_.structured import (
    JsonFormatter,
    LogConfig,
    StructuredLogger,
    configure_logging,
)

__all__ = [
    "JsonFormatter",
    "LogConfig",
    "StructuredLogger",
    "configure_logging",
]
