"""Logging module for network-harness."""

from .logger import (
    Logger,
    LogLevel,
    LogEvent,
    ConsoleLogger,
    NullLogger,
    FileLogger,
    MultiLogger,
)

__all__ = [
    "Logger",
    "LogLevel",
    "LogEvent",
    "ConsoleLogger",
    "NullLogger",
    "FileLogger",
    "MultiLogger",
]
