"""Structured run events: what the harness is doing, for people and for files."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
import json
import threading

from rich.console import Console
from rich.rule import Rule
from rich.text import Text


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return list(LogLevel).index(self)


@dataclass
class LogEvent:
    """One harness event, e.g. ``ssh.check`` or ``terraform.apply``."""

    level: LogLevel
    event: str
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def category(self) -> str:
        return self.event.split(".", 1)[0]

    @property
    def outcome(self) -> Optional[bool]:
        """True/False when the event reports a pass or failure, else None."""
        value = self.data.get("success", self.data.get("passed"))
        return None if value is None else bool(value)

    def to_dict(self) -> Dict[str, Any]:
        entry = {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "event": self.event,
            "message": self.message,
        }
        if self.data:
            entry["data"] = self.data
        return entry


class Logger(ABC):
    """
    Base class for event loggers.

    Subclasses implement ``emit``; level filtering happens here so every
    sink drops the same events.
    """

    min_level: LogLevel = LogLevel.DEBUG

    def log(
        self,
        level: LogLevel,
        event: str,
        message: str = "",
        data: Optional[Dict[str, Any]] = None
    ) -> None:
        if level.rank < self.min_level.rank:
            return
        self.emit(LogEvent(level=level, event=event, message=message, data=dict(data or {})))

    @abstractmethod
    def emit(self, record: LogEvent) -> None:
        """Write one event that passed the level filter."""

    def debug(self, event: str, message: str = "", data: Optional[Dict[str, Any]] = None) -> None:
        self.log(LogLevel.DEBUG, event, message, data)

    def info(self, event: str, message: str = "", data: Optional[Dict[str, Any]] = None) -> None:
        self.log(LogLevel.INFO, event, message, data)

    def warning(self, event: str, message: str = "", data: Optional[Dict[str, Any]] = None) -> None:
        self.log(LogLevel.WARNING, event, message, data)

    def error(self, event: str, message: str = "", data: Optional[Dict[str, Any]] = None) -> None:
        self.log(LogLevel.ERROR, event, message, data)

    def critical(self, event: str, message: str = "", data: Optional[Dict[str, Any]] = None) -> None:
        self.log(LogLevel.CRITICAL, event, message, data)


class ConsoleLogger(Logger):
    """Renders the run as a readable narrative on the terminal."""

    STYLES = {
        LogLevel.DEBUG: "cyan",
        LogLevel.INFO: "green",
        LogLevel.WARNING: "yellow",
        LogLevel.ERROR: "red",
        LogLevel.CRITICAL: "bold magenta",
    }

    ICONS = {
        "run.started": "🚀",
        "terraform.stage": "📂",
        "terraform.init": "📦",
        "terraform.apply": "🏗️",
        "terraform.destroy": "🧹",
        "outputs.checked": "🔍",
        "ssh.key_attached": "🔑",
        "exposure.checked": "🛡️",
        "ssh.check": "🔌",
        "stage.skipped": "⏭️",
        "stage.error": "❌",
        "cleanup.completed": "🧹",
        "cleanup.skipped": "⚠️",
    }

    # data keys worth echoing after the message, in display order
    SUMMARY_KEYS = ("region", "total", "failed", "ip")

    def __init__(
        self,
        min_level: LogLevel = LogLevel.INFO,
        colored: bool = True,
        show_timestamp: bool = False,
        console: Optional[Console] = None,
    ):
        """
        Args:
            min_level: Quietest level that is printed
            colored: Style output (ignored when stdout is not a terminal)
            show_timestamp: Prefix each line with HH:MM:SS
            console: rich Console to print to; stdout by default
        """
        self.min_level = min_level
        self.show_timestamp = show_timestamp
        self.console = console or Console(
            no_color=not colored,
            highlight=False,
            emoji=False,
            soft_wrap=True,
        )
        self.colored = colored
        # ssh checks report from worker threads
        self._lock = threading.Lock()

    def emit(self, record: LogEvent) -> None:
        with self._lock:
            if record.event == "run.started":
                self._banner_start(record)
            elif record.event == "run.completed":
                self._banner_end(record)
            else:
                self.console.print(self._line(record))

    def _style(self, style: str) -> str:
        return style if self.colored else ""

    def _banner_start(self, record: LogEvent) -> None:
        module = record.data.get("module", "network")
        self.console.print()
        self.console.print(Rule(Text(f"🚀 Network harness: {module}", style=self._style("bold"))))
        if record.message:
            self.console.print(f"📁 {record.message}", markup=False)

    def _banner_end(self, record: LogEvent) -> None:
        passed = bool(record.outcome)
        verdict = Text(
            "✅ PASSED" if passed else "❌ FAILED",
            style=self._style("bold green" if passed else "bold red"),
        )
        self.console.print()
        self.console.print(Rule(style=self._style("dim")))
        self.console.print(verdict)
        if record.message:
            self.console.print(f"   {record.message}", markup=False)
        self.console.print(Rule(style=self._style("dim")))

    def _line(self, record: LogEvent) -> Text:
        line = Text("  ")
        if self.show_timestamp:
            line.append(record.timestamp.strftime("%H:%M:%S") + " ", style=self._style("dim"))
        line.append(self.ICONS.get(record.event, "•") + " ")
        line.append(record.message or record.event, style=self._style(self.STYLES[record.level]))

        outcome = record.outcome
        if outcome is not None:
            line.append(" ✓" if outcome else " ✗", style=self._style("green" if outcome else "red"))

        duration = record.data.get("duration_seconds")
        if duration:
            line.append(f" ({duration:.1f}s)", style=self._style("dim"))

        extras = [f"{k}={record.data[k]}" for k in self.SUMMARY_KEYS if k in record.data]
        if extras and record.category not in ("terraform", "ssh"):
            line.append(f" ({', '.join(extras)})", style=self._style("dim"))
        return line


class NullLogger(Logger):
    """Drops every event; the default when no logger is given."""

    def emit(self, record: LogEvent) -> None:
        pass


class FileLogger(Logger):
    """Appends events to a file, one JSON object per line."""

    def __init__(self, file_path: str, min_level: LogLevel = LogLevel.INFO):
        self.file_path = file_path
        self.min_level = min_level
        self._lock = threading.Lock()

    def emit(self, record: LogEvent) -> None:
        line = json.dumps(record.to_dict(), default=str)
        with self._lock:
            with open(self.file_path, "a") as f:
                f.write(line + "\n")


class MultiLogger(Logger):
    """Fans each event out to several loggers, each applying its own level."""

    def __init__(self, *loggers: Logger):
        self.loggers = list(loggers)

    def log(
        self,
        level: LogLevel,
        event: str,
        message: str = "",
        data: Optional[Dict[str, Any]] = None
    ) -> None:
        for logger in self.loggers:
            logger.log(level, event, message, data)

    def emit(self, record: LogEvent) -> None:
        for logger in self.loggers:
            logger.emit(record)
