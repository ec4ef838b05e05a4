# src/scholarlens/utils/logging_config.py
"""
Per-channel log files for ScholarLens.

A search run writes its stage summaries to the research channel, the history
store reports quota and corruption events to the store and error channels,
and the HTTP layer records failed streams in the api channel. Channel names
map to files under ``SCHOLARLENS_LOG_DIR`` through ``log_config.yaml``, and
every line carries the trace ID of the search run that wrote it:

    from scholarlens.utils.logging_config import LogFiles, Logger

    Logger.info("Search started", file=LogFiles.RESEARCH)

Environment variables:
    SCHOLARLENS_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: INFO)
    SCHOLARLENS_LOG_DIR: base directory for log files (default: logs/)
    SCHOLARLENS_LOG_MAX_BYTES: size at which a file rotates (default: 10MB)
    SCHOLARLENS_LOG_BACKUP_COUNT: rotated files kept per channel (default: 5)
"""

from __future__ import annotations

import logging
import os
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

import yaml

# Search runs are asyncio tasks; each one sees its own trace ID.
_trace_id_var: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)

LOG_CONFIG_FILE = Path(__file__).parent / "log_config.yaml"
DEFAULT_LOG_FILE = "scholarlens.log"
LINE_FORMAT = "{timestamp} [{level}] [{trace_id}] {channel} - {message}"

DEFAULT_CHANNELS = {
    "research": "research/research.log",
    "store": "store/store.log",
    "api": "api/api.log",
    "error": "errors/error.log",
}

LOG_LEVELS = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
    "CRITICAL": 50,
}


def _read_channel_map(path: Path) -> Dict[str, str]:
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return {}
    files = config.get("files") if isinstance(config, dict) else None
    if not isinstance(files, dict):
        return {}
    return {str(name).lower(): str(target) for name, target in files.items()}


class _LogFilesMeta(type):
    """Resolves ``LogFiles.RESEARCH`` against the channel map."""

    def __getattr__(cls, name: str) -> str:
        channels = cls.channels()
        key = name.lower()
        if key in channels:
            return channels[key]
        raise AttributeError(f"Log channel '{name}' is not configured")


class LogFiles(metaclass=_LogFilesMeta):
    """Channel name to log file path, relative to the log directory."""

    _channels: Optional[Dict[str, str]] = None

    @classmethod
    def channels(cls) -> Dict[str, str]:
        if cls._channels is None:
            channels = dict(DEFAULT_CHANNELS)
            channels.update(_read_channel_map(LOG_CONFIG_FILE))
            cls._channels = channels
        return cls._channels


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


@dataclass
class LogSettings:
    level: str = "INFO"
    base_dir: str = "logs"
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5

    @classmethod
    def from_env(cls) -> "LogSettings":
        level = os.environ.get("SCHOLARLENS_LOG_LEVEL", "INFO").strip().upper()
        return cls(
            level=level if level in LOG_LEVELS else "INFO",
            base_dir=os.environ.get("SCHOLARLENS_LOG_DIR", "logs"),
            max_bytes=_int_env("SCHOLARLENS_LOG_MAX_BYTES", cls.max_bytes),
            backup_count=_int_env("SCHOLARLENS_LOG_BACKUP_COUNT", cls.backup_count),
        )


class Logger:
    """Static facade writing to rotating per-channel log files."""

    _settings: Optional[LogSettings] = None
    _handlers: Dict[str, RotatingFileHandler] = {}

    @classmethod
    def init(cls, settings: Optional[LogSettings] = None) -> None:
        """(Re)configure the facade; open files are closed first."""
        cls.close()
        cls._settings = settings or LogSettings.from_env()

    @classmethod
    def info(cls, message: str, file: Optional[str] = None) -> None:
        cls._write("INFO", message, file)

    @classmethod
    def warning(cls, message: str, file: Optional[str] = None) -> None:
        cls._write("WARNING", message, file)

    @classmethod
    def error(cls, message: str, file: Optional[str] = None) -> None:
        cls._write("ERROR", message, file)

    @classmethod
    def close(cls) -> None:
        """Close every open file; the next write reads the settings again."""
        for handler in cls._handlers.values():
            handler.close()
        cls._handlers.clear()
        cls._settings = None

    @classmethod
    def _write(cls, level: str, message: str, file: Optional[str]) -> None:
        if cls._settings is None:
            cls._settings = LogSettings.from_env()
        settings = cls._settings
        if LOG_LEVELS[level] < LOG_LEVELS[settings.level]:
            return

        relative = file or DEFAULT_LOG_FILE
        line = LINE_FORMAT.format(
            timestamp=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            level=level,
            trace_id=_trace_id_var.get() or "-",
            channel=Path(relative).stem,
            message=message,
        )
        record = logging.makeLogRecord({"msg": line, "levelname": level})
        cls._handler(settings, relative).handle(record)

    @classmethod
    def _handler(cls, settings: LogSettings, relative: str) -> RotatingFileHandler:
        path = Path(settings.base_dir) / relative
        key = str(path)
        if key not in cls._handlers:
            path.parent.mkdir(parents=True, exist_ok=True)
            cls._handlers[key] = RotatingFileHandler(
                filename=key,
                maxBytes=settings.max_bytes,
                backupCount=settings.backup_count,
                encoding="utf-8",
            )
        return cls._handlers[key]


def set_trace_id() -> str:
    """Bind a fresh trace ID to the current context and return it."""
    tid = f"req-{uuid.uuid4().hex[:12]}"
    _trace_id_var.set(tid)
    return tid
