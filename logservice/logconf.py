"""Construction of the loggers used by the client and the producer."""

from __future__ import annotations

import functools
import gzip
import json
import logging
import os
import shutil
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from logservice.producer.config import ProducerConfig

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

_MEGABYTE = 1024 * 1024
_DEFAULT_MAX_SIZE_MB = 100
_FALLBACK_SIZE = 10


def _level_name(levelno: int) -> str:
    if levelno >= logging.ERROR:
        return "error"
    if levelno >= logging.WARNING:
        return "warn"
    if levelno >= logging.INFO:
        return "info"
    return "debug"


def _utc_timestamp(created: float) -> str:
    return datetime.fromtimestamp(created, timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class _KeyValueFormatter(logging.Formatter):
    """Formats a record as ordered key/value pairs."""

    def __init__(self, with_context: bool) -> None:
        super().__init__()
        self.with_context = with_context

    def _fields(self, record: logging.LogRecord) -> list[tuple[str, Any]]:
        items: list[tuple[str, Any]] = [("level", _level_name(record.levelno))]
        if self.with_context:
            items.append(("time", _utc_timestamp(record.created)))
            items.append(("caller", f"{record.filename}:{record.lineno}"))
        items.append(("msg", record.getMessage()))
        extra = getattr(record, "fields", None)
        if extra:
            items.extend(extra.items())
        return items


class _LogfmtFormatter(_KeyValueFormatter):
    @staticmethod
    def _value(value: Any) -> str:
        if value is None:
            text = "null"
        elif isinstance(value, bool):
            text = "true" if value else "false"
        else:
            text = str(value)
        if any(char <= " " or char in '="' or not char.isprintable() for char in text):
            return json.dumps(text, ensure_ascii=False)
        return text

    def format(self, record: logging.LogRecord) -> str:
        return " ".join(f"{key}={self._value(value)}" for key, value in self._fields(record))


class _JsonFormatter(_KeyValueFormatter):
    def format(self, record: logging.LogRecord) -> str:
        data = {str(key): value for key, value in self._fields(record)}
        return json.dumps(data, sort_keys=True, ensure_ascii=False, default=str)


class _StdoutHandler(logging.Handler):
    """Writes to whatever sys.stdout is at the time of the call."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            sys.stdout.write(self.format(record) + "\n")
            sys.stdout.flush()
        except Exception:
            self.handleError(record)


class _RotatingFileHandler(logging.Handler):
    """Appends to a file, moving it aside once it would grow past max size.

    Rotated files are named "<stem>-<UTC timestamp><suffix>", optionally
    gzip-compressed; when max_backups is positive only that many are kept.
    """

    def __init__(self, filename: str, max_size_mb: int, max_backups: int, compress: bool) -> None:
        super().__init__()
        self.path = Path(filename)
        self.max_bytes = (max_size_mb or _DEFAULT_MAX_SIZE_MB) * _MEGABYTE
        self.max_backups = max_backups
        self.compress = compress
        self._stream = None
        self._size = 0

    def _open(self):
        if self._stream is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._stream = open(self.path, "ab")
            self._size = self._stream.tell()
        return self._stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            data = (self.format(record) + "\n").encode("utf-8")
            stream = self._open()
            if self._size and self._size + len(data) > self.max_bytes:
                self._rotate()
                stream = self._open()
            stream.write(data)
            stream.flush()
            self._size += len(data)
        except Exception:
            self.handleError(record)

    def _rotate(self) -> None:
        self._stream.close()
        self._stream = None
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S.%f")[:-3]
        backup = self.path.with_name(f"{self.path.stem}-{stamp}{self.path.suffix}")
        os.replace(self.path, backup)
        if self.compress:
            packed = backup.with_name(backup.name + ".gz")
            with open(backup, "rb") as source, gzip.open(packed, "wb") as target:
                shutil.copyfileobj(source, target)
            backup.unlink()
        self._prune()

    def _is_backup(self, candidate: Path) -> bool:
        name = candidate.name
        if candidate == self.path or not name.startswith(f"{self.path.stem}-"):
            return False
        return name.endswith(self.path.suffix) or name.endswith(self.path.suffix + ".gz")

    def _prune(self) -> None:
        if self.max_backups <= 0:
            return
        backups = sorted(
            (item for item in self.path.parent.iterdir() if self._is_backup(item)),
            key=lambda item: item.stat().st_mtime,
            reverse=True,
        )
        for old in backups[self.max_backups:]:
            old.unlink()

    def close(self) -> None:
        self.acquire()
        try:
            if self._stream is not None:
                self._stream.close()
                self._stream = None
        finally:
            self.release()
        super().close()


def _build(name: str, handler: logging.Handler, formatter: logging.Formatter, level: int) -> logging.Logger:
    logger = logging.Logger(name, level)
    logger.propagate = False
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return logger


def _log_flusher(backup_count: str, max_size: str, file_name: str) -> _RotatingFileHandler:
    size = _FALLBACK_SIZE if max_size == "0" else 0
    backups = _FALLBACK_SIZE if backup_count == "0" else 0
    return _RotatingFileHandler(file_name, size, backups, compress=True)


def generate_inner_logger(
    log_file_name: str,
    is_json_type: str,
    log_max_size: str,
    log_file_backup_count: str,
    allow_log_level: str,
) -> logging.Logger:
    """Build the client logger from string settings, as read from the environment."""
    if not log_file_name:
        return _build("logservice", _StdoutHandler(), _LogfmtFormatter(False), logging.DEBUG)
    json_wanted = is_json_type == "true"
    handler: logging.Handler
    if log_file_name == "stdout":
        handler = _log_flusher(log_file_backup_count, log_max_size, log_file_name)
        formatter: logging.Formatter = _LogfmtFormatter(True) if json_wanted else _JsonFormatter(True)
    else:
        handler = _StdoutHandler()
        formatter = _JsonFormatter(True) if json_wanted else _LogfmtFormatter(True)
    level = _LEVELS.get(allow_log_level, logging.INFO)
    return _build("logservice", handler, formatter, level)


@functools.lru_cache(maxsize=None)
def default_logger() -> logging.Logger:
    """The client logger configured from SLS_SDK_* environment variables."""
    return generate_inner_logger(
        os.environ.get("SLS_SDK_LOG_FILE_NAME", ""),
        os.environ.get("SLS_SDK_IS_JSON_TYPE", ""),
        os.environ.get("SLS_SDK_LOG_MAX_SIZE", ""),
        os.environ.get("SLS_SDK_LOG_FILE_BACKUP_COUNT", ""),
        os.environ.get("SLS_SDK_ALLOW_LOG_LEVEL", ""),
    )


def producer_logger(config: ProducerConfig) -> logging.Logger:
    """Build the producer logger; unset file size and backup count become 10."""
    handler: logging.Handler
    if not config.log_file_name:
        handler = _StdoutHandler()
        formatter: logging.Formatter = (
            _JsonFormatter(True) if config.is_json_type else _LogfmtFormatter(True)
        )
    else:
        if config.log_max_size == 0:
            config.log_max_size = _FALLBACK_SIZE
        if config.log_max_backups == 0:
            config.log_max_backups = _FALLBACK_SIZE
        handler = _RotatingFileHandler(
            config.log_file_name,
            config.log_max_size,
            config.log_max_backups,
            config.log_compress,
        )
        formatter = _LogfmtFormatter(True) if config.is_json_type else _JsonFormatter(True)
    level = _LEVELS.get(config.allow_log_level, logging.INFO)
    return _build("logservice.producer", handler, formatter, level)