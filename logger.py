"""Project-wide logger with a hard size cap.

Environment variables:
  LOG_FILE     Path to log file (default: uploader.log)
  LOG_LEVEL    Logging level (default: INFO)
  LOG_MAX_MB   Max size in megabytes before truncation (default: 100)

A single log file is kept. When a record would push it past the cap the file
is truncated in place, a marker line is written and logging continues.
Per-chat messages go through ``chat_logger`` so every line carries its chat id.
"""
from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Optional

__all__ = ["log", "get_logger", "chat_logger", "TruncatingFileHandler"]

LOGGER_NAME = "url_uploader_bot"
_FORMAT = "%(asctime)s %(levelname).1s %(name)s:%(lineno)d | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class TruncatingFileHandler(logging.FileHandler):
    """File handler that starts over once ``max_bytes`` would be exceeded."""

    def __init__(self, filename: str, max_bytes: int, encoding: Optional[str] = "utf-8"):
        super().__init__(filename, mode="a", encoding=encoding, delay=True)
        self.max_bytes = max_bytes

    def _current_size(self) -> int:
        try:
            return os.path.getsize(self.baseFilename)
        except OSError:
            return 0

    def _restart(self, previous_size: int) -> None:
        if self.stream is not None:
            self.stream.close()
        self.stream = open(self.baseFilename, "w", encoding=self.encoding or "utf-8")
        stamp = datetime.now(timezone.utc).isoformat()
        self.stream.write(f"--- log truncated at {stamp} (previous size {previous_size} bytes) ---\n")

    def emit(self, record: logging.LogRecord):  # noqa: D401
        try:
            line = self.format(record) + "\n"
            if self.stream is None:
                self.stream = self._open()
            self.stream.flush()
            size = self._current_size()
            if size + len(line.encode(self.encoding or "utf-8")) > self.max_bytes:
                self._restart(size)
            self.stream.write(line)
            self.stream.flush()
        except Exception:
            self.handleError(record)


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def get_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:  # Already configured
        return logger

    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    log_file = os.getenv("LOG_FILE", "uploader.log")
    max_mb = max(_env_int("LOG_MAX_MB", 100), 1)

    formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)
    file_handler = TruncatingFileHandler(log_file, max_bytes=max_mb * 1024 * 1024)
    file_handler.setFormatter(formatter)
    stderr_handler = logging.StreamHandler()
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(formatter)

    logger.setLevel(level)
    logger.addHandler(file_handler)
    logger.addHandler(stderr_handler)
    logger.propagate = False
    logger.debug("Logger initialized (file=%s, max_mb=%s, level=%s)", log_file, max_mb, level_name)
    return logger


class _ChatAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        return f"[chat {self.extra['chat_id']}] {msg}", kwargs


def chat_logger(chat_id: int) -> logging.LoggerAdapter:
    """Return an adapter that prefixes records with the chat id."""
    return _ChatAdapter(get_logger(), {"chat_id": chat_id})


log = get_logger()
