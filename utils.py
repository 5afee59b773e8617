"""Utility helpers (size formatting, header inspection, resource checks)."""
from __future__ import annotations

import math
import mimetypes
import time
from typing import Mapping
from urllib.parse import unquote

import psutil
from yarl import URL

DEFAULT_FILENAME = "file.bin"


def humanize_size(size_bytes: float) -> str:
    """Return human readable size (caps at TB to avoid index errors)."""
    if size_bytes <= 0:
        return "0B"
    names = ("B", "KB", "MB", "GB", "TB")
    i = int(math.log(size_bytes, 1024))
    if i >= len(names):
        i = len(names) - 1
    p = 1024 ** i
    return f"{round(size_bytes / p, 2)} {names[i]}"


def content_length(headers: Mapping[str, str]) -> int:
    """Declared body length, 0 when absent or unparsable."""
    raw = headers.get("Content-Length")
    if raw is None:
        return 0
    try:
        return max(int(raw.strip()), 0)
    except ValueError:
        return 0


def _disposition_filename(value: str | None) -> str | None:
    if not value:
        return None
    for part in value.split(";"):
        part = part.strip()
        if part.startswith("filename="):
            name = part[len("filename="):].strip('"')
            return name or None
    return None


def filename_from_headers(headers: Mapping[str, str], url: str | URL) -> str:
    """Pick a display name for an HTTP resource.

    Order: ``Content-Disposition`` filename, then the last URL path segment
    (with an extension guessed from ``Content-Type`` when the segment has
    none), then ``file.bin``. The result is percent-decoded.
    """
    name = _disposition_filename(headers.get("Content-Disposition"))
    if name is None:
        segment = URL(str(url)).raw_name
        if "." in segment:
            name = segment
        else:
            content_type = (headers.get("Content-Type") or "").split(";")[0].strip()
            ext = mimetypes.guess_extension(content_type) if content_type else None
            name = f"{segment or 'file'}{ext}" if ext else DEFAULT_FILENAME
    return unquote(name)


def is_video(content_type: str | None, filename: str) -> bool:
    if content_type and content_type.startswith("video/mp4"):
        return True
    return filename.lower().endswith(".mp4")


_last_mem_warn: float = 0.0


def maybe_memory_warning(threshold_percent: int) -> bool:
    """Return True if memory usage >= threshold and we haven't warned recently.

    Simple rate limit: at most one warning every 60 seconds.
    """
    global _last_mem_warn
    if threshold_percent <= 0:
        return False
    now = time.time()
    if now - _last_mem_warn < 60:
        return False
    try:
        percent = psutil.virtual_memory().percent
    except Exception:  # pragma: no cover - psutil edge failures
        return False
    if percent >= threshold_percent:
        _last_mem_warn = now
        return True
    return False


__all__ = [
    "humanize_size",
    "content_length",
    "filename_from_headers",
    "is_video",
    "maybe_memory_warning",
]
