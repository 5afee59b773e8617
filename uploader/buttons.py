from __future__ import annotations

from telethon import Button

from .coordinator import ChatLease

CANCEL_PREFIX = "cancel:"


def build_buttons(lease: ChatLease):
    if lease.cancel.fired:
        return None
    return [[Button.inline("⛔ Cancel", data=f"{CANCEL_PREFIX}{lease.token}")]]


def parse_cancel_data(data: bytes) -> str | None:
    """Return the lease token from callback data, None if it isn't a cancel."""
    text = data.decode(errors="ignore")
    if not text.startswith(CANCEL_PREFIX):
        return None
    return text[len(CANCEL_PREFIX):] or None


__all__ = ["build_buttons", "parse_cancel_data", "CANCEL_PREFIX"]
