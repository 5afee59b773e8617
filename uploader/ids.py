"""Short identifiers for inline button callback data.

The cancel button carries a token for the lease it was created with, so a
button left on an old status message cannot cancel a later upload in the same
chat. MD5 of chat id + start time truncated to 8 hex chars keeps the callback
data well under Telegram's 64 byte limit.
"""
from __future__ import annotations

import hashlib

__all__ = ["lease_token"]


def lease_token(chat_id: int, started_at: float) -> str:
    """Return 8‑char hex digest identifying one lease of ``chat_id``."""
    return hashlib.md5(f"{chat_id}:{started_at!r}".encode()).hexdigest()[:8]
