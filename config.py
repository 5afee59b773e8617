"""Runtime configuration.

Reads environment variables once (via python-dotenv unless SKIP_DOTENV is set)
and exposes constants for the rest of the code. Only parsing + validation here.
Required: TELEGRAM_API_ID, TELEGRAM_API_HASH, TELEGRAM_BOT_TOKEN.
"""
from __future__ import annotations

import os
import re
from dotenv import load_dotenv

if not os.getenv("SKIP_DOTENV"):
    load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


API_ID: int = _env_int("TELEGRAM_API_ID", 0)
API_HASH: str = os.getenv("TELEGRAM_API_HASH", "")
BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")
SESSION_NAME: str = os.getenv("SESSION_NAME", "bot")

# Optional access control: comma/space separated list of allowed user IDs or usernames.
# Examples: "12345,@alice,bob". Usernames are case‑insensitive and may include '@'.
# If empty -> bot is open to everyone.
_RAW_ALLOWED_USERS = os.getenv("ALLOWED_USERS", "").strip()


def _parse_allowed(raw: str) -> tuple[set[int], set[str]]:
    ids: set[int] = set()
    names: set[str] = set()
    if not raw:
        return ids, names
    for token in filter(None, re.split(r"[\s,]+", raw)):
        token = token.lstrip("@")
        if not token:
            continue
        if token.isdigit():
            ids.add(int(token))
        else:
            names.add(token.lower())
    return ids, names


ALLOWED_USER_IDS, ALLOWED_USERNAMES = _parse_allowed(_RAW_ALLOWED_USERS)

# Telegram refuses anything bigger; fixed rather than configurable.
MAX_FILE_SIZE: int = 2 * 1024 * 1024 * 1024

PROGRESS_INTERVAL: float = _env_float("PROGRESS_INTERVAL", 3.0)
CONNECT_TIMEOUT: float = _env_float("CONNECT_TIMEOUT", 10.0)
USER_AGENT: str = os.getenv(
    "USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/110.0.0.0 Safari/537.36",
)
MEMORY_WARNING_PERCENT: int = _env_int("MEMORY_WARNING_PERCENT", 90)


def validate() -> None:
    if API_ID == 0 or not API_HASH or not BOT_TOKEN:
        raise SystemExit(
            "Missing TELEGRAM_API_ID / TELEGRAM_API_HASH / TELEGRAM_BOT_TOKEN"
        )


def is_user_allowed(user_id: int | None, username: str | None) -> bool:
    """Return True if user is allowed based on configured allow‑list.

    Open access (no restrictions) when both sets empty. Username check is
    case‑insensitive. Prefer specifying numeric IDs to survive username changes.
    """
    if not ALLOWED_USER_IDS and not ALLOWED_USERNAMES:
        return True
    if user_id is not None and user_id in ALLOWED_USER_IDS:
        return True
    if username and username.lower() in ALLOWED_USERNAMES:
        return True
    return False


__all__ = [
    "API_ID",
    "API_HASH",
    "BOT_TOKEN",
    "SESSION_NAME",
    "MAX_FILE_SIZE",
    "PROGRESS_INTERVAL",
    "CONNECT_TIMEOUT",
    "USER_AGENT",
    "MEMORY_WARNING_PERCENT",
    "ALLOWED_USER_IDS",
    "ALLOWED_USERNAMES",
    "is_user_allowed",
    "validate",
]
