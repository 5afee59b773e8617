"""Slash command parsing (``/name@bot argument``)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True, frozen=True)
class Command:
    name: str  # `/start` -> `start`
    via: Optional[str] = None  # `/help@MyBot` -> `MyBot`
    arg: Optional[str] = None  # `/echo hello world` -> `hello world`

    def addressed_to(self, username: str | None) -> bool:
        """True when the command names no bot or names ``username``."""
        if self.via is None:
            return True
        return bool(username) and self.via.lower() == username.lower()


def parse_command(text: str | None) -> Command | None:
    if not text or not text.startswith("/"):
        return None
    head, _, arg = text[1:].partition(" ")
    name, _, via = head.partition("@")
    if not name:
        return None
    arg = arg.strip()
    return Command(name=name, via=via or None, arg=arg or None)


__all__ = ["Command", "parse_command"]
