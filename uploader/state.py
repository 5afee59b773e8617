from __future__ import annotations

import asyncio
import enum
import time
from dataclasses import dataclass, field


class TransferStatus(str, enum.Enum):
    NEGOTIATING = "negotiating"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    REJECTED = "rejected"

    @property
    def terminal(self) -> bool:
        return self not in (TransferStatus.NEGOTIATING, TransferStatus.STREAMING)


@dataclass(slots=True)
class ByteCounter:
    """Bytes delivered to the sink so far; never moves past ``total``."""

    total: int
    transferred: int = 0

    def advance(self, n: int) -> int:
        if n < 0:
            raise ValueError("negative advance")
        if self.transferred + n > self.total:
            raise ValueError(
                f"advance of {n} would exceed declared total ({self.transferred}/{self.total})"
            )
        self.transferred += n
        return self.transferred

    @property
    def remaining(self) -> int:
        return self.total - self.transferred


@dataclass(slots=True, frozen=True)
class ProgressSnapshot:
    transferred: int
    total: int
    timestamp: float

    @property
    def percent(self) -> float:
        return self.transferred / self.total * 100 if self.total else 0.0


@dataclass(slots=True)
class TransferState:
    """Holds mutable per-transfer state.

    ``status`` is written by the relay (and the orchestrator while
    negotiating); the progress reporter only reads it. ``lock`` orders every
    write to the chat's status message: progress renders and the final status
    both take it, and renders re-check ``streaming`` once inside.
    """

    name: str
    counter: ByteCounter
    status: TransferStatus = TransferStatus.NEGOTIATING
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def declared_total(self) -> int:
        return self.counter.total

    @property
    def streaming(self) -> bool:
        return self.status is TransferStatus.STREAMING

    def begin_streaming(self) -> None:
        if self.status is not TransferStatus.NEGOTIATING:
            raise RuntimeError(f"cannot start streaming from {self.status.value}")
        self.status = TransferStatus.STREAMING

    def finish(self, status: TransferStatus) -> bool:
        """Move to a terminal status. Only the first call has any effect."""
        if not status.terminal:
            raise ValueError(f"{status.value} is not terminal")
        if self.status.terminal:
            return False
        self.status = status
        return True

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(self.counter.transferred, self.counter.total, time.time())


class UserInputError(Exception):
    """Missing or malformed command argument."""


class PolicyViolation(Exception):
    """Declared size outside the accepted range."""

    NOTICES = {
        "empty": "⚠️ File is empty",
        "too_large": "⚠️ File is too large",
    }

    def __init__(self, reason: str, size: int):
        super().__init__(f"{reason} ({size} bytes)")
        self.reason = reason
        self.size = size

    @property
    def notice(self) -> str:
        return self.NOTICES.get(self.reason, "⚠️ File rejected")


class ChatBusy(Exception):
    """Another transfer already holds the chat."""

    def __init__(self, chat_id: int, owner_id: int):
        super().__init__(f"chat {chat_id} busy (owner {owner_id})")
        self.chat_id = chat_id
        self.owner_id = owner_id


class CancelledTransfer(Exception):  # pragma: no cover - simple marker
    pass


class SinkError(Exception):
    pass


class TransferFailed(Exception):
    """Source or sink I/O failure; the original error is ``__cause__``."""


__all__ = [
    "TransferStatus",
    "ByteCounter",
    "ProgressSnapshot",
    "TransferState",
    "UserInputError",
    "PolicyViolation",
    "ChatBusy",
    "CancelledTransfer",
    "SinkError",
    "TransferFailed",
]
