from __future__ import annotations

import enum
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from logger import log
from .ids import lease_token
from .source import CancelSignal
from .state import ChatBusy, TransferState


class CancelOutcome(enum.Enum):
    SIGNALLED = "signalled"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"


@dataclass(slots=True, eq=False)
class ChatLease:
    chat_id: int
    owner_id: int
    cancel: CancelSignal = field(default_factory=CancelSignal)
    started_at: float = field(default_factory=time.time)
    # Attached by the orchestrator once negotiation has created it.
    state: Optional[TransferState] = None

    def __setattr__(self, name, value):
        if name == "owner_id" and hasattr(self, "owner_id"):
            raise AttributeError("lease owner is fixed at creation")
        object.__setattr__(self, name, value)

    @property
    def token(self) -> str:
        return lease_token(self.chat_id, self.started_at)


class TransferCoordinator:
    """In‑memory table of chats with an active upload.

    All mutation happens in plain (non‑async) methods: on the single event loop
    a check‑and‑insert can never interleave with another caller, so racing
    ``acquire`` calls for one chat yield exactly one lease.
    """

    def __init__(self):
        self._leases: Dict[int, ChatLease] = {}

    def acquire(self, chat_id: int, owner_id: int) -> ChatLease:
        existing = self._leases.get(chat_id)
        if existing is not None:
            raise ChatBusy(chat_id, existing.owner_id)
        lease = ChatLease(chat_id, owner_id)
        self._leases[chat_id] = lease
        log.info("Locked chat %s for user %s", chat_id, owner_id)
        return lease

    def release(self, chat_id: int, lease: ChatLease | None = None) -> bool:
        """Drop the chat's lease. No-op when absent (or when ``lease`` is stale)."""
        current = self._leases.get(chat_id)
        if current is None or (lease is not None and current is not lease):
            return False
        del self._leases[chat_id]
        log.info("Unlocked chat %s", chat_id)
        return True

    def cancel(self, chat_id: int, requester_id: int, token: str | None = None) -> CancelOutcome:
        lease = self._leases.get(chat_id)
        if lease is None or (token is not None and token != lease.token):
            return CancelOutcome.NOT_FOUND
        if requester_id != lease.owner_id:
            log.info(
                "User %s tried to cancel the upload of user %s in chat %s",
                requester_id,
                lease.owner_id,
                chat_id,
            )
            return CancelOutcome.UNAUTHORIZED
        if lease.cancel.fire():
            log.info("Cancelling upload in chat %s", chat_id)
        return CancelOutcome.SIGNALLED

    @contextmanager
    def hold(self, chat_id: int, owner_id: int) -> Iterator[ChatLease]:
        """Acquire a lease and release it on every exit path."""
        lease = self.acquire(chat_id, owner_id)
        try:
            yield lease
        finally:
            self.release(chat_id, lease)

    def get(self, chat_id: int) -> ChatLease | None:
        return self._leases.get(chat_id)

    def active(self) -> List[ChatLease]:
        return list(self._leases.values())

    def cancel_all(self) -> int:
        """Fire every lease's signal (shutdown). Returns how many were new."""
        return sum(1 for lease in self.active() if lease.cancel.fire())

    def __len__(self) -> int:
        return len(self._leases)

    def __contains__(self, chat_id: int) -> bool:
        return chat_id in self._leases


coordinator = TransferCoordinator()

__all__ = ["CancelOutcome", "ChatLease", "TransferCoordinator", "coordinator"]
