"""Cancellable wrapper around a sequential byte stream.

The wrapped stream only needs ``async read(n) -> bytes``; an empty result
means end of stream. Each underlying read is raced against the transfer's
cancel signal so a stalled origin cannot hold a cancelled upload open.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, Protocol

from .state import CancelledTransfer


class ByteStream(Protocol):
    async def read(self, n: int = -1) -> bytes: ...


class CancelSignal:
    """One-shot cancellation flag with an awaitable wake-up."""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def fired(self) -> bool:
        return self._event.is_set()

    def fire(self) -> bool:
        """Set the signal. Returns False if it had already fired."""
        if self._event.is_set():
            return False
        self._event.set()
        return True

    async def wait(self) -> None:
        await self._event.wait()


class CancellableSource:
    def __init__(
        self,
        stream: ByteStream,
        signal: CancelSignal,
        close: Optional[Callable[[], Any]] = None,
    ):
        self._stream = stream
        self._signal = signal
        self._close = close
        self.closed = False
        self.bytes_read = 0

    @classmethod
    def from_response(cls, response, signal: CancelSignal) -> "CancellableSource":
        """Wrap an ``aiohttp.ClientResponse`` body; closing drops the connection."""
        return cls(response.content, signal, close=response.close)

    @property
    def cancelled(self) -> bool:
        return self._signal.fired

    def cancel(self) -> bool:
        return self._signal.fire()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._close is not None:
            self._close()

    def _abort(self) -> CancelledTransfer:
        self.close()
        return CancelledTransfer()

    async def _read_some(self, n: int) -> bytes:
        reader = asyncio.ensure_future(self._stream.read(n))
        waiter = asyncio.ensure_future(self._signal.wait())
        try:
            await asyncio.wait({reader, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (reader, waiter):
                if not task.done():
                    task.cancel()
        if self._signal.fired:
            raise self._abort()
        return reader.result()

    async def read(self, n: int) -> bytes:
        """Read ``n`` bytes, fewer only at end of stream.

        Raises CancelledTransfer (after closing the connection) once the
        signal has fired, whether it fired before or during the read.
        """
        if n <= 0:
            raise ValueError("read size must be positive")
        if self._signal.fired:
            raise self._abort()
        buf = bytearray()
        while len(buf) < n:
            data = await self._read_some(n - len(buf))
            if not data:
                break
            buf.extend(data)
        self.bytes_read += len(buf)
        return bytes(buf)


__all__ = ["ByteStream", "CancelSignal", "CancellableSource"]
