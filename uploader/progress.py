from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

import config
import utils
from logger import log
from .state import ProgressSnapshot, TransferState

RenderFunc = Callable[[ProgressSnapshot], Awaitable[None]]


def progress_text(name: str, snap: ProgressSnapshot) -> str:
    return (
        f"⏳ Uploading {name} ({snap.percent:.2f}%)\n"
        f"{utils.humanize_size(snap.transferred)} / {utils.humanize_size(snap.total)}"
    )


class ProgressReporter:
    """Render the transfer's byte counter every ``interval`` seconds.

    One render may be outstanding at a time. A tick that finds the previous
    render still running is skipped, never queued, so the next tick shows the
    newest value. Renders take ``state.lock`` and do nothing once the
    transfer has left STREAMING; the final status is written under the same
    lock, which keeps it the last edit of the status message.
    """

    def __init__(self, state: TransferState, render: RenderFunc, interval: float | None = None):
        self.state = state
        self._render = render
        self.interval = config.PROGRESS_INTERVAL if interval is None else interval
        self._ticker: Optional[asyncio.Task] = None
        self._pending: Optional[asyncio.Task] = None
        self.emitted = 0
        self.skipped = 0

    @property
    def running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    def start(self) -> None:
        if self._ticker is None:
            self._ticker = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._ticker is not None and not self._ticker.done():
            self._ticker.cancel()
            try:
                await self._ticker
            except asyncio.CancelledError:
                pass
        if self._pending is not None:
            await asyncio.gather(self._pending, return_exceptions=True)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if not self.state.streaming:
                return
            self.tick()

    def tick(self) -> bool:
        """Start a render of the current counter unless one is outstanding."""
        if self._pending is not None and not self._pending.done():
            self.skipped += 1
            return False
        self._pending = asyncio.create_task(self._emit(self.state.snapshot()))
        return True

    async def _emit(self, snap: ProgressSnapshot) -> None:
        async with self.state.lock:
            if not self.state.streaming:
                return
            try:
                await self._render(snap)
            except Exception as e:  # noqa: BLE001
                log.debug("progress render failed for %s: %s", self.state.name, e)
                return
            self.emitted += 1


__all__ = ["ProgressReporter", "progress_text", "RenderFunc"]
