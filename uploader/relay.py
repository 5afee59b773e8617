from __future__ import annotations

from typing import Any, Protocol

import config
import utils
from logger import log
from .source import CancellableSource
from .state import (
    CancelledTransfer,
    PolicyViolation,
    TransferFailed,
    TransferState,
    TransferStatus,
)


class Upload(Protocol):
    part_size: int

    async def write(self, part: bytes) -> None: ...

    def finish(self) -> Any: ...

    async def abort(self) -> None: ...


def validate_size(size: int) -> None:
    if size <= 0:
        raise PolicyViolation("empty", size)
    if size > config.MAX_FILE_SIZE:
        raise PolicyViolation("too_large", size)


class StreamingRelay:
    """Pump the source into the upload one part at a time.

    The counter only moves after the sink accepted a part, and the source is
    never asked for more than the declared remainder, so ``transferred`` can
    not pass the declared total. Cancellation surfaces from the source at the
    next part boundary.
    """

    def __init__(self, source: CancellableSource, upload: Upload, state: TransferState):
        self.source = source
        self.upload = upload
        self.state = state

    async def run(self) -> Any:
        counter = self.state.counter
        validate_size(counter.total)
        self.state.begin_streaming()
        try:
            while counter.remaining > 0:
                chunk = await self.source.read(min(self.upload.part_size, counter.remaining))
                if not chunk:
                    raise TransferFailed(
                        f"source ended after {utils.humanize_size(counter.transferred)}"
                        f" of {utils.humanize_size(counter.total)}"
                    )
                await self.upload.write(chunk)
                counter.advance(len(chunk))
                if utils.maybe_memory_warning(config.MEMORY_WARNING_PERCENT):
                    log.warning("High RAM usage (> %d%%) while uploading %s",
                                config.MEMORY_WARNING_PERCENT, self.state.name)
            handle = self.upload.finish()
        except CancelledTransfer:
            await self._stop(TransferStatus.CANCELLED)
            raise
        except TransferFailed:
            await self._stop(TransferStatus.FAILED)
            raise
        except Exception as e:  # noqa: BLE001
            await self._stop(TransferStatus.FAILED)
            raise TransferFailed(str(e) or type(e).__name__) from e
        self.source.close()
        self.state.finish(TransferStatus.COMPLETED)
        return handle

    async def _stop(self, status: TransferStatus) -> None:
        self.state.finish(status)
        self.source.close()
        await self.upload.abort()


__all__ = ["StreamingRelay", "validate_size", "Upload"]
