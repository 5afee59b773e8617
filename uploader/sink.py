"""Telegram upload sink.

Telegram takes a file as numbered parts of one fixed size (the last may be
shorter) and only materializes it when the resulting ``InputFile`` is sent.
Files above 10 MiB use the "big file" requests, which need the part count up
front and carry no checksum.
"""
from __future__ import annotations

import hashlib
import random
from typing import Any, Optional

from telethon.tl.functions.upload import SaveBigFilePartRequest, SaveFilePartRequest
from telethon.tl.types import InputFile, InputFileBig

from logger import log
from .state import SinkError

PART_SIZE = 512 * 1024
BIG_FILE_THRESHOLD = 10 * 1024 * 1024


class PartUpload:
    def __init__(self, client: Any, total: int, name: str, part_size: int = PART_SIZE):
        if total <= 0:
            raise ValueError("upload size must be positive")
        self._client = client
        self.total = total
        self.name = name
        self.part_size = part_size
        self.part_count = (total + part_size - 1) // part_size
        self.is_big = total > BIG_FILE_THRESHOLD
        self.file_id = random.getrandbits(63)
        self.written = 0
        self.parts_sent = 0
        self.aborted = False
        self._md5: Optional[Any] = None if self.is_big else hashlib.md5()

    async def write(self, part: bytes) -> None:
        if self.aborted:
            raise SinkError("upload aborted")
        if self.parts_sent >= self.part_count:
            raise SinkError(f"part {self.parts_sent} beyond declared count {self.part_count}")
        last = self.parts_sent == self.part_count - 1
        if not part or len(part) > self.part_size or (not last and len(part) != self.part_size):
            raise SinkError(f"part {self.parts_sent} has invalid size {len(part)}")
        if self.is_big:
            request = SaveBigFilePartRequest(self.file_id, self.parts_sent, self.part_count, part)
        else:
            request = SaveFilePartRequest(self.file_id, self.parts_sent, part)
        if not await self._client(request):
            raise SinkError(f"Telegram refused part {self.parts_sent} of {self.name}")
        if self._md5 is not None:
            self._md5.update(part)
        self.parts_sent += 1
        self.written += len(part)

    def finish(self):
        if self.aborted:
            raise SinkError("upload aborted")
        if self.written != self.total:
            raise SinkError(f"wrote {self.written} of {self.total} declared bytes")
        if self.is_big:
            return InputFileBig(self.file_id, self.part_count, self.name)
        return InputFile(self.file_id, self.part_count, self.name, self._md5.hexdigest())

    async def abort(self) -> None:
        """Give up on the upload.

        Parts saved so far are never referenced by a message, so Telegram
        drops them on its own; nothing is sent to the chat.
        """
        if self.aborted:
            return
        self.aborted = True
        log.info(
            "Aborted upload of %s after %d/%d parts", self.name, self.parts_sent, self.part_count
        )


class TelegramSink:
    def __init__(self, client: Any, part_size: int = PART_SIZE):
        self._client = client
        self.part_size = part_size

    def open(self, total: int, name: str) -> PartUpload:
        return PartUpload(self._client, total, name, self.part_size)


__all__ = ["PART_SIZE", "BIG_FILE_THRESHOLD", "PartUpload", "TelegramSink"]
