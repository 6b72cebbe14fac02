from typing import AsyncIterator, BinaryIO, Optional
import asyncio
import sys

from buildx_plugin.common.config.constants import METRICS_CHANNEL_CAPACITY
from buildx_plugin.common.config.logging_config import get_logger


logger = get_logger(__name__)

_CLOSED = object()


class LineTee:
    """Forward build output to a console sink and a bounded line channel.

    The console write always happens first and never waits on the channel.
    When the channel is full the line is dropped for the reader only.
    """

    def __init__(
        self,
        sink: Optional[BinaryIO] = None,
        capacity: int = METRICS_CHANNEL_CAPACITY,
    ):
        self._sink = sink if sink is not None else sys.stdout.buffer
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)
        self._closed = False
        self._forwarded = 0
        self._dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def forwarded(self) -> int:
        return self._forwarded

    @property
    def dropped(self) -> int:
        return self._dropped

    def write(self, data: bytes) -> int:
        self._sink.write(data)
        self._sink.flush()

        if self._closed or not data:
            return len(data)

        try:
            self._queue.put_nowait(data.decode("utf-8", errors="replace"))
            self._forwarded += 1
        except asyncio.QueueFull:
            self._dropped += 1

        return len(data)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # the reader is still draining, so this only waits for one free slot
        await self._queue.put(_CLOSED)

        if self._dropped:
            logger.debug(f"Metrics channel dropped {self._dropped} lines")

    async def lines(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item
