"""One-way, ordered event channel between a generation run and its consumer."""

import asyncio
import logging

from app.schemas import CheckInStreamingStatus

logger = logging.getLogger(__name__)

_CLOSED = object()


class StatusChannel:
    """
    Unbounded queue of status events.
    
    Writers never block, so a run keeps going even if nobody is reading
    any more. ``close`` is idempotent; iteration ends after the close
    marker is consumed.
    """
    
    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
    
    @property
    def closed(self) -> bool:
        return self._closed
    
    def send(self, event: CheckInStreamingStatus) -> None:
        if self._closed:
            logger.warning(f"Dropping {event.status} event sent after channel close")
            return
        self._queue.put_nowait(event)
    
    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
    
    def __aiter__(self):
        return self
    
    async def __anext__(self) -> CheckInStreamingStatus:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item
