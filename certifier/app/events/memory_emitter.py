from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional

from certifier.app.events.models import AuthorizationEvent, AuthorizationEventType

logger = logging.getLogger(__name__)

_TERMINAL = frozenset(
    {
        AuthorizationEventType.RUN_COMPLETED,
        AuthorizationEventType.RUN_FAILED,
    }
)


class MemoryQueueEventEmitter:
    """
    Single-consumer in-memory event stream for one run.

    emit() never waits: when a bounded queue is full, stage events are
    dropped and counted. The terminal sentinel always gets through, so
    stream() always ends.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[Optional[AuthorizationEvent]] = asyncio.Queue(
            maxsize=maxsize
        )
        self._closed = False
        self._backlog: list = []
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event: AuthorizationEvent) -> None:
        if self._closed:
            return

        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            if event.event_type in _TERMINAL:
                self._backlog.append(event)
            else:
                self.dropped += 1
                logger.debug(
                    "event_dropped",
                    extra={"run_id": event.run_id, "stage": event.event_type.value},
                )

        if event.event_type in _TERMINAL:
            self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            self._backlog.append(None)

    async def stream(self) -> AsyncIterator[AuthorizationEvent]:
        while True:
            if self._queue.empty() and self._backlog:
                item = self._backlog.pop(0)
            else:
                item = await self._queue.get()
            if item is None:
                return
            yield item
