"""In-process fan-out of catalog change notifications."""

from __future__ import annotations

import asyncio
import logging

from .models import MediaEvent

logger = logging.getLogger(__name__)


class EventBus:
    """Broadcasts :class:`MediaEvent` objects to every current subscriber."""

    def __init__(self, max_backlog: int = 100) -> None:
        self._subscribers: set[asyncio.Queue[MediaEvent]] = set()
        self._max_backlog = max_backlog

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[MediaEvent]:
        queue: asyncio.Queue[MediaEvent] = asyncio.Queue(maxsize=self._max_backlog)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[MediaEvent]) -> None:
        self._subscribers.discard(queue)

    async def publish(self, event: MediaEvent) -> None:
        delivered = 0
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                # A stalled subscriber loses its oldest pending event.
                queue.get_nowait()
                queue.put_nowait(event)
            delivered += 1
        logger.debug(
            "Published %s for media %s to %d subscribers",
            event.event,
            event.media_id,
            delivered,
        )
