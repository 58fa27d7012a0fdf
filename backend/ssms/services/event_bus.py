"""In-process pub/sub used for live principal and notification updates (SSE)."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

QUEUE_SIZE = 256


class EventBus:
    def __init__(self) -> None:
        self._subscribers: list[asyncio.Queue] = []

    async def publish(self, event_type: str, data: dict, user_id: str | None = None) -> dict:
        """Fan a message out to every subscriber queue.

        ``user_id`` names the principal the message concerns; subscribers that
        filter by user only see their own messages.
        """
        message = {
            "event": event_type,
            "data": data,
            "user_id": user_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.warning("Dropping slow event subscriber (%s)", event_type)
                self._remove(queue)
        return message

    async def subscribe(self, user_id: str | None = None) -> AsyncIterator[str]:
        """Yield SSE-formatted messages until the consumer stops iterating."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)
        self._subscribers.append(queue)
        try:
            while True:
                message = await queue.get()
                if user_id is not None and message["user_id"] != user_id:
                    continue
                yield f"data: {json.dumps(message, default=str)}\n\n"
        finally:
            self._remove(queue)

    def _remove(self, queue: asyncio.Queue) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)


class Outbox:
    """Messages staged during a unit of work.

    Nothing reaches the bus until ``flush`` is called after a successful
    commit; a rolled-back unit of work calls ``discard`` instead.
    """

    def __init__(self, bus: EventBus | None = None) -> None:
        self.bus = bus
        self._messages: list[tuple[str, dict, str | None]] = []

    def stage(self, event_type: str, data: dict, user_id: str | None = None) -> None:
        self._messages.append((event_type, data, user_id))

    @property
    def pending(self) -> list[tuple[str, dict, str | None]]:
        return list(self._messages)

    def discard(self) -> None:
        self._messages.clear()

    async def flush(self) -> int:
        messages, self._messages = self._messages, []
        if self.bus is None:
            return 0
        for event_type, data, user_id in messages:
            await self.bus.publish(event_type, data, user_id=user_id)
        return len(messages)
