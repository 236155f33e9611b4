"""SessionHub — fan-out of sync messages to connected WebSocket peers."""
import asyncio
import logging
from typing import Any

logger = logging.getLogger(__name__)


class SessionHub:
    def __init__(self):
        self._subscribers: dict[str, asyncio.Queue] = {}

    def subscribe(self, client_id: str) -> asyncio.Queue:
        """Register a new peer. Returns a queue that receives (event, data) tuples."""
        q: asyncio.Queue = asyncio.Queue(maxsize=50)
        self._subscribers[client_id] = q
        return q

    def unsubscribe(self, client_id: str):
        self._subscribers.pop(client_id, None)

    @property
    def client_count(self) -> int:
        return len(self._subscribers)

    async def broadcast(self, event: str, data: Any):
        """Push an event to all connected peers, the sender included."""
        for q in self._subscribers.values():
            self._offer(q, event, data)

    async def send(self, client_id: str, event: str, data: Any):
        """Push an event to a single peer (unicast reply)."""
        q = self._subscribers.get(client_id)
        if q is not None:
            self._offer(q, event, data)

    @staticmethod
    def _offer(q: asyncio.Queue, event: str, data: Any):
        if q.full():
            # Peer too slow — drop oldest, a newer snapshot supersedes it
            q.get_nowait()
            logger.debug("Peer queue full, dropped oldest message")
        q.put_nowait((event, data))
