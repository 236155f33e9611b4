"""Sync engine — owns the single playback checkpoint.

Receives commands via methods, broadcasts snapshots via SessionHub.
All mutations run on the event loop without awaiting mid-update, so the
commit-then-mutate sequence is never interleaved.
"""
import asyncio
import logging
from typing import Callable, Optional

from .clock import PlaybackState, commit, is_finite_number, now_ms, snapshot
from .config import SYNC_INTERVAL_MS

logger = logging.getLogger(__name__)

SYNC_EVENT = "syncState"


class SyncEngine:
    def __init__(self, hub, interval_ms: int = SYNC_INTERVAL_MS,
                 clock: Callable[[], int] = now_ms):
        """hub: SessionHub instance for broadcasting to WebSocket peers."""
        self.hub = hub
        self.interval_ms = interval_ms
        self._clock = clock
        self.playback = PlaybackState(updated_at_ms=clock())

        self._running = False
        self._tick_task: Optional[asyncio.Task] = None

    # ── Commands (called from WebSocket handlers) ────────────────────────────

    async def play(self, time=None):
        logger.info("Play received (time=%r)", time)
        self._checkpoint(time)
        self.playback.is_playing = True
        await self.broadcast_sync_state()

    async def pause(self, time=None):
        logger.info("Pause received (time=%r)", time)
        self._checkpoint(time)
        self.playback.is_playing = False
        await self.broadcast_sync_state()

    async def seek(self, time) -> bool:
        """Move the checkpoint. Returns False if the target was rejected."""
        if not is_finite_number(time):
            logger.debug("Ignoring seek with invalid time %r", time)
            return False
        logger.info("Seek received (time=%r)", time)
        self.playback.current_time = max(0.0, float(time))
        self.playback.updated_at_ms = self._clock()
        await self.broadcast_sync_state()
        return True

    def sync_state(self) -> dict:
        """Fresh snapshot, no mutation."""
        return snapshot(self.playback, self._clock())

    async def broadcast_sync_state(self):
        await self.hub.broadcast(SYNC_EVENT, self.sync_state())

    def _checkpoint(self, time):
        now = self._clock()
        if is_finite_number(time):
            self.playback.current_time = max(0.0, float(time))
        else:
            commit(self.playback, now)
        self.playback.updated_at_ms = now

    # ── Broadcaster ──────────────────────────────────────────────────────────

    async def run(self):
        """Start the periodic broadcaster. One per process."""
        if self._tick_task and not self._tick_task.done():
            return
        self._running = True
        self._tick_task = asyncio.create_task(self._tick_loop())
        logger.info("Sync broadcaster started (every %d ms)", self.interval_ms)

    async def stop(self):
        """Graceful shutdown."""
        self._running = False
        if self._tick_task and not self._tick_task.done():
            self._tick_task.cancel()
            try:
                await self._tick_task
            except asyncio.CancelledError:
                pass
        self._tick_task = None

    async def _tick_loop(self):
        """Broadcast a snapshot every period, changed or not."""
        while self._running:
            await asyncio.sleep(self.interval_ms / 1000)
            await self.broadcast_sync_state()
