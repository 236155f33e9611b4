"""Viewer connection — WebSocket session, reconnects and the pull tick.

Everything here runs on one event loop and calls the synchronous
Reconciler, so socket pushes, ticks and viewer actions never overlap.
"""
import asyncio
import json
import logging
from typing import Optional

import websockets
from websockets.exceptions import WebSocketException

from .config import BACKEND_URL, RECONNECT_DELAY, SYNC_INTERVAL_MS
from .engine import SYNC_EVENT
from .errors import report_error
from .player import ClockPlayer
from .reconciler import Reconciler

logger = logging.getLogger(__name__)


def ws_url_for(backend_url: str) -> str:
    base = backend_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    return f"{base}/ws"


class SyncClient:
    def __init__(self, backend_url: str = BACKEND_URL, player=None,
                 interval_ms: int = SYNC_INTERVAL_MS,
                 reconnect_delay: float = RECONNECT_DELAY):
        self.backend_url = backend_url.rstrip("/")
        self.player = player if player is not None else ClockPlayer()
        self.interval_ms = interval_ms
        self.reconnect_delay = reconnect_delay
        self.reconciler = Reconciler(self.player, self._enqueue, interval_ms=interval_ms)

        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=50)
        self._ws = None
        self._running = False
        self._ended_reported = False
        self.last_error: Optional[str] = None

    @property
    def ws_url(self) -> str:
        return ws_url_for(self.backend_url)

    @property
    def video_src(self) -> str:
        return f"{self.backend_url}/video"

    @property
    def is_connected(self) -> bool:
        return self.reconciler.connected

    # ── Outbound ─────────────────────────────────────────────────────────────

    def _enqueue(self, message: dict):
        if not self.reconciler.connected:
            logger.debug("Offline, dropping %s", message.get("type"))
            return
        try:
            self._outbox.put_nowait(message)
        except asyncio.QueueFull:
            self._outbox.get_nowait()
            self._outbox.put_nowait(message)

    def _drain_outbox(self):
        while not self._outbox.empty():
            self._outbox.get_nowait()

    # ── Main loop ────────────────────────────────────────────────────────────

    async def run(self):
        """Connect, stay connected, reconnect on loss. Returns after stop()."""
        self._running = True
        tick_task = asyncio.create_task(self._tick_loop())
        try:
            while self._running:
                try:
                    async with websockets.connect(self.ws_url) as ws:
                        self._ws = ws
                        logger.info("Connected to %s", self.ws_url)
                        await self._session(ws)
                except (OSError, WebSocketException) as e:
                    logger.warning("Connection to %s lost: %s", self.ws_url, e)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self.last_error = report_error("client_connection", self.ws_url, raw=str(e))
                finally:
                    self._ws = None
                    self.reconciler.on_disconnect()

                if self._running:
                    await asyncio.sleep(self.reconnect_delay)
        finally:
            tick_task.cancel()
            try:
                await tick_task
            except asyncio.CancelledError:
                pass

    async def stop(self):
        self._running = False
        if self._ws is not None:
            await self._ws.close()

    async def _session(self, ws):
        self._drain_outbox()
        self.last_error = None
        self.reconciler.on_connect()

        async def _reader():
            async for raw in ws:
                self._handle_frame(raw)

        async def _writer():
            while True:
                message = await self._outbox.get()
                await ws.send(json.dumps(message))

        reader_task = asyncio.create_task(_reader())
        writer_task = asyncio.create_task(_writer())
        try:
            done, pending = await asyncio.wait(
                [reader_task, writer_task],
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (reader_task, writer_task):
                task.cancel()
        for task in done:
            # Surface connection errors to run()
            task.result()

    def _handle_frame(self, raw):
        try:
            message = json.loads(raw)
        except ValueError:
            logger.debug("Ignoring non-JSON frame")
            return
        if not isinstance(message, dict):
            return

        msg_type = message.get("type")
        if msg_type == SYNC_EVENT:
            correction = self.reconciler.on_sync_state(message.get("data"))
            if correction and correction.changed:
                logger.info("Corrected: %s", correction)
        elif msg_type == "error":
            data = message.get("data")
            detail = data.get("message") if isinstance(data, dict) else None
            self.last_error = detail or "Server rejected a command."
            logger.warning("Server error: %s", self.last_error)
        else:
            logger.debug("Unhandled frame type: %s", msg_type)

    # ── Pull path ────────────────────────────────────────────────────────────

    async def _tick_loop(self):
        while True:
            await asyncio.sleep(self.interval_ms / 1000)
            self._check_ended()
            correction = self.reconciler.on_tick()
            if correction and correction.changed:
                logger.info("Corrected on tick: %s", correction)

    def _check_ended(self):
        ended = bool(getattr(self.player, "ended", False))
        if ended and not self._ended_reported and not self.player.paused:
            self.reconciler.on_ended()
        self._ended_reported = ended
