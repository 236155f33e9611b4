"""Starlette app — media route + sync WebSocket + health."""
import asyncio
import contextlib
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Optional

from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect

from ..config import APP_VERSION, STREAM_CHUNK_SIZE, SYNC_INTERVAL_MS, VIDEO_PATH
from ..engine import SYNC_EVENT, SyncEngine
from ..errors import report_error
from .media import CORS_HEADERS, media_response, resolve_media_path
from .state import SessionHub

logger = logging.getLogger(__name__)

# Shared state
_hub = SessionHub()
_engine: Optional[SyncEngine] = None
_video_path: Path = resolve_media_path(VIDEO_PATH)
_chunk_size: int = STREAM_CHUNK_SIZE


# ── Health ───────────────────────────────────────────────────────────────────

async def health(request):
    checks = {}

    try:
        size = os.stat(_video_path).st_size
        checks["media"] = {"ok": size > 0, "size": size}
    except OSError as e:
        checks["media"] = {"ok": False, "error": str(e)}

    all_ok = all(c["ok"] for c in checks.values())
    return JSONResponse({
        "status": "ok" if all_ok else "degraded",
        "version": APP_VERSION,
        "clients": _hub.client_count,
        "checks": checks,
    }, headers=CORS_HEADERS)


async def current_state(request):
    return JSONResponse(_engine.sync_state(), headers=CORS_HEADERS)


# ── Video serving ────────────────────────────────────────────────────────────

async def serve_video(request):
    """Serve the shared video with Range support (required for seeking)."""
    return media_response(_video_path, request.headers.get("range"), _chunk_size)


# ── WebSocket ────────────────────────────────────────────────────────────────

async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()
    client_id = str(uuid.uuid4())
    queue = _hub.subscribe(client_id)
    logger.info("WS connected: %s (%d peers)", client_id, _hub.client_count)

    # Initial snapshot so a fresh peer doesn't wait for the next tick
    await _hub.send(client_id, SYNC_EVENT, _engine.sync_state())

    # Two tasks: one reads from the peer, one writes from the queue
    async def _reader():
        try:
            while True:
                text = await websocket.receive_text()
                try:
                    await _handle_ws_text(client_id, text)
                except Exception as e:
                    # A bad command must not cost the peer its connection
                    message = report_error("ws_message", client_id, text, str(e))
                    await _hub.send(client_id, "error", {"message": message})
        except WebSocketDisconnect:
            pass
        except (KeyError, RuntimeError) as e:
            logger.warning("WS reader for %s stopped: %s", client_id, e)

    async def _writer():
        try:
            while True:
                event, data = await queue.get()
                await websocket.send_json({"type": event, "data": data})
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            logger.debug("WS writer closed for %s: %s", client_id, e)

    reader_task = asyncio.create_task(_reader())
    writer_task = asyncio.create_task(_writer())

    try:
        done, pending = await asyncio.wait(
            [reader_task, writer_task],
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
    finally:
        _hub.unsubscribe(client_id)
        logger.info("WS disconnected: %s", client_id)


async def _handle_ws_text(client_id: str, text: str):
    try:
        data = json.loads(text)
    except ValueError:
        data = None
    if not isinstance(data, dict):
        await _hub.send(client_id, "error", {"message": "Expected a JSON object."})
        return
    await _handle_ws_message(client_id, data)


async def _handle_ws_message(client_id: str, data: dict):
    """Route incoming WebSocket messages to engine methods."""
    msg_type = data.get("type", "")

    if msg_type == "play":
        await _engine.play(data.get("time"))

    elif msg_type == "pause":
        await _engine.pause(data.get("time"))

    elif msg_type == "seek":
        await _engine.seek(data.get("time"))

    elif msg_type == "sync":
        await _hub.send(client_id, SYNC_EVENT, _engine.sync_state())

    else:
        logger.warning("Unknown WS message type: %s", msg_type)


# ── App factory ──────────────────────────────────────────────────────────────

def create_app(video_path=None, sync_interval_ms: int = SYNC_INTERVAL_MS,
               chunk_size: int = STREAM_CHUNK_SIZE) -> Starlette:
    global _hub, _engine, _video_path, _chunk_size

    _hub = SessionHub()
    _engine = SyncEngine(_hub, interval_ms=sync_interval_ms)
    _video_path = resolve_media_path(video_path if video_path is not None else VIDEO_PATH)
    _chunk_size = chunk_size

    routes = [
        Route("/api/health", health),
        Route("/api/state", current_state),
        Route("/video", serve_video),
        WebSocketRoute("/ws", websocket_endpoint),
    ]

    return Starlette(routes=routes, lifespan=_lifespan)


@contextlib.asynccontextmanager
async def _lifespan(app):
    """Run the sync broadcaster for the lifetime of the server."""
    engine = _engine
    await engine.run()
    logger.info("Serving %s", _video_path)
    try:
        yield
    finally:
        await engine.stop()
        logger.info("Sync broadcaster stopped")
