"""Watch together — entry point.

    python watch.py serve                      share VIDEO_PATH with everyone
    python watch.py join [url] [duration_s]    headless viewer that stays in sync
"""
import asyncio
import logging
import os
import sys

import uvicorn
from rich import print as rprint

from syncwatch.client import SyncClient
from syncwatch.clock import now_ms
from syncwatch.config import BACKEND_URL, DEV_MODE, VIDEO_PATH, WEB_HOST, WEB_PORT
from syncwatch.player import ClockPlayer
from syncwatch.preflight import run_client_preflight, run_server_preflight
from syncwatch.reconciler import target_time
from syncwatch.ui import console, print_client_startup, print_header, print_server_startup, status_line
from syncwatch.web.media import resolve_media_path
from syncwatch.web.server import create_app


def serve():
    video_path = resolve_media_path(VIDEO_PATH)
    if not asyncio.run(run_server_preflight(video_path)):
        sys.exit(1)

    print_server_startup(video_path, os.stat(video_path).st_size, WEB_HOST, WEB_PORT)
    uvicorn.run(create_app(video_path), host=WEB_HOST, port=WEB_PORT,
                log_level="debug" if DEV_MODE else "info")


async def join(backend_url: str, duration: float | None):
    if not await run_client_preflight(backend_url):
        sys.exit(1)

    client = SyncClient(backend_url, player=ClockPlayer(duration=duration))
    print_client_startup(client.video_src, client.ws_url)

    client_task = asyncio.create_task(client.run())
    try:
        while not client_task.done():
            record = client.reconciler.record
            drift = None
            if record is not None:
                drift = client.player.current_time - target_time(record, now_ms())
            console.print(status_line(client.player, client.is_connected, drift, client.last_error), end="\r")
            await asyncio.sleep(1)
    finally:
        await client.stop()
        client_task.cancel()
        try:
            await client_task
        except asyncio.CancelledError:
            pass


def main(argv: list[str]):
    logging.basicConfig(
        level=logging.DEBUG if DEV_MODE else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    print_header()

    command = argv[0] if argv else "serve"
    if command == "serve":
        serve()
    elif command == "join":
        backend_url = argv[1].rstrip("/") if len(argv) > 1 else BACKEND_URL
        duration = float(argv[2]) if len(argv) > 2 else None
        asyncio.run(join(backend_url, duration))
    else:
        rprint(__doc__)
        sys.exit(2)


if __name__ == "__main__":
    try:
        main(sys.argv[1:])
    except KeyboardInterrupt:
        rprint("\n\n  [bold]Left the watch party.[/bold] Goodbye.\n")
        sys.exit(0)
