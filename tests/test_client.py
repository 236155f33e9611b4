import json

from syncwatch.client import SyncClient, ws_url_for
from syncwatch.player import ClockPlayer


def test_ws_url_for():
    assert ws_url_for("http://localhost:8888") == "ws://localhost:8888/ws"
    assert ws_url_for("https://watch.example.com/") == "wss://watch.example.com/ws"


def test_video_src():
    client = SyncClient("http://host:1234/")
    assert client.video_src == "http://host:1234/video"
    assert client.ws_url == "ws://host:1234/ws"


def test_viewer_actions_are_dropped_while_offline():
    client = SyncClient("http://host:1234", player=ClockPlayer())
    client.reconciler.seek_to(5)
    assert client._outbox.empty()


def test_viewer_actions_are_queued_while_online():
    client = SyncClient("http://host:1234", player=ClockPlayer())
    client.reconciler.on_connect()
    client.reconciler.seek_to(5)

    queued = [client._outbox.get_nowait() for _ in range(client._outbox.qsize())]
    assert queued == [{"type": "sync"}, {"type": "seek", "time": 5}]


def test_reconnect_drops_stale_outbox():
    client = SyncClient("http://host:1234", player=ClockPlayer())
    client.reconciler.on_connect()
    client.reconciler.seek_to(5)

    client._drain_outbox()
    assert client._outbox.empty()


def test_sync_frame_drives_reconciler():
    player = ClockPlayer()
    client = SyncClient("http://host:1234", player=player)
    frame = {"type": "syncState", "data": {"isPlaying": False, "currentTime": 61.5, "serverTimeMs": 0}}

    client._handle_frame(json.dumps(frame))

    assert client.reconciler.record.current_time == 61.5
    assert player.current_time == 61.5
    assert player.paused


def test_garbage_frames_are_ignored():
    client = SyncClient("http://host:1234", player=ClockPlayer())
    client._handle_frame("{nope")
    client._handle_frame("[1, 2]")
    client._handle_frame(json.dumps({"type": "error", "data": {"message": "bad"}}))
    assert client.reconciler.record is None


def test_ended_is_reported_once():
    clock_now = [0.0]
    player = ClockPlayer(duration=1.0, clock=lambda: clock_now[0])
    client = SyncClient("http://host:1234", player=player)
    client.reconciler.on_connect()
    client._drain_outbox()

    player.play()
    clock_now[0] = 5.0
    client._check_ended()
    client._check_ended()

    assert player.paused
    queued = [client._outbox.get_nowait() for _ in range(client._outbox.qsize())]
    assert queued == [{"type": "pause", "time": 1.0}]


def test_server_error_frame_is_surfaced():
    client = SyncClient("http://host:1234", player=ClockPlayer())
    client._handle_frame(json.dumps({"type": "error", "data": {"message": "Expected a JSON object."}}))
    assert client.last_error == "Expected a JSON object."

    client._handle_frame(json.dumps({"type": "error", "data": "odd"}))
    assert client.last_error == "Server rejected a command."


def test_status_line_shows_last_error():
    from syncwatch.ui import status_line

    line = status_line(ClockPlayer(), connected=False, error="Lost the watch server [1]")
    assert "offline" in line
    assert "Lost the watch server" in line


def test_reconnects_and_resyncs_after_drop():
    import asyncio

    import websockets

    snapshot = {"type": "syncState", "data": {"isPlaying": False, "currentTime": 12.0, "serverTimeMs": 0}}

    async def scenario():
        first_frames = []
        resynced = asyncio.Event()

        async def handler(ws):
            first_frames.append(json.loads(await ws.recv()))
            if len(first_frames) == 1:
                await ws.send(json.dumps(snapshot))
                await ws.close()
                return
            resynced.set()
            await ws.wait_closed()

        async with websockets.serve(handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            client = SyncClient(f"http://127.0.0.1:{port}", player=ClockPlayer(),
                                interval_ms=60_000, reconnect_delay=0.05)
            run_task = asyncio.create_task(client.run())

            await asyncio.wait_for(resynced.wait(), timeout=5)
            survived = client.reconciler.record
            connected = client.is_connected

            await client.stop()
            await asyncio.wait_for(run_task, timeout=5)
            return first_frames, survived, connected, client

    first_frames, record, connected, client = asyncio.run(scenario())

    assert first_frames == [{"type": "sync"}, {"type": "sync"}]
    assert record is not None
    assert record.current_time == 12.0
    assert client.player.current_time == 12.0
    assert connected
    assert not client.is_connected
