import time

import pytest
from starlette.testclient import TestClient

from syncwatch.web.server import create_app


@pytest.fixture
def app(tmp_path):
    video = tmp_path / "movie.mp4"
    video.write_bytes(b"\x00" * 64)
    return create_app(video_path=video, sync_interval_ms=60_000)


def _state(message):
    assert message["type"] == "syncState"
    return message["data"]


def test_connect_receives_initial_snapshot(app):
    client = TestClient(app)
    with client.websocket_connect("/ws") as ws:
        data = _state(ws.receive_json())
    assert data["isPlaying"] is False
    assert data["currentTime"] == 0.0
    assert abs(data["serverTimeMs"] - time.time() * 1000) < 5_000


def test_play_is_echoed_to_sender(app):
    client = TestClient(app)
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "play", "time": 5})
        data = _state(ws.receive_json())
    assert data["isPlaying"] is True
    assert 5.0 <= data["currentTime"] < 6.0


def test_seek_is_broadcast_to_every_peer(app):
    client = TestClient(app)
    with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
        alice.receive_json()
        bob.receive_json()

        alice.send_json({"type": "seek", "time": 42})

        assert _state(alice.receive_json())["currentTime"] == 42.0
        assert _state(bob.receive_json())["currentTime"] == 42.0


def test_sync_reply_is_unicast(app):
    client = TestClient(app)
    with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
        alice.receive_json()
        bob.receive_json()

        bob.send_json({"type": "sync"})
        assert _state(bob.receive_json())["currentTime"] == 0.0

        # alice's next frame is the pause broadcast, not bob's reply
        bob.send_json({"type": "pause", "time": 7})
        assert _state(alice.receive_json())["currentTime"] == 7.0


@pytest.mark.parametrize("raw", [
    '{"type": "seek", "time": NaN}',
    '{"type": "seek", "time": Infinity}',
    '{"type": "seek"}',
])
def test_invalid_seek_is_dropped_silently(app, raw):
    client = TestClient(app)
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_text(raw)
        ws.send_json({"type": "sync"})
        # No broadcast came in between: the next frame is the sync reply
        data = _state(ws.receive_json())
    assert data["currentTime"] == 0.0
    assert data["isPlaying"] is False


def test_malformed_play_time_falls_back_to_checkpoint(app):
    client = TestClient(app)
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "seek", "time": 30})
        ws.receive_json()
        ws.send_json({"type": "play", "time": "soon"})
        data = _state(ws.receive_json())
    assert data["isPlaying"] is True
    assert data["currentTime"] >= 30.0


def test_non_object_frame_gets_error(app):
    client = TestClient(app)
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_text("not json")
        message = ws.receive_json()
    assert message["type"] == "error"


def test_unknown_type_is_ignored(app):
    client = TestClient(app)
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "rewind", "time": 3})
        ws.send_json({"type": "sync"})
        assert _state(ws.receive_json())["currentTime"] == 0.0


def test_broadcaster_runs_with_lifespan(tmp_path):
    app = create_app(video_path=tmp_path / "movie.mp4", sync_interval_ms=50)
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            tick = _state(ws.receive_json())
    assert tick["isPlaying"] is False


def test_health_reports_media(app, tmp_path):
    client = TestClient(app)
    body = client.get("/api/health").json()
    assert body["status"] == "ok"
    assert body["checks"]["media"] == {"ok": True, "size": 64}
    assert body["clients"] == 0


def test_health_degraded_without_media(tmp_path):
    client = TestClient(create_app(video_path=tmp_path / "missing.mp4"))
    body = client.get("/api/health").json()
    assert body["status"] == "degraded"
    assert body["checks"]["media"]["ok"] is False


def test_state_endpoint_returns_snapshot(app):
    client = TestClient(app)
    body = client.get("/api/state").json()
    assert set(body) == {"isPlaying", "currentTime", "serverTimeMs"}


HUGE = "1" + "0" * 400


def test_huge_int_seek_is_dropped_and_connection_survives(app):
    client = TestClient(app)
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_text('{"type": "seek", "time": %s}' % HUGE)
        ws.send_json({"type": "sync"})
        data = _state(ws.receive_json())
    assert data["currentTime"] == 0.0


def test_huge_int_play_falls_back_to_checkpoint(app):
    client = TestClient(app)
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "seek", "time": 12})
        ws.receive_json()
        ws.send_text('{"type": "play", "time": %s}' % HUGE)
        data = _state(ws.receive_json())
        assert data["isPlaying"] is True
        assert 12.0 <= data["currentTime"] < 13.0

        ws.send_json({"type": "sync"})
        assert _state(ws.receive_json())["isPlaying"] is True


def test_failing_command_reports_error_and_keeps_connection(app, tmp_path, monkeypatch):
    from syncwatch import errors
    from syncwatch.web import server

    monkeypatch.setattr(errors, "OUTPUT_DIR", tmp_path)
    monkeypatch.setattr(errors, "ERRORS_LOG", tmp_path / "errors.log")
    monkeypatch.setattr(errors, "DEV_MODE", False)

    async def broken_seek(time):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(server._engine, "seek", broken_seek)

    client = TestClient(app)
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "seek", "time": 3})
        message = ws.receive_json()
        assert message["type"] == "error"
        assert message["data"]["message"] == errors._PEER_MESSAGES["ws_message"]

        ws.send_json({"type": "sync"})
        assert _state(ws.receive_json())["currentTime"] == 0.0

    logged = (tmp_path / "errors.log").read_text()
    assert "disk on fire" in logged
