"""Client-side drift reconciliation against the server's snapshots.

Two triggers feed one `reconcile()`:
  push — every inbound syncState overwrites the record and reconciles now;
  pull — a local tick reconciles from the stored record, or asks for a
         fresh snapshot when none is held or it has gone stale.

Corrections move the local player only. Only viewer actions are sent.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .clock import is_finite_number, now_ms
from .config import FORCE_SYNC_THRESHOLD, SYNC_INTERVAL_MS

logger = logging.getLogger(__name__)


@dataclass
class SyncRecord:
    is_playing: bool
    current_time: float
    server_time_ms: Optional[float]
    received_at_ms: int


@dataclass
class Correction:
    seek_to: Optional[float] = None
    played: bool = False
    paused: bool = False

    @property
    def changed(self) -> bool:
        return self.seek_to is not None or self.played or self.paused


def parse_sync_state(data, received_at_ms: int) -> Optional[SyncRecord]:
    """Validate a syncState payload. Returns None if it is unusable."""
    if not isinstance(data, dict) or "isPlaying" not in data or "currentTime" not in data:
        return None
    playing = data["isPlaying"]
    position = data["currentTime"]
    if not isinstance(playing, bool) or not is_finite_number(position):
        return None

    server_time = data.get("serverTimeMs")
    return SyncRecord(
        is_playing=playing,
        current_time=float(position),
        server_time_ms=server_time if is_finite_number(server_time) else None,
        received_at_ms=received_at_ms,
    )


def target_time(record: SyncRecord, now: int) -> float:
    """Authoritative position extrapolated to `now`."""
    if record.is_playing and record.server_time_ms is not None:
        return record.current_time + max(0.0, (now - record.server_time_ms) / 1000)
    return record.current_time


class Reconciler:
    def __init__(self, player, send: Callable[[dict], None],
                 threshold: float = FORCE_SYNC_THRESHOLD,
                 interval_ms: int = SYNC_INTERVAL_MS,
                 clock: Callable[[], int] = now_ms):
        """player: media element (current_time, paused, seeking, duration,
        play() -> bool, pause(), seek(t)). send: queues one outbound frame."""
        self.player = player
        self._send = send
        self.threshold = threshold
        self.interval_ms = interval_ms
        self._clock = clock

        self.record: Optional[SyncRecord] = None
        self.connected = False
        self.scrubbing = False

    # ── Connection lifecycle ─────────────────────────────────────────────────

    def on_connect(self):
        self.connected = True
        self.request_sync()

    def on_disconnect(self):
        # Keep the record: extrapolation continues until a fresh snapshot lands
        self.connected = False

    def request_sync(self):
        self._send({"type": "sync"})

    # ── Triggers ─────────────────────────────────────────────────────────────

    def on_sync_state(self, data) -> Optional[Correction]:
        """Push path."""
        record = parse_sync_state(data, self._clock())
        if record is None:
            logger.debug("Ignoring malformed syncState: %r", data)
            return None
        self.record = record
        if self.scrubbing:
            return None
        return self.reconcile(record, self._clock())

    def on_tick(self) -> Optional[Correction]:
        """Pull path."""
        if self.scrubbing:
            return None

        now = self._clock()
        record = self.record
        if self.connected:
            if record is None or now - record.received_at_ms > self.interval_ms * 2:
                self.request_sync()
                return None
        elif record is None:
            return None
        return self.reconcile(record, now)

    def reconcile(self, record: SyncRecord, now: int) -> Correction:
        correction = Correction()
        target = target_time(record, now)

        if not self.player.seeking:
            drift = target - self.player.current_time
            if abs(drift) > self.threshold:
                logger.debug("Drift %.3fs, correcting to %.3f", drift, target)
                correction.seek_to = self.seek_to(target, broadcast=False)

        if record.is_playing and self.player.paused:
            correction.played = self.play(broadcast=False)
        elif not record.is_playing and not self.player.paused:
            self.pause(broadcast=False)
            correction.paused = True
        return correction

    # ── Viewer actions ───────────────────────────────────────────────────────

    def play(self, broadcast: bool = True) -> bool:
        if not self.player.play():
            # Autoplay refused or media ended — nothing to announce
            return False
        if broadcast:
            self._send({"type": "play", "time": self.player.current_time})
        return True

    def pause(self, broadcast: bool = True):
        self.player.pause()
        if broadcast:
            self._send({"type": "pause", "time": self.player.current_time})

    def toggle_play(self, broadcast: bool = True):
        if self.player.paused:
            self.play(broadcast)
        else:
            self.pause(broadcast)

    def seek_to(self, time: float, broadcast: bool = True) -> Optional[float]:
        """Move the local playhead. Returns the clamped position applied."""
        if not is_finite_number(time):
            return None
        duration = self.player.duration
        position = max(0.0, min(time, duration) if duration else time)
        self.player.seek(position)
        if broadcast:
            self._send({"type": "seek", "time": position})
        return position

    def seek_by(self, delta: float, broadcast: bool = True) -> Optional[float]:
        return self.seek_to(self.player.current_time + delta, broadcast)

    def begin_scrub(self):
        self.scrubbing = True

    def end_scrub(self, time: float) -> Optional[float]:
        """Release of the seek control: the one point a scrub is announced."""
        self.scrubbing = False
        return self.seek_to(time)

    def on_ended(self):
        self.pause(broadcast=True)
