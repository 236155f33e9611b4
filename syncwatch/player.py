"""Headless media element — a wall-clock playhead with no decoder behind it."""
import time
from typing import Callable, Optional


class ClockPlayer:
    def __init__(self, duration: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._duration = duration
        self._paused: bool = True
        self._play_start: float = 0.0
        self._seek_offset: float = 0.0
        self.seeking: bool = False

    # ── Media element surface ─────────────────────────────────────────────────

    @property
    def current_time(self) -> float:
        pos = self._seek_offset
        if not self._paused:
            pos += self._clock() - self._play_start
        if self._duration:
            pos = min(pos, self._duration)
        return max(0.0, pos)

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def duration(self) -> float:
        return self._duration or 0.0

    @property
    def ended(self) -> bool:
        return bool(self._duration) and self.current_time >= self._duration

    def play(self) -> bool:
        """Start advancing. Returns False if playback was refused."""
        if self.ended:
            return False
        if self._paused:
            self._play_start = self._clock()
            self._paused = False
        return True

    def pause(self):
        if not self._paused:
            self._seek_offset = self.current_time
            self._paused = True

    def seek(self, position: float):
        """Jump to an absolute position. Keeps the play/pause state."""
        self._seek_offset = max(0.0, position)
        self._play_start = self._clock()
