"""Clock model — checkpoint + wall time → effective playback position.

Pure functions only. The server never ticks a counter: the position is
recomputed on demand from the last checkpoint.
"""
import math
import time
from dataclasses import dataclass


def now_ms() -> int:
    """Wall-clock time in integer milliseconds."""
    return int(time.time() * 1000)


def is_finite_number(value) -> bool:
    """True for real ints/floats that are finite. Booleans don't count."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # JSON ints too large for a float read as infinite
        return False


@dataclass
class PlaybackState:
    is_playing: bool = False
    current_time: float = 0.0
    updated_at_ms: int = 0


def effective_time(state: PlaybackState, now: int) -> float:
    base = state.current_time if is_finite_number(state.current_time) else 0.0
    if not state.is_playing:
        return max(0.0, base)

    # Clock skew must never rewind playback
    elapsed = max(0.0, (now - state.updated_at_ms) / 1000)
    return max(0.0, base + elapsed)


def commit(state: PlaybackState, now: int):
    """Fold elapsed playback into the checkpoint."""
    state.current_time = effective_time(state, now)
    state.updated_at_ms = now


def snapshot(state: PlaybackState, now: int) -> dict:
    """Wire-ready syncState payload for the instant `now`."""
    return {
        "isPlaying": state.is_playing,
        "currentTime": effective_time(state, now),
        "serverTimeMs": int(now),
    }
