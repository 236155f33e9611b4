"""Error reporting — full context to errors.log, one short line for the peer."""
import json
import logging
from datetime import datetime
from typing import Optional

from .config import ERRORS_LOG, OUTPUT_DIR, DEV_MODE

logger = logging.getLogger(__name__)

_PEER_MESSAGES = {
    "ws_message": "Couldn't apply that command; playback state is unchanged.",
    "client_connection": "Lost the watch server, reconnecting...",
}


def report_error(
    stage: str,
    source: str,
    frame: Optional[str] = None,
    raw: str = "",
) -> str:
    """Record an error and return the text to show whoever caused it.

    stage: one of the keys in _PEER_MESSAGES.
    source: peer id (server side) or server URL (viewer side).
    frame: the raw message being handled, if any.
    """
    entry = {
        "timestamp": datetime.now().isoformat(),
        "stage": stage,
        "source": source,
        "frame": frame[:500] if frame else None,
        "error": raw,
    }

    _append_to_log(entry)
    logger.error("%s failed for %s: %s", stage, source, raw)

    if DEV_MODE:
        return f"{stage}: {raw}"
    return _PEER_MESSAGES.get(stage, f"Something went wrong ({stage}).")


def _append_to_log(entry: dict):
    try:
        OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
        with open(ERRORS_LOG, "a") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError:
        logger.debug("Could not write %s", ERRORS_LOG)
