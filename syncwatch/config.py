"""Config & Constants"""
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root (one level up from syncwatch/)
_ROOT = Path(__file__).parent.parent
load_dotenv(_ROOT / ".env")

# ─── Paths ────────────────────────────────────────────────────────────────────
ROOT_DIR = _ROOT
OUTPUT_DIR = ROOT_DIR / os.getenv("OUTPUT_DIR", "output")
ERRORS_LOG = OUTPUT_DIR / "errors.log"

# Relative paths resolve against the working directory, not the project root
VIDEO_PATH = Path(os.getenv("VIDEO_PATH", "video.mp4"))
STREAM_CHUNK_SIZE = int(os.getenv("STREAM_CHUNK_SIZE", "65536"))

# ─── Sync protocol ────────────────────────────────────────────────────────────
SYNC_INTERVAL_MS = int(os.getenv("SYNC_INTERVAL_MS", "2000"))
FORCE_SYNC_THRESHOLD = float(os.getenv("FORCE_SYNC_THRESHOLD", "0.1"))  # seconds
RECONNECT_DELAY = float(os.getenv("RECONNECT_DELAY", "2.0"))            # seconds

APP_VERSION = "0.1.0"

# ─── Web server ──────────────────────────────────────────────────────────────
WEB_HOST = os.getenv("WEB_HOST", "0.0.0.0")
WEB_PORT = int(os.getenv("WEB_PORT", "8888"))

# ─── Viewer ──────────────────────────────────────────────────────────────────
BACKEND_URL = os.getenv("BACKEND_URL", f"http://localhost:{WEB_PORT}").rstrip("/")

# ─── Dev mode ─────────────────────────────────────────────────────────────────
DEV_MODE = os.getenv("DEV_MODE", "1").strip() in ("1", "true", "yes")
