"""Byte-range delivery of the shared video file."""
import logging
import os
import re
from pathlib import Path
from typing import Iterator, Optional

from starlette.responses import PlainTextResponse, Response, StreamingResponse

from ..config import STREAM_CHUNK_SIZE

logger = logging.getLogger(__name__)

MEDIA_TYPE = "video/mp4"
CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def resolve_media_path(path) -> Path:
    """Absolute path for the media file; relative paths hang off the cwd."""
    path = Path(path)
    if path.is_absolute():
        return path
    return Path.cwd() / path


def _parse_int(text: str) -> Optional[int]:
    """Leading-integer parse: "12abc" → 12, "" or "abc" → None."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else None


def parse_range(header: str, size: int) -> Optional[tuple[int, int]]:
    """Map a Range header to an inclusive (start, end) pair.

    Returns None when the header is malformed or unsatisfiable.
    Accepts `bytes=start-end`, `bytes=start-` and `bytes=-suffix`.
    """
    if not header.startswith("bytes="):
        return None

    parts = header[len("bytes="):].split("-")
    start_str = parts[0]
    end_str = parts[1] if len(parts) > 1 else ""

    start = _parse_int(start_str)
    end = _parse_int(end_str)

    if start is None:
        # Suffix range: "bytes=-500" → last 500 bytes
        if end is None:
            return None
        start = max(size - end, 0)
        end = size - 1
    elif end is None:
        end = size - 1

    if start < 0 or end >= size or start > end:
        return None
    return start, end


def iter_file(path: Path, start: int, length: int,
              chunk_size: int = STREAM_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield exactly `length` bytes of `path` beginning at `start`."""
    with open(path, "rb") as f:
        f.seek(start)
        remaining = length
        while remaining > 0:
            chunk = f.read(min(chunk_size, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk
    if remaining > 0:
        logger.warning("%s shrank mid-stream, response is %d bytes short", path, remaining)


def _unsatisfiable(size: int) -> Response:
    return Response(
        status_code=416,
        headers={**CORS_HEADERS, "Content-Range": f"bytes */{size}"},
    )


def media_response(path: Path, range_header: Optional[str],
                   chunk_size: int = STREAM_CHUNK_SIZE) -> Response:
    """Build the 200 / 206 / 404 / 416 response for one request."""
    try:
        size = os.stat(path).st_size
    except OSError:
        logger.warning("Video file not found: %s", path)
        return PlainTextResponse("Video file not found.", status_code=404, headers=CORS_HEADERS)

    if range_header is None:
        return StreamingResponse(
            iter_file(path, 0, size, chunk_size),
            status_code=200,
            media_type=MEDIA_TYPE,
            headers={
                **CORS_HEADERS,
                "Content-Length": str(size),
                "Accept-Ranges": "bytes",
            },
        )

    byte_range = parse_range(range_header, size)
    if byte_range is None:
        logger.debug("Unsatisfiable range %r (size %d)", range_header, size)
        return _unsatisfiable(size)

    start, end = byte_range
    length = end - start + 1
    return StreamingResponse(
        iter_file(path, start, length, chunk_size),
        status_code=206,
        media_type=MEDIA_TYPE,
        headers={
            **CORS_HEADERS,
            "Content-Range": f"bytes {start}-{end}/{size}",
            "Accept-Ranges": "bytes",
            "Content-Length": str(length),
        },
    )
