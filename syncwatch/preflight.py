"""Startup Preflight Check"""
import os
import re
from pathlib import Path

import httpx

from .config import APP_VERSION
from .ui import console


async def run_server_preflight(video_path: Path) -> bool:
    """Check the shared video before serving it."""
    return await _run_checks("server", [
        ("Video file", lambda: _check_video(video_path)),
    ])


async def run_client_preflight(backend_url: str) -> bool:
    """Check the watch server is up and streams byte ranges."""
    return await _run_checks("viewer", [
        ("Watch server", lambda: _check_health(backend_url)),
        ("Range requests", lambda: _check_ranges(backend_url)),
    ])


def _total_from_content_range(value: str) -> int | None:
    match = re.match(r"bytes (?:\d+-\d+|\*)/(\d+)", value)
    return int(match.group(1)) if match else None


async def _run_checks(role: str, checks) -> bool:
    """Run all checks. Print results. Return True only if ALL pass."""
    console.print(f"\n  [bold]▶  syncwatch v{APP_VERSION}[/bold] — {role} preflight\n")

    results = []
    for i, (label, fn) in enumerate(checks, 1):
        ok, msg, fix = await fn()
        results.append((ok, label, msg, fix))
        icon = "[green]✓[/green]" if ok else "[red]✗[/red]"
        dots = "." * max(30 - len(label), 3)
        status = f"[green]{msg}[/green]" if ok else f"[red]{msg}[/red]"
        console.print(f"  [{i}/{len(checks)}] {label} {dots} {icon} {status}")

    failures = [(label, fix) for ok, label, _, fix in results if not ok and fix]
    if failures:
        console.print("")
        for label, fix in failures:
            console.print(f"  [yellow]Fix for {label}:[/yellow]")
            for line in fix.strip().splitlines():
                console.print(f"    {line}")
            console.print("")
        return False

    console.print("")
    return True


async def _check_video(video_path: Path) -> tuple[bool, str, str]:
    try:
        size = os.stat(video_path).st_size
    except OSError:
        return False, f"not found: {video_path}", (
            "Point VIDEO_PATH at an MP4 file, e.g. in .env:\n"
            "VIDEO_PATH=/path/to/movie.mp4"
        )
    if size == 0:
        return False, "file is empty", "Re-copy the video file; it has zero bytes."
    return True, f"{size / 1_048_576:.1f} MB", ""


async def _check_health(backend_url: str) -> tuple[bool, str, str]:
    fix = f"Start the server first:\n  python watch.py serve\nor set BACKEND_URL (now {backend_url})"
    try:
        async with httpx.AsyncClient(timeout=5) as client:
            r = await client.get(f"{backend_url}/api/health")
    except httpx.HTTPError as e:
        return False, f"unreachable ({e.__class__.__name__})", fix
    if r.status_code != 200:
        return False, f"HTTP {r.status_code}", fix
    body = r.json()
    return True, f"v{body.get('version', '?')} · {body.get('clients', 0)} watching", ""


async def _check_ranges(backend_url: str) -> tuple[bool, str, str]:
    fix = "The server must answer Range requests with 206; check VIDEO_PATH on the server."
    try:
        async with httpx.AsyncClient(timeout=5) as client:
            r = await client.get(f"{backend_url}/video", headers={"Range": "bytes=0-0"})
    except httpx.HTTPError as e:
        return False, f"unreachable ({e.__class__.__name__})", fix
    if r.status_code != 206:
        return False, f"HTTP {r.status_code}", fix
    total = _total_from_content_range(r.headers.get("content-range", ""))
    return True, f"{total} bytes" if total is not None else "ok", ""
