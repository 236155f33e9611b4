"""UI display helpers — header, startup panel, status line."""
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from .config import APP_VERSION

console = Console()


def fmt_time(seconds: float) -> str:
    total = int(max(0.0, seconds))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"


def print_header():
    console.print(
        f"\n  [bold cyan]▶  syncwatch[/bold cyan]"
        f"  [dim]v{APP_VERSION}[/dim]"
    )


def print_server_startup(video_path, size: int, host: str, port: int):
    lines = [
        f"  Video   [bold]{video_path}[/bold]  [dim]({size / 1_048_576:.1f} MB)[/dim]",
        f"  Stream  http://{host}:{port}/video",
        f"  Sync    ws://{host}:{port}/ws",
    ]
    console.print(Panel("\n".join(lines), title="Serving", border_style="cyan", expand=False))


def print_client_startup(video_src: str, ws_url: str):
    lines = [
        f"  Video   {video_src}",
        f"  Sync    {ws_url}",
    ]
    console.print(Panel("\n".join(lines), title="Joining", border_style="cyan", expand=False))


def status_line(player, connected: bool, drift: Optional[float] = None,
                error: Optional[str] = None) -> str:
    """One-liner describing the local playhead and link state."""
    elapsed = player.current_time
    dur = player.duration
    if dur and dur > 0:
        bar_len = 20
        filled = min(bar_len, int(elapsed / dur * bar_len))
        bar_filled = "[green]" + "━" * filled + "[/green]"
        bar_empty = "[dim]" + "·" * (bar_len - filled) + "[/dim]"
        progress = f"  {fmt_time(elapsed)}/{fmt_time(dur)} {bar_filled}{bar_empty}"
    else:
        progress = f"  {fmt_time(elapsed)}"

    icon = "[yellow]⏸[/yellow]" if player.paused else "[green]▶[/green]"
    link = "[green]● synced[/green]" if connected else "[red]○ offline[/red]"
    drift_tag = f"  ·  [dim]drift {drift:+.2f}s[/dim]" if drift is not None else ""
    error_tag = f"  ·  [red]{escape(error)}[/red]" if error else ""
    return f"  {icon}{progress}  {link}{drift_tag}{error_tag}"
