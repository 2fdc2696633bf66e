"""
Terminal dashboard for TokenGauge.

Shows one row per provider with session/weekly usage bars. Refreshes run on
a background thread so keys and the spinner stay responsive; the UI loop
polls for the result without blocking.

Keys: ``r`` refresh, ``q`` / ``Esc`` quit.
"""

import logging
import queue
import select
import sys
import termios
import threading
import time
import tty
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional, Union

from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from tokengauge.config import (
    DEFAULT_REFRESH_SECS,
    ConfigError,
    TokenGaugeConfig,
    load_or_create_config,
)
from tokengauge.providers import provider_label
from tokengauge.refresh import load_cached_result, refresh_snapshot_sync
from tokengauge.rows import PLACEHOLDER, ProviderRow, payload_to_rows
from tokengauge.types import FetchResult, ProviderFetchError

from .cli import parse_args, setup_logging

logger = logging.getLogger(__name__)


# =============================================================================
# DISPLAY CONFIGURATION
# =============================================================================

BAR_WIDTH = 10
POLL_INTERVAL = 0.12  # Seconds between key/refresh checks
CACHE_POLL_INTERVAL = 60  # Re-read the cache this often while idle
SPINNER_FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]
QUIT_KEYS = ("q", "\x1b")

# =============================================================================


@dataclass
class AppState:
    rows: List[ProviderRow] = field(default_factory=list)
    errors: List[ProviderFetchError] = field(default_factory=list)
    last_refresh: float = field(default_factory=time.monotonic)
    last_error: Optional[str] = None
    status_message: Optional[str] = None
    spinner_index: int = 0


RefreshMessage = Union[tuple, BaseException]


def percent_color(percent_left: int) -> str:
    if percent_left >= 70:
        return "green"
    if percent_left >= 40:
        return "yellow"
    if percent_left >= 20:
        return "bright_red"
    return "red"


def bar_text(percent_used: Optional[int]) -> Text:
    """Usage bar like ``███░░░░░░░  30%``, colored by what is left."""
    if percent_used is None:
        return Text(PLACEHOLDER, style="bright_black")
    percent = min(percent_used, 100)
    filled = -(-percent * BAR_WIDTH // 100)  # ceiling division
    color = percent_color(100 - percent)
    text = Text()
    text.append("█" * filled, style=color)
    text.append("░" * (BAR_WIDTH - filled), style="bright_black")
    text.append(f" {percent:>3}%", style=f"bold {color}")
    return text


def _sorted_result(result: FetchResult, config: TokenGaugeConfig) -> tuple:
    payloads = sorted(result.payloads, key=lambda p: p.provider)
    errors = sorted(result.errors, key=lambda e: e.provider)
    return payload_to_rows(payloads, config), errors


# =============================================================================
# BACKGROUND REFRESH
# =============================================================================


def spawn_refresh(config_path: Optional[Path], force: bool) -> "queue.Queue[RefreshMessage]":
    """Start a refresh thread; its single result lands in the returned queue."""
    results: "queue.Queue[RefreshMessage]" = queue.Queue(maxsize=1)

    def worker() -> None:
        try:
            config = load_or_create_config(config_path)
            outcome = refresh_snapshot_sync(config, force=force)
            results.put((config, outcome))
        except Exception as e:
            # Handed to the UI thread, which shows it in the error panel.
            logger.exception("Refresh failed")
            results.put(e)

    threading.Thread(target=worker, name="tokengauge-refresh", daemon=True).start()
    return results


def apply_refresh_result(state: AppState, message: RefreshMessage) -> None:
    if isinstance(message, BaseException):
        state.rows = []
        state.errors = []
        state.last_error = str(message) or type(message).__name__
    else:
        config, outcome = message
        state.rows, state.errors = _sorted_result(outcome.result, config)
        state.last_error = outcome.cache_error
    state.last_refresh = time.monotonic()
    state.status_message = None


# =============================================================================
# RENDERING
# =============================================================================


def render_usage_table(state: AppState) -> Table:
    table = Table(expand=True, header_style="bold cyan", box=None, pad_edge=False)
    table.add_column("Provider", style="bold", min_width=12)
    table.add_column("Session Used", min_width=16)
    table.add_column("Session Reset", style="grey62")
    table.add_column("Weekly Used", min_width=16)
    table.add_column("Weekly Reset", style="grey62")
    table.add_column("Credits", style="bright_green")
    table.add_column("Source", style="bright_blue")
    table.add_column("Updated", style="bright_black")

    for row in state.rows:
        table.add_row(
            row.provider,
            bar_text(row.session_used),
            row.session_reset,
            bar_text(row.weekly_used),
            row.weekly_reset,
            row.credits,
            row.source,
            row.updated,
        )
    return table


def render_errors(errors: List[ProviderFetchError]) -> Text:
    text = Text()
    for error in errors:
        text.append(f"{provider_label(error.provider)}: ", style="bold red")
        text.append(f"{error.message}\n", style="red")
    return text


def render(state: AppState, is_refreshing: bool) -> Layout:
    layout = Layout()
    layout.split_column(
        Layout(name="header", size=3),
        Layout(name="body"),
        Layout(name="footer", size=3),
    )

    if is_refreshing:
        spinner = SPINNER_FRAMES[state.spinner_index % len(SPINNER_FRAMES)]
        header_text = f"{spinner} Refreshing"
    else:
        header_text = "TokenGauge Usage"
    layout["header"].update(
        Panel(Text(header_text, style="bold bright_cyan"), title="TokenGauge")
    )

    if state.rows:
        body = [render_usage_table(state)]
    else:
        message = state.status_message or state.last_error or "No providers returned"
        body = [Text(message, style="red")]
    if state.errors:
        body.append(Text(""))
        body.append(render_errors(state.errors))
    layout["body"].update(Panel(Group(*body), title="Usage"))

    status_text = state.status_message or "Idle"
    status_style = "bold yellow" if state.status_message else "bold bright_black"
    footer = Text()
    footer.append("r", style="bold bright_cyan")
    footer.append(" refresh", style="grey62")
    footer.append(" | ", style="bright_black")
    footer.append("q/esc", style="bold bright_cyan")
    footer.append(" quit", style="grey62")
    footer.append(" | ", style="bright_black")
    footer.append(status_text, style=status_style)
    layout["footer"].update(Panel(footer))
    return layout


# =============================================================================
# MAIN LOOP
# =============================================================================


@contextmanager
def cbreak_stdin() -> Iterator[None]:
    """Read single keypresses without echo for the duration of the block."""
    fd = sys.stdin.fileno()
    saved = termios.tcgetattr(fd)
    try:
        tty.setcbreak(fd)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)


def read_key(timeout: float) -> Optional[str]:
    ready, _, _ = select.select([sys.stdin], [], [], timeout)
    if not ready:
        return None
    return sys.stdin.read(1)


def run_app(console: Console, config_path: Optional[Path]) -> None:
    state = AppState()
    pending: Optional["queue.Queue[RefreshMessage]"] = spawn_refresh(config_path, False)
    last_cache_poll = time.monotonic()
    refresh_secs = DEFAULT_REFRESH_SECS

    with cbreak_stdin(), Live(
        render(state, True), console=console, screen=True, auto_refresh=False
    ) as live:
        while True:
            if pending is not None:
                try:
                    message = pending.get_nowait()
                except queue.Empty:
                    state.spinner_index += 1
                else:
                    apply_refresh_result(state, message)
                    if not isinstance(message, BaseException):
                        refresh_secs = message[0].refresh_secs
                    pending = None

            if pending is None and time.monotonic() - last_cache_poll >= CACHE_POLL_INTERVAL:
                last_cache_poll = time.monotonic()
                try:
                    config = load_or_create_config(config_path)
                except ConfigError as e:
                    logger.debug(f"Skipping cache poll: {e}")
                else:
                    cached = load_cached_result(config)
                    if cached is not None:
                        state.rows, state.errors = _sorted_result(cached, config)
                        state.last_error = None

            live.update(render(state, pending is not None), refresh=True)

            key = read_key(POLL_INTERVAL)
            if key is not None:
                if key.lower() in QUIT_KEYS:
                    break
                if key.lower() == "r" and pending is None:
                    state.status_message = "Refreshing…"
                    pending = spawn_refresh(config_path, True)

            if (
                pending is None
                and time.monotonic() - state.last_refresh >= refresh_secs
            ):
                pending = spawn_refresh(config_path, False)


def run(argv=None) -> int:
    args = parse_args("TokenGauge terminal dashboard", argv)
    console = Console()
    setup_logging(handlers=[RichHandler(console=console, show_path=False)])

    if not sys.stdin.isatty() or not console.is_terminal:
        console.print("[red]tokengauge-tui must run in a TTY[/red]")
        return 1

    try:
        run_app(console, args.config)
    except KeyboardInterrupt:
        pass
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
