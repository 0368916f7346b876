"""
Manages a Rich Live display for a single playing track: title, state,
position bar, volume and favorite flag.
"""

import logging

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TaskID, TextColumn
from rich.table import Table
from rich.text import Text

from musicbox_cli.core.playback import PlaybackController
from musicbox_cli.models.playback import PlaybackState, PlaybackStatus
from musicbox_cli.utils.formatting import format_time

log = logging.getLogger(__name__)

_STATUS_STYLES = {
    PlaybackStatus.IDLE: ("○ Idle", "dim"),
    PlaybackStatus.LOADING: ("◌ Loading", "yellow"),
    PlaybackStatus.READY: ("● Ready", "cyan"),
    PlaybackStatus.PLAYING: ("▶ Playing", "green"),
    PlaybackStatus.PAUSED: ("⏸ Paused", "yellow"),
    PlaybackStatus.ENDED: ("■ Ended", "blue"),
    PlaybackStatus.ERROR: ("✗ Error", "red"),
}


class PlayerView:
    """
    Renders a PlaybackController's state and redraws on every state change.

    Use as a context manager around the time the controller is open.
    """

    def __init__(
        self,
        console: Console,
        controller: PlaybackController,
        key_help: str | None = None,
    ):
        self.console = console
        self.controller = controller
        self.key_help = key_help

        self.progress = Progress(
            TextColumn("[bold cyan]{task.fields[position]}"),
            BarColumn(bar_width=40),
            TextColumn("[dim]{task.fields[duration]}"),
            console=console,
        )
        self._task_id: TaskID = self.progress.add_task(
            "position", total=1.0, position="0:00", duration="0:00"
        )
        self._live: Live | None = None
        self._unsubscribe = None

    def _title(self) -> Text:
        track = self.controller.track
        text = Text()
        if track is None:
            text.append(f"Track {self.controller.track_id}", style="bold")
            return text
        text.append(track.title or f"Track {track.id}", style="bold")
        if track.artist:
            text.append(" · ", style="dim")
            text.append(track.artist, style="cyan")
        if track.album:
            text.append(f"  ({track.album})", style="dim")
        return text

    def _details(self, state: PlaybackState) -> Table:
        label, style = _STATUS_STYLES[state.status]
        grid = Table.grid(padding=(0, 2))
        grid.add_column(style="bold cyan", justify="right")
        grid.add_column()
        grid.add_row("State:", f"[{style}]{label}[/{style}]")
        if state.muted:
            volume = "[yellow]muted[/yellow]"
        else:
            volume = f"{round(state.volume * 100)}%"
        grid.add_row("Volume:", volume)
        favorite = self.controller.is_favorite
        grid.add_row("Favorite:", "[red]♥[/red]" if favorite else "[dim]♡[/dim]")
        if state.status is PlaybackStatus.ERROR and state.error_message:
            grid.add_row("Error:", f"[red]{state.error_message}[/red]")
        return grid

    def render(self, state: PlaybackState | None = None) -> Panel:
        state = state or self.controller.state
        self.progress.update(
            self._task_id,
            completed=state.progress,
            position=format_time(state.position_seconds),
            duration=format_time(state.duration_seconds),
        )
        body = Group(self._title(), Text(""), self.progress, Text(""), self._details(state))
        _, style = _STATUS_STYLES[state.status]
        subtitle = f"[dim]{self.key_help}[/dim]" if self.key_help else None
        return Panel(
            body,
            title="[bold]🎵 Now Playing[/bold]",
            subtitle=subtitle,
            border_style=style,
        )

    def _on_state(self, state: PlaybackState) -> None:
        if self._live is not None:
            self._live.update(self.render(state))

    def refresh(self) -> None:
        """Redraws with the current state, e.g. after the favorite flag changed."""
        self._on_state(self.controller.state)

    def __enter__(self) -> "PlayerView":
        self._live = Live(
            self.render(),
            console=self.console,
            refresh_per_second=4,
            transient=False,
        )
        self._live.start()
        self._unsubscribe = self.controller.subscribe(self._on_state)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._live is not None:
            self._live.update(self.render())
            self._live.stop()
            self._live = None
        return False
