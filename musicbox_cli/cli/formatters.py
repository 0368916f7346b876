"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from musicbox_cli.models.session import Session
from musicbox_cli.models.track import Playlist, Track
from musicbox_cli.utils.formatting import format_size, format_time


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "AuthenticationError": [
            "• Check your username and password.",
            "• Create an account with `musicbox signup` if you do not have one.",
        ],
        "AuthorizationError": [
            "• Your session is missing or has expired.",
            "• Run `musicbox login` and try again.",
        ],
        "ValidationError": [
            "• Check the values you passed on the command line.",
        ],
        "NotFoundError": [
            "• The song or playlist does not exist. List them with `musicbox songs`.",
        ],
        "NetworkError": [
            "• Make sure the backend is running and reachable.",
            "• Check `api_url` with `musicbox --show-config`.",
        ],
        "PlaybackEngineError": [
            "• Install mpv or set `mpv_path` in the configuration file.",
            "• The audio file may be damaged; try downloading it instead.",
        ],
        "ConfigurationError": [
            "• Fix or delete the configuration file; defaults are recreated.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_session(session: Session, api_url: str):
    """Displays who is logged in, never the token itself."""
    console = Console()
    if not session.is_authenticated:
        console.print("[yellow]Not logged in.[/yellow] Run [cyan]musicbox login[/cyan].")
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()
    table.add_row("User:", f"[green]{session.identity.username}[/green]")
    if session.identity.email:
        table.add_row("Email:", session.identity.email)
    table.add_row("User ID:", str(session.identity.id))
    table.add_row("Backend:", f"[dim]{api_url}[/dim]")

    console.print(
        Panel(table, title="[bold green]✓ Logged In[/bold green]", border_style="green")
    )


def print_tracks_table(tracks: list[Track], title: str = "Songs"):
    """Displays a list of songs."""
    console = Console()
    if not tracks:
        console.print("[dim]No songs found.[/dim]")
        return

    table = Table(title=title, box=box.ROUNDED)
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Artist", style="cyan")
    table.add_column("Album")
    table.add_column("Genre", style="magenta")
    table.add_column("Length", justify="right", style="green")
    for track in tracks:
        table.add_row(
            str(track.id),
            track.title,
            track.artist,
            track.album,
            track.genre,
            format_time(track.duration_seconds) if track.duration_seconds else "-",
        )
    console.print(table)


def print_track_details(track: Track, is_favorite: bool | None = None):
    """Displays the metadata of a single song."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column()
    table.add_row("Title:", f"[bold]{track.title}[/bold]")
    table.add_row("Artist:", track.artist or "[dim]-[/dim]")
    table.add_row("Album:", track.album or "[dim]-[/dim]")
    table.add_row("Genre:", track.genre or "[dim]-[/dim]")
    table.add_row("Length:", format_time(track.duration_seconds))
    if track.file_size:
        table.add_row("Size:", format_size(track.file_size))
    if track.created_at:
        table.add_row("Added:", track.created_at.strftime("%Y-%m-%d"))
    if is_favorite is not None:
        table.add_row("Favorite:", "[red]♥ yes[/red]" if is_favorite else "♡ no")

    console.print(
        Panel(table, title=f"[bold]Song #{track.id}[/bold]", border_style="cyan")
    )


def print_playlists_table(playlists: list[Playlist]):
    """Displays the user's playlists."""
    console = Console()
    if not playlists:
        console.print(
            "[dim]No playlists yet.[/dim] Create one with"
            " [cyan]musicbox playlists create[/cyan]."
        )
        return

    table = Table(title="Playlists", box=box.ROUNDED)
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Description")
    table.add_column("Songs", justify="right", style="green")
    for playlist in playlists:
        table.add_row(
            str(playlist.id),
            playlist.name,
            playlist.description,
            str(len(playlist.songs)),
        )
    console.print(table)
