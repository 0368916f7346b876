"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import shutil
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler

from musicbox_cli import __version__
from musicbox_cli.core.context import SessionContext
from musicbox_cli.core.session import Route
from musicbox_cli.media.audio_info import check_mp3, probe_duration
from musicbox_cli.media.mpv_engine import MpvEngine
from musicbox_cli.models.playback import PlaybackStatus
from musicbox_cli.storage.config_manager import ConfigManager
from musicbox_cli.utils.formatting import format_size, format_time
from musicbox_cli.utils.path import create_dir, track_filename, unique_path

from .formatters import (
    print_config,
    print_playlists_table,
    print_session,
    print_track_details,
    print_tracks_table,
)
from .key_bindings import KEY_HELP, TerminalKeys, run_key_loop
from .player_view import PlayerView

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("musicbox_cli")

app = typer.Typer(
    name="musicbox",
    help=(
        "Browse, play and manage your music library from the terminal. Use"
        " 'musicbox <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)
playlists_app = typer.Typer(help="List and edit your playlists.")
app.add_typer(playlists_app, name="playlists")

T = TypeVar("T")


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "musicbox-cli"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _navigate(route: Route) -> None:
    if route is Route.LOGIN:
        console.print("[dim]Log in with[/dim] [cyan]musicbox login[/cyan]")


def _run(action: Callable[[SessionContext], Awaitable[T]], **overrides: Any) -> T:
    """Loads the configuration and runs ``action`` inside a fresh session context."""
    cli_options = {k: v for k, v in overrides.items() if v is not None}
    config = ConfigManager(CONFIG_FILE).load_config(cli_options)

    async def _main() -> T:
        async with SessionContext(config, navigator=_navigate) as ctx:
            return await action(ctx)

    return asyncio.run(_main())


def _require_login(ctx: SessionContext) -> None:
    if not ctx.session.is_authenticated:
        console.print(
            "[red]✗ You need to log in first.[/red] Run [cyan]musicbox login[/cyan]."
        )
        raise typer.Exit(code=1)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """Musicbox CLI"""
    if version:
        console.print(f"[bold]musicbox-cli[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("musicbox_cli").setLevel(log_level)

    if show_config:
        config_manager = ConfigManager(CONFIG_FILE)
        config = config_manager.load_config()
        config_data = config_manager.get_config_as_dict()
        config_data["api_url"] = config.api_url
        print_config(CONFIG_FILE, config_data)
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


# ---- session ----


@app.command()
def login(
    username: str = typer.Argument(..., help="Your username or email."),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, help="Your password."
    ),
    api_url: str | None = typer.Option(None, "--api-url", help="Backend URL."),
):
    """Log in and remember the session."""

    async def _login(ctx: SessionContext):
        session = await ctx.manager.login(username, password)
        console.print(
            f"[bold green]✓ Logged in as {session.identity.username}[/bold green]"
        )

    _run(_login, api_url=api_url)


@app.command()
def signup(
    username: str = typer.Argument(..., help="The username to register."),
    email: str = typer.Argument(..., help="Your email address."),
    password: str = typer.Option(
        ...,
        "--password",
        "-p",
        prompt=True,
        hide_input=True,
        help="Choose a password.",
    ),
    confirm_password: str = typer.Option(
        ...,
        "--confirm-password",
        prompt="Repeat password",
        hide_input=True,
        help="The same password again.",
    ),
    api_url: str | None = typer.Option(None, "--api-url", help="Backend URL."),
):
    """Create an account and log in with it."""

    async def _signup(ctx: SessionContext):
        session = await ctx.manager.signup(username, email, password, confirm_password)
        console.print(
            f"[bold green]✓ Account created. Logged in as"
            f" {session.identity.username}[/bold green]"
        )

    _run(_signup, api_url=api_url)


@app.command()
def logout():
    """Forget the stored session."""

    async def _logout(ctx: SessionContext):
        was_authenticated = ctx.session.is_authenticated
        ctx.manager.logout()
        if was_authenticated:
            console.print("[green]✓ Logged out.[/green]")

    _run(_logout)


@app.command()
def whoami():
    """Show the logged-in user."""

    async def _whoami(ctx: SessionContext):
        print_session(ctx.session, ctx.config.api_url)

    _run(_whoami)


# ---- library ----


@app.command()
def songs():
    """List all songs in the library."""

    async def _songs(ctx: SessionContext):
        _require_login(ctx)
        print_tracks_table(await ctx.api.list_tracks())

    _run(_songs)


@app.command()
def show(track_id: int = typer.Argument(..., help="The song ID.")):
    """Show the details of a song, including whether it is a favorite."""

    async def _show(ctx: SessionContext):
        _require_login(ctx)
        track = await ctx.api.fetch_track(track_id)
        is_favorite = await ctx.favorites.check(track_id)
        print_track_details(track, is_favorite)

    _run(_show)


@app.command()
def play(
    track_id: int = typer.Argument(..., help="The song ID."),
    volume: float | None = typer.Option(
        None, "--volume", min=0.0, max=1.0, help="Start volume between 0 and 1."
    ),
    start: float | None = typer.Option(
        None, "--start", min=0.0, help="Start position in seconds."
    ),
    mute: bool = typer.Option(False, "--mute", help="Start muted."),
):
    """
    Play a song until it ends.

    In a terminal: space play/pause, ←/→ seek 10s, +/- volume, m mute,
    f favorite, q quit.
    """

    async def _play(ctx: SessionContext):
        _require_login(ctx)
        engine = MpvEngine(ctx.config.mpv_path or None)
        try:
            view = ctx.open_track(track_id, engine)
            with TerminalKeys() as keys:
                key_help = KEY_HELP if keys.available else None
                with PlayerView(console, view, key_help=key_help) as player:
                    async with view:
                        if view.state.status is not PlaybackStatus.READY:
                            return view.state
                        if volume is not None:
                            await view.set_volume(volume)
                        if mute:
                            await view.toggle_mute()
                        if start and view.state.duration_seconds > 0:
                            await view.seek(start / view.state.duration_seconds)
                        await view.play()
                        if keys.available:
                            return await run_key_loop(
                                view, keys, on_handled=player.refresh
                            )
                        return await view.wait_until_done()
        finally:
            await engine.close()

    state = _run(_play)
    if state.status is PlaybackStatus.ERROR:
        console.print(f"[red]✗ {state.error_message}[/red]")
        raise typer.Exit(code=1)


@app.command()
def favorite(
    track_id: int = typer.Argument(..., help="The song ID."),
    check: bool = typer.Option(
        False, "--check", help="Only show the status, do not change it."
    ),
):
    """Toggle (or check) whether a song is one of your favorites."""

    async def _favorite(ctx: SessionContext):
        _require_login(ctx)
        if check:
            flag = await ctx.favorites.check(track_id)
        else:
            flag = await ctx.favorites.toggle(track_id)
            if flag is None:
                console.print(f"[red]✗ {ctx.favorites.error}[/red]")
                raise typer.Exit(code=1)
        if flag is None:
            console.print("[yellow]Favorite status is unknown.[/yellow]")
        elif flag:
            console.print(f"[red]♥[/red] Song {track_id} is in your favorites.")
        else:
            console.print(f"♡ Song {track_id} is not in your favorites.")

    _run(_favorite)


@app.command()
def upload(
    file: Path = typer.Argument(  # noqa: B008
        ..., exists=True, dir_okay=False, readable=True, help="The MP3 file."
    ),
    title: str = typer.Option(..., "--title", "-t", help="Song title."),
    artist: str = typer.Option(..., "--artist", "-a", help="Artist name."),
    album: str = typer.Option("", "--album", help="Album name."),
    genre: str = typer.Option("", "--genre", help="Genre."),
):
    """Upload an MP3 file to the library."""

    async def _upload(ctx: SessionContext):
        _require_login(ctx)
        duration = probe_duration(file) if file.suffix.lower() == ".mp3" else None
        with console.status(f"[cyan]Uploading {file.name}...[/cyan]"):
            track = await ctx.api.upload_track(
                file, title, artist, album=album, genre=genre, duration=duration
            )
        console.print(
            f"[bold green]✓ Uploaded '{track.title}' as song #{track.id}"
            f"[/bold green] [dim]({format_time(track.duration_seconds)})[/dim]"
        )

    _run(_upload)


@app.command()
def download(
    track_id: int = typer.Argument(..., help="The song ID."),
    output: Path = typer.Option(  # noqa: B008
        Path("."), "--output", "-o", file_okay=False, help="Target directory."
    ),
):
    """Save a song's audio file locally."""

    async def _download(ctx: SessionContext):
        _require_login(ctx)
        track = await ctx.api.fetch_track(track_id)
        create_dir(output)
        target = unique_path(output / track_filename(track))
        with console.status(f"[cyan]Downloading {track.display_name}...[/cyan]"):
            async with ctx.fetcher.acquire(track_id) as handle:
                await asyncio.to_thread(shutil.copyfile, handle.path, target)
                size = handle.size
        if not check_mp3(target):
            log.warning(
                f"[yellow]'{target.name}' does not look like valid MP3 audio."
                "[/yellow]"
            )
        console.print(
            f"[bold green]✓ Saved '{target}'[/bold green]"
            f" [dim]({format_size(size)})[/dim]"
        )

    _run(_download)


# ---- playlists ----


@playlists_app.command("list")
def playlists_list():
    """List your playlists."""

    async def _list(ctx: SessionContext):
        _require_login(ctx)
        print_playlists_table(await ctx.api.list_playlists())

    _run(_list)


@playlists_app.command("create")
def playlists_create(
    name: str = typer.Argument(..., help="Playlist name."),
    description: str = typer.Option("", "--description", "-d", help="Description."),
):
    """Create a new playlist."""

    async def _create(ctx: SessionContext):
        _require_login(ctx)
        playlist = await ctx.api.create_playlist(name, description)
        console.print(
            f"[bold green]✓ Created playlist '{playlist.name}' (#{playlist.id})"
            "[/bold green]"
        )

    _run(_create)


@playlists_app.command("add")
def playlists_add(
    playlist_id: int = typer.Argument(..., help="The playlist ID."),
    track_id: int = typer.Argument(..., help="The song ID."),
):
    """Add a song to a playlist."""

    async def _add(ctx: SessionContext):
        _require_login(ctx)
        playlist = await ctx.api.add_song_to_playlist(playlist_id, track_id)
        console.print(
            f"[green]✓ Added song {track_id} to '{playlist.name}'"
            f" ({len(playlist.songs)} songs).[/green]"
        )

    _run(_add)


@playlists_app.command("songs")
def playlists_songs(playlist_id: int = typer.Argument(..., help="The playlist ID.")):
    """List the songs of a playlist."""

    async def _songs(ctx: SessionContext):
        _require_login(ctx)
        tracks = await ctx.api.fetch_playlist_tracks(playlist_id)
        print_tracks_table(tracks, title=f"Playlist #{playlist_id}")

    _run(_songs)
