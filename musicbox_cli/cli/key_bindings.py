"""
Keyboard controls for the player while a track is playing.

Keys are read from the terminal in cbreak mode through the event loop, so the
controller keeps receiving engine events while the user presses keys.
"""

import asyncio
import logging
import os
import sys
from collections.abc import Callable
from typing import Optional, Protocol, TextIO

from musicbox_cli.core.playback import PlaybackController
from musicbox_cli.models.playback import PlaybackState

try:
    import termios
    import tty
except ImportError:  # Windows has no POSIX terminal control.
    termios = None
    tty = None

log = logging.getLogger(__name__)

SEEK_STEP_SECONDS = 10.0
VOLUME_STEP = 0.1

KEY_HELP = "space play/pause · ←/→ seek · +/- volume · m mute · f favorite · q quit"

_RIGHT = ("\x1b[C", "l")
_LEFT = ("\x1b[D", "h")
_QUIT = ("q", "Q", "\x1b")


class KeySource(Protocol):
    async def get(self) -> str: ...


async def seek_by(view: PlaybackController, seconds: float) -> Optional[float]:
    """Moves the position by ``seconds`` relative to where it is now."""
    duration = view.state.duration_seconds
    if duration <= 0:
        return None
    return await view.seek((view.state.position_seconds + seconds) / duration)


async def handle_key(view: PlaybackController, key: str) -> bool:
    """Applies one key press to the view. Returns False when the user wants to quit."""
    if key in _QUIT:
        return False
    if key == " ":
        await view.toggle_play_pause()
    elif key in _RIGHT:
        await seek_by(view, SEEK_STEP_SECONDS)
    elif key in _LEFT:
        await seek_by(view, -SEEK_STEP_SECONDS)
    elif key in ("+", "="):
        await view.set_volume(round(view.state.volume + VOLUME_STEP, 2))
    elif key in ("-", "_"):
        await view.set_volume(round(view.state.volume - VOLUME_STEP, 2))
    elif key in ("m", "M"):
        await view.toggle_mute()
    elif key in ("f", "F"):
        if await view.toggle_favorite() is None and view.favorites.error:
            log.warning(f"[yellow]{view.favorites.error}[/yellow]")
    else:
        log.debug(f"Unbound key {key!r}.")
    return True


async def run_key_loop(
    view: PlaybackController,
    keys: KeySource,
    on_handled: Optional[Callable[[], None]] = None,
) -> PlaybackState:
    """
    Feeds key presses to the view until the track is done or the user quits.

    ``on_handled`` runs after every key, so displays can pick up changes that
    do not go through the playback state, such as the favorite flag.
    """
    done = asyncio.ensure_future(view.wait_until_done())
    next_key: Optional[asyncio.Future] = None
    try:
        while not done.done():
            next_key = asyncio.ensure_future(keys.get())
            await asyncio.wait({done, next_key}, return_when=asyncio.FIRST_COMPLETED)
            if not next_key.done():
                break
            if not await handle_key(view, next_key.result()):
                break
            if on_handled is not None:
                on_handled()
    finally:
        done.cancel()
        if next_key is not None:
            next_key.cancel()
    return view.state


class TerminalKeys:
    """
    Reads key presses from a terminal without waiting for Enter.

    Use as a context manager inside a running event loop. The terminal mode is
    restored on exit. ``available`` is False when the stream is not a terminal.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdin
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._saved_mode: Optional[list] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def available(self) -> bool:
        if termios is None:
            return False
        try:
            return self.stream.isatty()
        except ValueError:  # closed stream
            return False

    def _on_readable(self) -> None:
        data = os.read(self.stream.fileno(), 32)
        if data:
            self._queue.put_nowait(data.decode("utf-8", errors="ignore"))

    async def get(self) -> str:
        return await self._queue.get()

    def __enter__(self) -> "TerminalKeys":
        if not self.available:
            return self
        fd = self.stream.fileno()
        self._saved_mode = termios.tcgetattr(fd)
        tty.setcbreak(fd)
        self._loop = asyncio.get_running_loop()
        self._loop.add_reader(fd, self._on_readable)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._saved_mode is None:
            return False
        fd = self.stream.fileno()
        self._loop.remove_reader(fd)
        termios.tcsetattr(fd, termios.TCSADRAIN, self._saved_mode)
        self._saved_mode = None
        return False
