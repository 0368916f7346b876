"""
The playback controller for a single open track view.

Opening a view fetches the track's metadata, checks its favorite flag, streams
the protected audio into a local file and binds that file to the engine.
Everything acquired along the way is registered on an exit stack, so closing
the view releases it whichever way the view ends.

State changes go through ``reduce``. Play, pause and end are only ever
reported by the engine; the controller's own commands are requests.
"""

import asyncio
import logging
from collections.abc import Callable
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Optional, Union

from musicbox_cli.api.client import MusicboxAPIClient
from musicbox_cli.exceptions import (
    AuthorizationError,
    MusicboxCliError,
    PlaybackEngineError,
)
from musicbox_cli.media.engine import (
    EngineEnded,
    EngineError,
    EngineEvent,
    EnginePaused,
    EnginePlaying,
    EnginePosition,
    EngineReady,
    PlaybackEngine,
)
from musicbox_cli.media.fetcher import ProtectedResourceFetcher
from musicbox_cli.models.config import DEFAULT_VOLUME
from musicbox_cli.models.playback import PlaybackState, PlaybackStatus
from musicbox_cli.models.track import Track

from .favorites import FavoriteCoordinator

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadStarted:
    pass


@dataclass(frozen=True)
class LoadFailed:
    message: str


@dataclass(frozen=True)
class SeekRequested:
    position: float


@dataclass(frozen=True)
class VolumeApplied:
    volume: float
    muted: bool


ControllerAction = Union[LoadStarted, LoadFailed, SeekRequested, VolumeApplied]
PlaybackEvent = Union[EngineEvent, ControllerAction]
StateListener = Callable[[PlaybackState], None]


def reduce(state: PlaybackState, event: PlaybackEvent) -> PlaybackState:
    """Returns the state that follows ``state`` once ``event`` has happened."""
    status = state.status

    if isinstance(event, (EngineError, LoadFailed)):
        if status is PlaybackStatus.ERROR:
            return state
        return state.evolve(status=PlaybackStatus.ERROR, error_message=event.message)

    if isinstance(event, VolumeApplied):
        return state.evolve(volume=event.volume, muted=event.muted)

    if status.is_terminal:
        return state

    if isinstance(event, LoadStarted):
        if status is PlaybackStatus.IDLE:
            return state.evolve(status=PlaybackStatus.LOADING)
    elif isinstance(event, EngineReady):
        if status is PlaybackStatus.LOADING:
            return state.evolve(
                status=PlaybackStatus.READY,
                duration_seconds=max(0.0, event.duration),
                position_seconds=0.0,
                error_message=None,
            )
    elif not status.is_loaded:
        return state
    elif isinstance(event, EnginePlaying):
        return state.evolve(status=PlaybackStatus.PLAYING)
    elif isinstance(event, EnginePaused):
        if status is PlaybackStatus.PLAYING:
            return state.evolve(status=PlaybackStatus.PAUSED)
    elif isinstance(event, (EnginePosition, SeekRequested)):
        position = max(0.0, event.position)
        if state.duration_seconds > 0:
            position = min(position, state.duration_seconds)
        return state.evolve(position_seconds=position)
    elif isinstance(event, EngineEnded):
        return state.evolve(status=PlaybackStatus.ENDED, position_seconds=0.0)

    return state


class PlaybackController:
    """
    Owns the PlaybackState, the local audio buffer and the engine binding of one view.

    Use as an async context manager::

        async with PlaybackController(42, api, fetcher, engine) as view:
            await view.play()
            await view.wait_until_done()
    """

    def __init__(
        self,
        track_id: int,
        api_client: MusicboxAPIClient,
        fetcher: ProtectedResourceFetcher,
        engine: PlaybackEngine,
        favorites: Optional[FavoriteCoordinator] = None,
        default_volume: float = DEFAULT_VOLUME,
        ready_timeout: float = 30.0,
    ):
        self.track_id = track_id
        self.api_client = api_client
        self.fetcher = fetcher
        self.engine = engine
        self.favorites = favorites or FavoriteCoordinator(api_client)
        self.ready_timeout = ready_timeout

        self.track: Optional[Track] = None
        self.state = PlaybackState(volume=min(1.0, max(0.0, default_volume)))

        self._listeners: list[StateListener] = []
        self._last_nonzero_volume: Optional[float] = self.state.volume or None
        self._stack = AsyncExitStack()
        self._open_task: Optional[asyncio.Task] = None
        self._closed = False
        self._settled = asyncio.Event()
        self._done = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_favorite(self) -> bool:
        return self.favorites.is_favorite(self.track_id)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Registers a state-change listener and returns a function that removes it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _dispatch(self, event: PlaybackEvent) -> None:
        if self._closed:
            return
        new_state = reduce(self.state, event)
        if new_state == self.state:
            return
        self.state = new_state
        if new_state.status is not PlaybackStatus.LOADING and (
            new_state.status is not PlaybackStatus.IDLE
        ):
            self._settled.set()
        if new_state.status.is_terminal:
            if new_state.status is PlaybackStatus.ERROR:
                log.debug(f"Track {self.track_id} view failed: {new_state.error_message}")
            self._done.set()
        for listener in list(self._listeners):
            listener(new_state)

    def _on_engine_event(self, event: EngineEvent) -> None:
        self._dispatch(event)

    # ---- lifecycle ----

    async def __aenter__(self) -> "PlaybackController":
        opened = False
        try:
            await self.open()
            opened = True
        finally:
            if not opened:
                await self.close()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    async def open(self) -> PlaybackState:
        """
        Loads the view and waits until the engine is ready or the load failed.

        Failures end up in ``state`` rather than being raised. If the view is
        closed meanwhile, the load is cancelled and the current state returned.
        """
        if self._open_task is not None:
            raise RuntimeError("A playback view can only be opened once.")
        self._open_task = asyncio.create_task(self._load())
        try:
            await self._open_task
        except asyncio.CancelledError:
            if not self._closed:
                raise
        return self.state

    async def _load(self) -> None:
        try:
            self.track = await self.api_client.fetch_track(self.track_id)
        except AuthorizationError as e:
            self._dispatch(LoadFailed(str(e)))
            return
        except MusicboxCliError as e:
            self._dispatch(LoadFailed(f"Could not load the song: {e}"))
            return

        await self.favorites.check(self.track_id)
        if not self.api_client.session_store.is_authenticated:
            # The check was refused and the session is already gone.
            self._dispatch(LoadFailed("Your session has expired. Please log in again."))
            return

        self._dispatch(LoadStarted())
        try:
            handle = await self._stack.enter_async_context(
                self.fetcher.acquire(self.track_id)
            )
            self.engine.set_listener(self._on_engine_event)
            self._stack.push_async_callback(self._unbind_engine)
            await self.engine.load(str(handle.path))
            await self.engine.set_volume(self.state.effective_volume)
        except AuthorizationError as e:
            self._dispatch(LoadFailed(str(e)))
            return
        except PlaybackEngineError as e:
            self._dispatch(EngineError(str(e)))
            return
        except MusicboxCliError as e:
            self._dispatch(LoadFailed(f"Could not load the audio file: {e}"))
            return

        try:
            await asyncio.wait_for(self._settled.wait(), timeout=self.ready_timeout)
        except asyncio.TimeoutError:
            self._dispatch(EngineError("Timed out waiting for the audio engine."))

    async def _unbind_engine(self) -> None:
        self.engine.set_listener(None)
        try:
            await self.engine.unload()
        except PlaybackEngineError as e:
            log.debug(f"Engine unload failed: {e}")

    async def close(self) -> None:
        """
        Tears the view down: cancels any in-flight load, unbinds the engine and
        releases the local audio buffer. Safe to call more than once.
        """
        if self._closed:
            return
        self._closed = True
        try:
            if self._open_task is not None and not self._open_task.done():
                self._open_task.cancel()
                await asyncio.wait({self._open_task})
            await self._stack.aclose()
        finally:
            self._settled.set()
            self._done.set()

    async def wait_until_done(self) -> PlaybackState:
        """Waits until the track ends, fails, or the view is closed."""
        await self._done.wait()
        return self.state

    # ---- transport ----

    async def _command(self, name: str, *args: float) -> bool:
        if self._closed or not self.state.status.is_loaded:
            log.debug(f"Ignoring '{name}' in state {self.state.status.value}.")
            return False
        try:
            await getattr(self.engine, name)(*args)
        except PlaybackEngineError as e:
            self._dispatch(EngineError(str(e)))
            return False
        return True

    async def play(self) -> None:
        """Asks the engine to start; the state follows once the engine confirms."""
        await self._command("play")

    async def pause(self) -> None:
        await self._command("pause")

    async def toggle_play_pause(self) -> None:
        if self.state.status is PlaybackStatus.PLAYING:
            await self.pause()
        else:
            await self.play()

    async def seek(self, fraction: float) -> Optional[float]:
        """
        Jumps to ``fraction`` of the track's duration.

        The displayed position moves at once; the engine's next position report
        overwrites it. Returns the requested position, or None if the duration
        is not known yet.
        """
        if not self.state.status.is_loaded or self.state.duration_seconds <= 0:
            return None
        fraction = min(1.0, max(0.0, fraction))
        target = fraction * self.state.duration_seconds
        self._dispatch(SeekRequested(target))
        await self._command("seek", target)
        return target

    # ---- volume ----

    async def _apply_volume(self, volume: float, muted: bool) -> None:
        self._dispatch(VolumeApplied(volume, muted))
        if self._closed or self.state.status.is_terminal:
            return
        if self.state.status in (PlaybackStatus.IDLE, PlaybackStatus.LOADING):
            return  # applied when the engine is bound
        try:
            await self.engine.set_volume(0.0 if muted else volume)
        except PlaybackEngineError as e:
            self._dispatch(EngineError(str(e)))

    async def set_volume(self, volume: float) -> None:
        """Sets the volume in [0, 1]; zero counts as muted."""
        volume = min(1.0, max(0.0, volume))
        if volume > 0:
            self._last_nonzero_volume = volume
        await self._apply_volume(volume, muted=volume == 0)

    async def toggle_mute(self) -> bool:
        """Mutes or restores the last nonzero volume. Returns the new muted flag."""
        if self.state.muted:
            restored = self._last_nonzero_volume or DEFAULT_VOLUME
            await self._apply_volume(restored, muted=False)
        else:
            if self.state.volume > 0:
                self._last_nonzero_volume = self.state.volume
            await self._apply_volume(self.state.volume, muted=True)
        return self.state.muted

    # ---- favorites ----

    async def toggle_favorite(self) -> Optional[bool]:
        return await self.favorites.toggle(self.track_id)
