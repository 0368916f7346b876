"""
Contract between the playback controller and an audio engine.

An engine plays a local file and reports what it is doing through a fixed set
of events. Those events are the only input that may move a track view into
the playing, paused or ended states.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional, Protocol, Union


@dataclass(frozen=True)
class EngineReady:
    """The resource is decoded far enough for the duration to be known."""

    duration: float


@dataclass(frozen=True)
class EnginePlaying:
    pass


@dataclass(frozen=True)
class EnginePaused:
    pass


@dataclass(frozen=True)
class EnginePosition:
    position: float


@dataclass(frozen=True)
class EngineEnded:
    pass


@dataclass(frozen=True)
class EngineError:
    message: str


EngineEvent = Union[
    EngineReady, EnginePlaying, EnginePaused, EnginePosition, EngineEnded, EngineError
]
EngineListener = Callable[[EngineEvent], None]


class PlaybackEngine(Protocol):
    """Anything that can play a local audio file and report on it."""

    def set_listener(self, listener: Optional[EngineListener]) -> None: ...

    async def load(self, path: str) -> None:
        """Opens a file paused. Readiness is reported with EngineReady."""
        ...

    async def play(self) -> None: ...

    async def pause(self) -> None: ...

    async def seek(self, position: float) -> None: ...

    async def set_volume(self, volume: float) -> None: ...

    async def unload(self) -> None:
        """Stops playback and lets go of the current file."""
        ...

    async def close(self) -> None: ...
