"""
Playback state snapshot for a single open track view.
"""

from dataclasses import dataclass, replace
from enum import Enum

from .config import DEFAULT_VOLUME


class PlaybackStatus(Enum):
    """Lifecycle of one track view."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (PlaybackStatus.ENDED, PlaybackStatus.ERROR)

    @property
    def is_loaded(self) -> bool:
        """True once the engine knows the duration and accepts transport commands."""
        return self in (
            PlaybackStatus.READY,
            PlaybackStatus.PLAYING,
            PlaybackStatus.PAUSED,
        )


@dataclass(frozen=True)
class PlaybackState:
    """Immutable snapshot; every change produces a new instance."""

    status: PlaybackStatus = PlaybackStatus.IDLE
    position_seconds: float = 0.0
    duration_seconds: float = 0.0
    volume: float = DEFAULT_VOLUME
    muted: bool = False
    error_message: str | None = None

    @property
    def effective_volume(self) -> float:
        return 0.0 if self.muted else self.volume

    @property
    def progress(self) -> float:
        """Fraction of the track played, in [0, 1]."""
        if self.duration_seconds <= 0:
            return 0.0
        return min(1.0, max(0.0, self.position_seconds / self.duration_seconds))

    def evolve(self, **changes) -> "PlaybackState":
        return replace(self, **changes)
