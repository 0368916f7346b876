"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures used throughout the application, such as configuration,
sessions, library items and playback state.
"""

from .config import ClientConfig
from .playback import PlaybackState, PlaybackStatus
from .session import Identity, Session
from .track import Playlist, Track

__all__ = [
    "ClientConfig",
    "Identity",
    "PlaybackState",
    "PlaybackStatus",
    "Playlist",
    "Session",
    "Track",
]
