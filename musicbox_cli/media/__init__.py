"""
Media Layer.

This package is responsible for everything that touches audio bytes: fetching
protected payloads into local files, the playback engine contract and its mpv
implementation, and stream inspection.
"""

from .engine import PlaybackEngine
from .fetcher import LocalResourceHandle, ProtectedResourceFetcher
from .mpv_engine import MpvEngine

__all__ = [
    "LocalResourceHandle",
    "MpvEngine",
    "PlaybackEngine",
    "ProtectedResourceFetcher",
]
