"""
Backend API Layer.

This package handles all communication with the music library backend.
"""

from .auth import MusicboxAuthenticator
from .client import MusicboxAPIClient

__all__ = ["MusicboxAPIClient", "MusicboxAuthenticator"]
