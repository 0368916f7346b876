"""
Storage Layer.

This package handles all data persistence: the configuration file and the
durable session slots.
"""

from .config_manager import ConfigManager
from .session_store import SessionStore

__all__ = ["ConfigManager", "SessionStore"]
