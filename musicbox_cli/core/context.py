"""
Application-wide wiring of the session, the API client and the playback pieces.
"""

import logging
from pathlib import Path
from typing import Optional

from musicbox_cli.api.auth import MusicboxAuthenticator
from musicbox_cli.api.client import MusicboxAPIClient
from musicbox_cli.media.engine import PlaybackEngine
from musicbox_cli.media.fetcher import ProtectedResourceFetcher
from musicbox_cli.models.config import ClientConfig
from musicbox_cli.models.session import Session
from musicbox_cli.storage.session_store import SessionStore

from .favorites import FavoriteCoordinator
from .playback import PlaybackController
from .session import Navigator, SessionManager

log = logging.getLogger(__name__)

SESSION_FILE_NAME = "session.ini"


class SessionContext:
    """
    Builds and owns the objects that share one session.

    The stored session is hydrated before anything else is constructed, so no
    request can be issued before the persisted credential is known. Rejected
    credentials reported by the API client are routed to the session manager.
    """

    def __init__(
        self,
        config: ClientConfig,
        navigator: Optional[Navigator] = None,
        session_file: Optional[Path] = None,
    ):
        self.config = config
        if session_file is None:
            session_file = Path(config.config_path) / SESSION_FILE_NAME

        self.store = SessionStore(session_file)
        self.store.hydrate()

        self.api = MusicboxAPIClient(
            config.api_url, self.store, request_timeout=config.request_timeout
        )
        self.manager = SessionManager(
            self.store, MusicboxAuthenticator(self.api), navigator
        )
        self.api.on_unauthorized = self.manager.handle_unauthorized

        self.fetcher = ProtectedResourceFetcher(self.api, chunk_size=config.chunk_size)
        self.favorites = FavoriteCoordinator(self.api)

    @property
    def session(self) -> Session:
        return self.store.session

    def open_track(
        self, track_id: int, engine: PlaybackEngine, ready_timeout: float = 30.0
    ) -> PlaybackController:
        """Creates the controller for a track view; enter it to load the track."""
        return PlaybackController(
            track_id,
            self.api,
            self.fetcher,
            engine,
            favorites=self.favorites,
            default_volume=self.config.default_volume,
            ready_timeout=ready_timeout,
        )

    async def close(self) -> None:
        if self.fetcher.outstanding:
            log.debug(f"{self.fetcher.outstanding} audio buffer(s) still held at exit.")
        await self.api.close()

    async def __aenter__(self) -> "SessionContext":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
