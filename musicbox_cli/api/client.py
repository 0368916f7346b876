"""
Async client for the music library backend.

Every protected request reads the credential from the session store at the
moment it starts and sends it as a bearer token. Rejections are routed to a
single unauthorized handler before the error is raised to the caller.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import ValidationError as PydanticValidationError

from musicbox_cli import __version__
from musicbox_cli.exceptions import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    NetworkError,
    NotFoundError,
    ValidationError,
)
from musicbox_cli.models.track import Playlist, Track
from musicbox_cli.storage.session_store import SessionStore

log = logging.getLogger(__name__)

UnauthorizedHandler = Callable[[Optional[str]], Any]


class MusicboxAPIClient:
    """
    Async client for the backend JSON API.

    Features:
    - Bearer authorization from the session store
    - Typed errors for every failure class
    - Streaming access to binary track payloads
    - Connection pooling
    """

    def __init__(
        self,
        base_url: str,
        session_store: SessionStore,
        request_timeout: int = 60,
        on_unauthorized: Optional[UnauthorizedHandler] = None,
    ):
        """
        Initializes the API client.

        Args:
            base_url: Root URL of the backend, without a trailing slash.
            session_store: Source of the credential for protected requests.
            request_timeout: Total timeout for a single JSON request, in seconds.
            on_unauthorized: Called with the rejected credential whenever a
                protected request is refused.
        """
        self.base_url = base_url.rstrip("/")
        self.session_store = session_store
        self.request_timeout = request_timeout
        self.on_unauthorized = on_unauthorized

        self._session: Optional[aiohttp.ClientSession] = None

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=16,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={
                    "User-Agent": f"musicbox-cli/{__version__}",
                    "Accept": "application/json",
                },
                # Binary payloads stream for as long as they need to; only
                # connecting and stalled reads are bounded.
                timeout=aiohttp.ClientTimeout(
                    total=None, sock_connect=15, sock_read=self.request_timeout
                ),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def _reject(self, credential: Optional[str], message: str) -> AuthorizationError:
        """Runs the unauthorized handler and builds the error to raise."""
        log.debug(f"Protected request rejected: {message}")
        if self.on_unauthorized is not None:
            self.on_unauthorized(credential)
        return AuthorizationError(message, credential=credential)

    @staticmethod
    async def _error_message(response: aiohttp.ClientResponse) -> str:
        """Extracts the backend's ``{"error": ...}`` message, if any."""
        try:
            body = await response.json(content_type=None)
            if isinstance(body, dict) and body.get("error"):
                return str(body["error"])
        except (ValueError, aiohttp.ClientError):
            pass
        return response.reason or f"HTTP {response.status}"

    async def _raise_for_status(
        self,
        response: aiohttp.ClientResponse,
        credential: Optional[str],
        protected: bool,
    ) -> None:
        if response.status < 400:
            return

        message = await self._error_message(response)

        if response.status in (401, 403):
            if protected:
                raise self._reject(credential, message)
            raise AuthenticationError(message)
        if response.status == 404:
            raise NotFoundError(message)
        raise APIError(message, response.status)

    @asynccontextmanager
    async def request(
        self, method: str, path: str, *, protected: bool = True, **kwargs: Any
    ) -> AsyncIterator[aiohttp.ClientResponse]:
        """
        Performs a request and yields the successful response.

        The credential is read once, before sending, and is never swapped for a
        newer one if the session changes while the request is in flight.

        Raises:
            AuthorizationError: No credential, or the backend refused it.
            AuthenticationError: An unprotected auth endpoint refused the login.
            NotFoundError: The resource does not exist.
            APIError: Any other non-2xx response.
            NetworkError: Transport failure or timeout.
        """
        headers = dict(kwargs.pop("headers", None) or {})
        credential = None
        if protected:
            credential = self.session_store.credential
            if credential is None:
                raise self._reject(None, "You need to log in first.")
            headers["Authorization"] = f"Bearer {credential}"

        await self._initialize_session()
        url = self.base_url + path

        try:
            async with self._session.request(
                method, url, headers=headers, **kwargs
            ) as response:
                log.debug(f"{method} {path} -> {response.status}")
                await self._raise_for_status(response, credential, protected)
                yield response
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"{method} {path} failed: {e!r}")
            raise NetworkError(f"Could not reach the server: {e}") from e

    async def _json(
        self, method: str, path: str, *, protected: bool = True, **kwargs: Any
    ) -> Any:
        async with self.request(method, path, protected=protected, **kwargs) as r:
            try:
                return await r.json(content_type=None)
            except ValueError as e:
                raise APIError(f"Malformed response from {path}", r.status) from e

    @staticmethod
    def _parse(model: Any, payload: Any, path: str) -> Any:
        try:
            return model.model_validate(payload)
        except PydanticValidationError as e:
            raise APIError(f"Unexpected response from {path}: {e}", 200) from e

    # Authentication (unprotected)
    async def login(self, username: str, password: str) -> Dict[str, Any]:
        return await self._json(
            "POST",
            "/auth/login",
            protected=False,
            json={"username": username, "password": password},
        )

    async def register(self, username: str, email: str, password: str) -> Dict[str, Any]:
        return await self._json(
            "POST",
            "/auth/register",
            protected=False,
            json={"username": username, "email": email, "password": password},
        )

    # Songs
    async def fetch_track(self, track_id: int) -> Track:
        path = f"/songs/{track_id}"
        return self._parse(Track, await self._json("GET", path), path)

    async def list_tracks(self) -> List[Track]:
        payload = await self._json("GET", "/songs")
        return [self._parse(Track, item, "/songs") for item in payload or []]

    def stream_track(self, track_id: int):
        """Opens the binary audio payload of a track as a streaming response."""
        return self.request(
            "GET", f"/songs/{track_id}/play", headers={"Accept": "audio/*"}
        )

    async def upload_track(
        self,
        file_path: Path,
        title: str,
        artist: str,
        album: str = "",
        genre: str = "",
        duration: Optional[int] = None,
    ) -> Track:
        """
        Uploads an MP3 file with its metadata.

        Raises:
            ValidationError: The file is missing or is not an MP3.
        """
        if file_path.suffix.lower() != ".mp3":
            raise ValidationError("Only MP3 files are allowed")
        if not file_path.is_file():
            raise ValidationError(f"File not found: {file_path}")

        with open(file_path, "rb") as f:
            form = aiohttp.FormData()
            form.add_field("title", title)
            form.add_field("artist", artist)
            form.add_field("album", album)
            form.add_field("genre", genre)
            if duration is not None:
                form.add_field("duration", str(duration))
            form.add_field(
                "file", f, filename=file_path.name, content_type="audio/mpeg"
            )
            payload = await self._json("POST", "/songs", data=form)

        return self._parse(Track, (payload or {}).get("song"), "/songs")

    # Favorites
    @staticmethod
    def _flag(payload: Any, key: str, path: str) -> bool:
        if not isinstance(payload, dict) or not isinstance(payload.get(key), bool):
            raise APIError(f"Unexpected response from {path}: missing '{key}'", 200)
        return payload[key]

    async def check_favorite(self, track_id: int) -> bool:
        path = f"/favorites/{track_id}"
        return self._flag(await self._json("GET", path), "isFavorite", path)

    async def toggle_favorite(self, track_id: int) -> bool:
        path = f"/songs/{track_id}/favorite"
        return self._flag(await self._json("POST", path), "isFavourited", path)

    # Playlists
    async def list_playlists(self) -> List[Playlist]:
        payload = await self._json("GET", "/playlists")
        return [self._parse(Playlist, item, "/playlists") for item in payload or []]

    async def create_playlist(self, name: str, description: str = "") -> Playlist:
        payload = await self._json(
            "POST", "/playlists", json={"name": name, "description": description}
        )
        return self._parse(Playlist, payload, "/playlists")

    async def add_song_to_playlist(self, playlist_id: int, song_id: int) -> Playlist:
        payload = await self._json(
            "POST",
            "/playlists/add-song",
            json={"playlist_id": playlist_id, "song_id": song_id},
        )
        return self._parse(Playlist, (payload or {}).get("playlist"), "/playlists")

    async def fetch_playlist_tracks(self, playlist_id: int) -> List[Track]:
        path = f"/playlists/{playlist_id}/songs"
        payload = await self._json("GET", path)
        return [self._parse(Track, item, path) for item in payload or []]
