"""
Authorized retrieval of track audio into locally owned files.

The binary endpoint needs a bearer header, so a plain URL cannot be handed to
the playback engine. The payload is streamed to a private temporary file
instead, and the resulting handle must be released once the track view closes.
"""

import logging
import mimetypes
import os
import tempfile
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import aiofiles

from musicbox_cli.exceptions import PlaybackEngineError

if TYPE_CHECKING:
    from musicbox_cli.api.client import MusicboxAPIClient

log = logging.getLogger(__name__)

# System mime tables may map audio/mpeg to .mpga first.
_KNOWN_EXTENSIONS = {"audio/mpeg": ".mp3", "audio/mp3": ".mp3"}


class LocalResourceHandle:
    """Owning reference to a materialized copy of a track's audio."""

    def __init__(
        self,
        track_id: int,
        path: Path,
        size: int,
        content_type: str,
        on_release: Optional[Callable[["LocalResourceHandle"], None]] = None,
    ):
        self.track_id = track_id
        self.path = path
        self.size = size
        self.content_type = content_type
        self._on_release = on_release
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> bool:
        """Deletes the backing file. Returns False if already released."""
        if self._released:
            return False
        self._released = True
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            log.warning(f"Could not remove audio buffer '{self.path}': {e}")
        log.debug(f"Released audio buffer for track {self.track_id}.")
        if self._on_release is not None:
            self._on_release(self)
        return True

    def __enter__(self) -> "LocalResourceHandle":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"<LocalResourceHandle track={self.track_id} size={self.size} {state}>"


class ProtectedResourceFetcher:
    """Downloads protected track payloads and keeps count of live handles."""

    DEFAULT_CHUNK_SIZE = 131072  # 128 KB

    def __init__(
        self,
        api_client: "MusicboxAPIClient",
        resource_dir: Optional[Path] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.api_client = api_client
        self.resource_dir = resource_dir
        self.chunk_size = chunk_size
        self.acquired_count = 0
        self.released_count = 0
        self._live: set[LocalResourceHandle] = set()

    @property
    def outstanding(self) -> int:
        """Number of handles that have been fetched but not yet released."""
        return len(self._live)

    def _on_release(self, handle: LocalResourceHandle) -> None:
        self._live.discard(handle)
        self.released_count += 1

    async def fetch(self, track_id: int) -> LocalResourceHandle:
        """
        Streams the track's audio to a temporary file owned by the caller.

        The partial file is removed on every failure path, including
        cancellation, so only a completed download ever yields a handle.

        Raises:
            PlaybackEngineError: The payload is empty or cannot be stored locally.
        """
        path: Optional[Path] = None
        completed = False
        size = 0
        content_type = "audio/mpeg"
        try:
            if self.resource_dir is not None:
                self.resource_dir.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(
                prefix=f"musicbox-{track_id}-", suffix=".part", dir=self.resource_dir
            )
            os.close(fd)
            path = Path(name)

            async with self.api_client.stream_track(track_id) as response:
                content_type = response.content_type or content_type
                async with aiofiles.open(path, "wb") as f:
                    async for chunk in response.content.iter_chunked(self.chunk_size):
                        await f.write(chunk)
                        size += len(chunk)

            if size == 0:
                raise PlaybackEngineError("The server returned an empty audio file.")

            extension = (
                _KNOWN_EXTENSIONS.get(content_type)
                or mimetypes.guess_extension(content_type)
                or ".mp3"
            )
            final_path = path.with_suffix(extension)
            os.replace(path, final_path)
            path = final_path
            completed = True
        except OSError as e:
            log.debug(f"Could not store audio for track {track_id}: {e}")
            raise PlaybackEngineError(f"Could not store the audio file: {e}") from e
        finally:
            if not completed and path is not None:
                path.unlink(missing_ok=True)

        handle = LocalResourceHandle(
            track_id, path, size, content_type, on_release=self._on_release
        )
        self._live.add(handle)
        self.acquired_count += 1
        log.debug(f"Fetched {size} bytes of audio for track {track_id} into {path}.")
        return handle

    @asynccontextmanager
    async def acquire(self, track_id: int) -> AsyncIterator[LocalResourceHandle]:
        """Scoped fetch: the handle is released when the block exits, however it exits."""
        handle = await self.fetch(track_id)
        try:
            yield handle
        finally:
            handle.release()
