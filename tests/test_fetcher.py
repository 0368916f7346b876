"""Tests for authorized audio retrieval into local buffers."""

import pytest
from conftest import FakeBackend

from musicbox_cli.core.context import SessionContext
from musicbox_cli.exceptions import NotFoundError, PlaybackEngineError


class TestProtectedResourceFetcher:
    @pytest.mark.asyncio
    async def test_fetch_writes_payload_and_release_deletes_it(
        self, logged_in: SessionContext, backend: FakeBackend
    ) -> None:
        song_id = backend.add_song("Blue", audio=b"ID3" + b"x" * 300_000)
        fetcher = logged_in.fetcher

        handle = await fetcher.fetch(song_id)

        assert handle.path.suffix == ".mp3"
        assert handle.size == 300_003
        assert handle.path.read_bytes() == backend.audio[song_id]
        assert fetcher.outstanding == 1

        assert handle.release() is True
        assert handle.release() is False
        assert not handle.path.exists()
        assert fetcher.outstanding == 0
        assert fetcher.released_count == 1

    @pytest.mark.asyncio
    async def test_empty_payload_leaves_nothing_behind(
        self, logged_in: SessionContext, backend: FakeBackend
    ) -> None:
        song_id = backend.add_song("Empty", audio=b"")
        fetcher = logged_in.fetcher

        with pytest.raises(PlaybackEngineError):
            await fetcher.fetch(song_id)

        assert fetcher.acquired_count == 0
        assert list(fetcher.resource_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_acquire_releases_on_error_inside_block(
        self, logged_in: SessionContext, backend: FakeBackend
    ) -> None:
        song_id = backend.add_song("Blue")
        fetcher = logged_in.fetcher

        with pytest.raises(RuntimeError):
            async with fetcher.acquire(song_id) as handle:
                raise RuntimeError("view crashed")

        assert handle.released
        assert fetcher.outstanding == 0

    @pytest.mark.asyncio
    async def test_missing_track(self, logged_in: SessionContext) -> None:
        with pytest.raises(NotFoundError):
            await logged_in.fetcher.fetch(12345)

        assert list(logged_in.fetcher.resource_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_unusable_buffer_dir_raises_engine_error(
        self, logged_in: SessionContext, backend: FakeBackend, tmp_path
    ) -> None:
        song_id = backend.add_song("Blue")
        blocker = tmp_path / "file"
        blocker.write_bytes(b"")
        fetcher = logged_in.fetcher
        fetcher.resource_dir = blocker / "buffers"

        with pytest.raises(PlaybackEngineError, match="Could not store the audio file"):
            await fetcher.fetch(song_id)

        assert fetcher.acquired_count == 0
        assert fetcher.outstanding == 0
