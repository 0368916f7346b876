"""Test fixtures: an in-process fake backend and a scripted playback engine."""

import asyncio
import itertools
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from musicbox_cli.core.context import SessionContext
from musicbox_cli.core.session import Route
from musicbox_cli.exceptions import PlaybackEngineError
from musicbox_cli.media.engine import (
    EngineEnded,
    EngineError,
    EngineEvent,
    EngineListener,
    EnginePaused,
    EnginePlaying,
    EnginePosition,
    EngineReady,
)
from musicbox_cli.models.config import ClientConfig

AUDIO_BYTES = b"ID3" + b"\x00" * 4093


class FakeBackend:
    """
    A small stand-in for the music library server.

    Mirrors the real routes and payload shapes: PascalCase song records,
    ``{"error": ...}`` bodies and bearer-token checks on protected routes.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._tokens = itertools.count(1)
        self.users: dict[str, dict[str, Any]] = {}
        self.tokens: dict[str, int] = {}
        self.songs: dict[int, dict[str, Any]] = {}
        self.audio: dict[int, bytes] = {}
        self.favorites: set[int] = set()
        self.playlists: dict[int, dict[str, Any]] = {}
        self.requests: list[tuple[str, str, str | None]] = []
        self.favorite_fails = False
        self.reject_audio = False
        self.reject_favorite_check = False
        # When set, favorite toggles wait for it before answering.
        self.toggle_gate: asyncio.Event | None = None
        # When set, song metadata requests wait for it before answering.
        self.song_gate: asyncio.Event | None = None

    # ---- scripting helpers ----

    def add_user(self, username: str, password: str, email: str = "") -> dict[str, Any]:
        user = {
            "id": next(self._ids),
            "username": username,
            "email": email or f"{username}@example.com",
            "password": password,
        }
        self.users[username] = user
        return user

    def add_song(
        self, title: str, artist: str = "", duration: int = 200, audio: bytes = AUDIO_BYTES
    ) -> int:
        song_id = next(self._ids)
        self.songs[song_id] = {
            "ID": song_id,
            "CreatedAt": "2024-03-01T12:00:00Z",
            "Title": title,
            "Artist": artist,
            "Album": "",
            "Genre": "",
            "Duration": duration,
            "FilePath": f"uploads/{song_id}.mp3",
            "FileSize": len(audio),
        }
        self.audio[song_id] = audio
        return song_id

    def revoke_all(self) -> None:
        self.tokens.clear()

    def issue_token(self, user: dict[str, Any]) -> str:
        token = f"token-{next(self._tokens)}"
        self.tokens[token] = user["id"]
        return token

    def calls(self, method: str, path: str) -> list[tuple[str, str, str | None]]:
        return [r for r in self.requests if r[0] == method and r[1] == path]

    # ---- app ----

    def app(self) -> web.Application:
        app = web.Application(middlewares=[self._record, self._auth])
        app.router.add_post("/auth/login", self.login)
        app.router.add_post("/auth/register", self.register)
        app.router.add_get("/songs", self.list_songs)
        app.router.add_post("/songs", self.upload_song)
        app.router.add_get("/songs/{id}", self.get_song)
        app.router.add_get("/songs/{id}/play", self.play_song)
        app.router.add_post("/songs/{id}/favorite", self.toggle_favorite)
        app.router.add_get("/favorites/{id}", self.check_favorite)
        app.router.add_get("/playlists", self.list_playlists)
        app.router.add_post("/playlists", self.create_playlist)
        app.router.add_post("/playlists/add-song", self.add_to_playlist)
        app.router.add_get("/playlists/{id}/songs", self.playlist_songs)
        return app

    @web.middleware
    async def _record(self, request: web.Request, handler):
        self.requests.append(
            (request.method, request.path, request.headers.get("Authorization"))
        )
        return await handler(request)

    @web.middleware
    async def _auth(self, request: web.Request, handler):
        if request.path.startswith("/auth/"):
            return await handler(request)
        header = request.headers.get("Authorization", "")
        token = header.removeprefix("Bearer ")
        if not header.startswith("Bearer ") or token not in self.tokens:
            return web.json_response({"error": "Invalid or expired token"}, status=401)
        return await handler(request)

    def _user_payload(self, user: dict[str, Any]) -> dict[str, Any]:
        return {"id": user["id"], "username": user["username"], "email": user["email"]}

    def _song(self, request: web.Request) -> dict[str, Any]:
        song = self.songs.get(int(request.match_info["id"]))
        if song is None:
            raise web.HTTPNotFound(
                text='{"error": "Song not found"}', content_type="application/json"
            )
        return song

    async def login(self, request: web.Request) -> web.Response:
        body = await request.json()
        for user in self.users.values():
            if body.get("username") in (user["username"], user["email"]) and (
                body.get("password") == user["password"]
            ):
                return web.json_response(
                    {"token": self.issue_token(user), "user": self._user_payload(user)}
                )
        return web.json_response({"error": "Invalid credentials"}, status=401)

    async def register(self, request: web.Request) -> web.Response:
        body = await request.json()
        if body.get("username") in self.users:
            return web.json_response({"error": "Username already exists"}, status=400)
        user = self.add_user(body["username"], body["password"], body.get("email", ""))
        return web.json_response(
            {"token": self.issue_token(user), "user": self._user_payload(user)},
            status=201,
        )

    async def list_songs(self, request: web.Request) -> web.Response:
        return web.json_response(list(self.songs.values()))

    async def get_song(self, request: web.Request) -> web.Response:
        if self.song_gate is not None:
            await self.song_gate.wait()
        return web.json_response(self._song(request))

    async def play_song(self, request: web.Request) -> web.Response:
        song = self._song(request)
        if self.reject_audio:
            return web.json_response({"error": "Invalid or expired token"}, status=401)
        return web.Response(body=self.audio[song["ID"]], content_type="audio/mpeg")

    async def upload_song(self, request: web.Request) -> web.Response:
        form = await request.post()
        upload = form["file"]
        audio = upload.file.read()
        song_id = self.add_song(
            form["title"], form.get("artist", ""), int(form.get("duration") or 0), audio
        )
        self.songs[song_id]["Album"] = form.get("album", "")
        self.songs[song_id]["Genre"] = form.get("genre", "")
        return web.json_response(
            {"message": "Song uploaded successfully", "song": self.songs[song_id]},
            status=201,
        )

    async def check_favorite(self, request: web.Request) -> web.Response:
        if self.reject_favorite_check:
            return web.json_response({"error": "Invalid or expired token"}, status=401)
        if self.favorite_fails:
            return web.json_response({"error": "Database error"}, status=500)
        song = self._song(request)
        return web.json_response({"isFavorite": song["ID"] in self.favorites})

    async def toggle_favorite(self, request: web.Request) -> web.Response:
        if self.toggle_gate is not None:
            await self.toggle_gate.wait()
        if self.favorite_fails:
            return web.json_response({"error": "Database error"}, status=500)
        song_id = self._song(request)["ID"]
        if song_id in self.favorites:
            self.favorites.discard(song_id)
            message = "Song removed from favourites"
        else:
            self.favorites.add(song_id)
            message = "Song added to favourites"
        return web.json_response(
            {"message": message, "isFavourited": song_id in self.favorites}
        )

    async def list_playlists(self, request: web.Request) -> web.Response:
        return web.json_response(list(self.playlists.values()))

    async def create_playlist(self, request: web.Request) -> web.Response:
        body = await request.json()
        playlist_id = next(self._ids)
        self.playlists[playlist_id] = {
            "ID": playlist_id,
            "Name": body["name"],
            "Description": body.get("description", ""),
            "Songs": [],
        }
        return web.json_response(self.playlists[playlist_id], status=201)

    async def add_to_playlist(self, request: web.Request) -> web.Response:
        body = await request.json()
        playlist = self.playlists.get(body["playlist_id"])
        song = self.songs.get(body["song_id"])
        if playlist is None or song is None:
            return web.json_response({"error": "Playlist or song not found"}, status=404)
        playlist["Songs"].append(song)
        return web.json_response(
            {"message": "Song added to playlist successfully", "playlist": playlist}
        )

    async def playlist_songs(self, request: web.Request) -> web.Response:
        playlist = self.playlists.get(int(request.match_info["id"]))
        if playlist is None:
            return web.json_response({"error": "Playlist not found"}, status=404)
        return web.json_response(playlist["Songs"])


class FakeEngine:
    """
    Scripted engine implementing the PlaybackEngine protocol.

    Events are delivered on the next loop iteration, like a real backend
    reporting asynchronously.
    """

    def __init__(
        self, duration: float = 200.0, auto_ready: bool = True, fail_load: bool = False
    ) -> None:
        self.duration = duration
        self.auto_ready = auto_ready
        self.fail_load = fail_load
        self.listener: EngineListener | None = None
        self.calls: list[tuple[Any, ...]] = []
        self.loaded_path: Path | None = None
        self.volume: float | None = None

    def set_listener(self, listener: EngineListener | None) -> None:
        self.listener = listener

    def emit(self, event: EngineEvent) -> None:
        if self.listener is not None:
            self.listener(event)

    def _emit_soon(self, event: EngineEvent) -> None:
        asyncio.get_running_loop().call_soon(self.emit, event)

    async def load(self, path: str) -> None:
        self.calls.append(("load", path))
        if self.fail_load:
            raise PlaybackEngineError("Unsupported audio format.")
        self.loaded_path = Path(path)
        if self.auto_ready:
            self._emit_soon(EngineReady(self.duration))

    async def play(self) -> None:
        self.calls.append(("play",))
        self._emit_soon(EnginePlaying())

    async def pause(self) -> None:
        self.calls.append(("pause",))
        self._emit_soon(EnginePaused())

    async def seek(self, position: float) -> None:
        self.calls.append(("seek", position))
        self._emit_soon(EnginePosition(position))

    async def set_volume(self, volume: float) -> None:
        self.calls.append(("set_volume", volume))
        self.volume = volume

    async def unload(self) -> None:
        self.calls.append(("unload",))
        self.loaded_path = None

    async def close(self) -> None:
        self.calls.append(("close",))

    def finish(self) -> None:
        self.emit(EngineEnded())

    def fail(self, message: str = "Decoder error") -> None:
        self.emit(EngineError(message))

    def names(self) -> list[str]:
        return [c[0] for c in self.calls]


async def settle() -> None:
    """Lets events scheduled with call_soon run."""
    for _ in range(3):
        await asyncio.sleep(0)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture
async def server(backend: FakeBackend):
    server = TestServer(backend.app())
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def api_url(server: TestServer) -> str:
    return str(server.make_url("/")).rstrip("/")


@pytest.fixture
def config(api_url: str, tmp_path: Path) -> ClientConfig:
    return ClientConfig(api_url=api_url, config_path=str(tmp_path))


@pytest.fixture
def routes() -> list[Route]:
    return []


@pytest_asyncio.fixture
async def context(config: ClientConfig, routes: list[Route], tmp_path: Path):
    ctx = SessionContext(config, navigator=routes.append)
    ctx.fetcher.resource_dir = tmp_path / "buffers"
    yield ctx
    await ctx.close()


@pytest_asyncio.fixture
async def logged_in(context: SessionContext, backend: FakeBackend) -> SessionContext:
    backend.add_user("alice", "secret")
    await context.manager.login("alice", "secret")
    backend.requests.clear()
    return context


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()
