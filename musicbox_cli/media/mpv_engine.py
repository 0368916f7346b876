"""
Playback engine backed by an mpv subprocess, controlled through its JSON IPC socket.

mpv is started idle and paused in audio-only mode. Property-change and
end-file notifications are translated into engine events.
"""

import asyncio
import json
import logging
import os
import shutil
import tempfile
from contextlib import suppress
from pathlib import Path
from typing import Any, Optional

from musicbox_cli.exceptions import PlaybackEngineError

from .engine import (
    EngineEnded,
    EngineError,
    EngineEvent,
    EngineListener,
    EnginePaused,
    EnginePlaying,
    EnginePosition,
    EngineReady,
)

log = logging.getLogger(__name__)

_OBSERVED_PROPERTIES = ("duration", "pause", "time-pos")


def find_mpv_binary(preferred_path: Optional[str] = None) -> Optional[str]:
    """Locates mpv: an explicit path first, then the system PATH."""
    if preferred_path:
        return preferred_path if os.path.isfile(preferred_path) else None
    return shutil.which("mpv")


class MpvEngine:
    """
    A minimal asyncio mpv backend.

    Commands are fire-and-forget JSON lines; a reader task dispatches the
    notifications mpv sends back.
    """

    def __init__(self, mpv_path: Optional[str] = None, connect_timeout: float = 5.0):
        self.mpv_path = mpv_path
        self.connect_timeout = connect_timeout

        self._listener: Optional[EngineListener] = None
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._socket_dir: Optional[str] = None

        self._loaded = False
        self._ready = False
        self._closing = False

    def set_listener(self, listener: Optional[EngineListener]) -> None:
        self._listener = listener

    def _emit(self, event: EngineEvent) -> None:
        if self._listener is not None:
            self._listener(event)

    # ---- lifecycle ----

    async def start(self) -> None:
        """Spawns mpv and connects to its IPC socket. No-op when already running."""
        if self._proc is not None and self._proc.returncode is None:
            return
        if os.name == "nt":
            raise PlaybackEngineError("The mpv engine needs Unix domain sockets.")

        binary = find_mpv_binary(self.mpv_path)
        if not binary:
            raise PlaybackEngineError("mpv binary not found (set mpv_path or install mpv).")

        self._socket_dir = tempfile.mkdtemp(prefix="musicbox-mpv-")
        socket_path = str(Path(self._socket_dir) / "ipc.sock")

        args = [
            binary,
            "--idle=yes",
            "--pause=yes",
            "--no-video",
            "--audio-display=no",
            "--keep-open=no",
            f"--input-ipc-server={socket_path}",
            "--terminal=no",
            "--msg-level=all=warn",
        ]
        try:
            self._proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise PlaybackEngineError(f"Could not start mpv: {e}") from e

        await self._connect(socket_path)
        self._closing = False
        self._reader_task = asyncio.create_task(self._read_loop())

        for request_id, name in enumerate(_OBSERVED_PROPERTIES, start=1):
            await self._send("observe_property", request_id, name)
        log.debug(f"mpv started (pid {self._proc.pid}).")

    async def _connect(self, socket_path: str) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.connect_timeout
        last_error: Optional[Exception] = None
        while loop.time() < deadline:
            if self._proc.returncode is not None:
                raise PlaybackEngineError(
                    f"mpv exited during start-up (code {self._proc.returncode})."
                )
            try:
                self._reader, self._writer = await asyncio.open_unix_connection(
                    socket_path
                )
                return
            except OSError as e:
                last_error = e
                await asyncio.sleep(0.05)
        await self.close()
        raise PlaybackEngineError(f"Could not connect to mpv IPC socket: {last_error}")

    async def close(self) -> None:
        """Terminates mpv and removes the IPC socket."""
        self._closing = True
        if self._writer is not None:
            with suppress(OSError, PlaybackEngineError):
                await self._send("quit")
            self._writer.close()
            with suppress(OSError):
                await self._writer.wait_closed()
            self._writer = None

        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._reader_task
        self._reader_task = None

        if self._proc is not None and self._proc.returncode is None:
            self._proc.terminate()
            try:
                await asyncio.wait_for(self._proc.wait(), timeout=2.0)
            except asyncio.TimeoutError:
                self._proc.kill()
                await self._proc.wait()
        self._proc = None

        if self._socket_dir is not None:
            shutil.rmtree(self._socket_dir, ignore_errors=True)
            self._socket_dir = None

    # ---- protocol helpers ----

    async def _send(self, *command: Any) -> None:
        if self._writer is None:
            raise PlaybackEngineError("mpv is not running.")
        line = (json.dumps({"command": list(command)}) + "\n").encode("utf-8")
        try:
            self._writer.write(line)
            await self._writer.drain()
        except (ConnectionError, OSError) as e:
            raise PlaybackEngineError(f"Lost connection to mpv: {e}") from e

    async def _read_loop(self) -> None:
        while True:
            try:
                line = await self._reader.readline()
            except (ConnectionError, OSError) as e:
                log.debug(f"mpv IPC read failed: {e}")
                line = b""
            if not line:
                if not self._closing:
                    self._emit(EngineError("The audio engine stopped unexpectedly."))
                return
            try:
                message = json.loads(line.decode("utf-8", errors="replace"))
            except json.JSONDecodeError:
                log.debug(f"Ignoring malformed mpv message: {line!r}")
                continue
            if isinstance(message, dict):
                self._handle_message(message)

    def _handle_message(self, message: dict[str, Any]) -> None:
        event = message.get("event")
        if event == "property-change":
            self._on_property(message.get("name"), message.get("data"))
        elif event == "end-file" and self._loaded:
            reason = message.get("reason")
            if reason == "eof":
                self._loaded = False
                self._emit(EngineEnded())
            elif reason == "error":
                self._loaded = False
                detail = message.get("file_error") or "unknown error"
                self._emit(EngineError(f"Failed to play this song ({detail})."))

    def _on_property(self, name: Any, data: Any) -> None:
        if not self._loaded:
            return
        if name == "duration" and data is not None and not self._ready:
            self._ready = True
            self._emit(EngineReady(float(data)))
        elif not self._ready:
            return
        elif name == "pause" and data is not None:
            self._emit(EnginePaused() if data else EnginePlaying())
        elif name == "time-pos" and data is not None:
            self._emit(EnginePosition(float(data)))

    # ---- engine contract ----

    async def load(self, path: str) -> None:
        await self.start()
        self._ready = False
        self._loaded = True
        await self._send("set_property", "pause", True)
        await self._send("loadfile", path, "replace")

    async def play(self) -> None:
        await self._send("set_property", "pause", False)

    async def pause(self) -> None:
        await self._send("set_property", "pause", True)

    async def seek(self, position: float) -> None:
        await self._send("seek", max(0.0, float(position)), "absolute")

    async def set_volume(self, volume: float) -> None:
        v = min(1.0, max(0.0, float(volume)))
        # mpv volume is 0..100
        await self._send("set_property", "volume", v * 100.0)

    async def unload(self) -> None:
        self._loaded = False
        self._ready = False
        if self._writer is not None:
            await self._send("stop")
