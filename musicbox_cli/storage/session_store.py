"""
Durable storage for the authenticated session.

The credential and the identity are persisted under two named slots of a small
INI file and restored verbatim on start-up. Only the session manager writes to
the store; every other component reads from it.
"""

import configparser
import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from musicbox_cli.exceptions import ConfigurationError
from musicbox_cli.models.session import Identity, Session

log = logging.getLogger(__name__)


class SessionStore:
    """Holds the current Session in memory and mirrors it to disk."""

    SECTION = "session"
    TOKEN_SLOT = "token"
    USER_SLOT = "user"

    def __init__(self, session_file_path: Path):
        self.session_file_path = session_file_path
        self._session = Session.anonymous()

    @property
    def session(self) -> Session:
        return self._session

    @property
    def credential(self) -> str | None:
        return self._session.credential

    @property
    def identity(self) -> Identity | None:
        return self._session.identity

    @property
    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    def hydrate(self) -> Session:
        """
        Loads the persisted session synchronously.

        A store holding only one of the two slots, or an identity that cannot be
        parsed, is treated as logged out and wiped so the pair stays consistent.
        """
        if not self.session_file_path.is_file():
            self._session = Session.anonymous()
            return self._session

        parser = configparser.ConfigParser(interpolation=None)
        try:
            parser.read(self.session_file_path, encoding="utf-8")
        except configparser.Error as e:
            log.warning(f"[yellow]Discarding unreadable session file: {e}[/yellow]")
            self.clear()
            return self._session

        section = parser[self.SECTION] if parser.has_section(self.SECTION) else {}
        token = section.get(self.TOKEN_SLOT) or None
        raw_user = section.get(self.USER_SLOT) or None

        if token is None and raw_user is None:
            self._session = Session.anonymous()
            return self._session

        try:
            identity = Identity.model_validate(json.loads(raw_user or "null"))
            self._session = Session(credential=token, identity=identity)
        except (json.JSONDecodeError, ValidationError, ValueError) as e:
            log.warning(f"[yellow]Discarding incomplete stored session: {e}[/yellow]")
            self.clear()
            return self._session

        log.debug(f"Restored session for '{identity.username}'.")
        return self._session

    def save(self, session: Session) -> None:
        """
        Persists and activates a session.

        The file is written first and swapped in with a rename, so the in-memory
        session only changes once both slots are safely on disk.
        """
        if not session.is_authenticated:
            self.clear()
            return

        parser = configparser.ConfigParser(interpolation=None)
        parser[self.SECTION] = {
            self.TOKEN_SLOT: session.credential,
            self.USER_SLOT: session.identity.model_dump_json(),
        }

        tmp_path = self.session_file_path.with_suffix(".tmp")
        try:
            self.session_file_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.unlink(missing_ok=True)
            # Owner-only: the file holds the bearer token.
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with open(fd, "w", encoding="utf-8") as f:
                parser.write(f)
            os.replace(tmp_path, self.session_file_path)
        except OSError as e:
            raise ConfigurationError(f"Failed to save session: {e}") from e

        self._session = session

    def clear(self) -> None:
        """Forgets the session in memory and on disk. Safe to call repeatedly."""
        self._session = Session.anonymous()
        try:
            self.session_file_path.unlink(missing_ok=True)
        except OSError as e:
            log.error(f"Could not remove session file '{self.session_file_path}': {e}")
