"""
The session manager: the only component allowed to create or destroy a Session.
"""

import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Optional

from musicbox_cli.api.auth import MusicboxAuthenticator
from musicbox_cli.exceptions import MusicboxCliError, SessionBusyError, ValidationError
from musicbox_cli.models.session import Session
from musicbox_cli.storage.session_store import SessionStore

log = logging.getLogger(__name__)


class Route(Enum):
    """Surfaces the session manager can send the user to."""

    HOME = "home"
    LOGIN = "login"


Navigator = Callable[[Route], None]


class SessionManager:
    """
    Orchestrates login, signup and logout, and owns authorization-failure recovery.

    ``is_loading`` and ``error`` mirror what a login or signup form displays.
    A second login or signup while one is in flight is refused, not queued.
    """

    def __init__(
        self,
        store: SessionStore,
        authenticator: MusicboxAuthenticator,
        navigator: Optional[Navigator] = None,
    ):
        self._store = store
        self._authenticator = authenticator
        self._navigator = navigator
        self.is_loading = False
        self.error: Optional[str] = None

    @property
    def session(self) -> Session:
        return self._store.session

    def _navigate(self, route: Route) -> None:
        log.debug(f"Navigating to {route.value}.")
        if self._navigator is not None:
            self._navigator(route)

    async def login(self, username_or_email: str, password: str) -> Session:
        """
        Logs in and activates the resulting session.

        On failure the error is recorded for display and re-raised; any session
        that existed before the attempt is left untouched.
        """
        self._require(username_or_email, password)
        return await self._authenticate(
            "login", lambda: self._authenticator.login(username_or_email, password)
        )

    async def signup(
        self, username: str, email: str, password: str, confirm_password: str
    ) -> Session:
        """Registers an account; the password confirmation is checked before any request."""
        self._require(username, password, email)
        if password != confirm_password:
            self.error = "Passwords don't match"
            raise ValidationError(self.error)
        return await self._authenticate(
            "registration",
            lambda: self._authenticator.register(username, email, password),
        )

    def _require(self, *fields: str) -> None:
        if self.is_loading:
            raise SessionBusyError("Another sign-in is already in progress.")
        if any(not (value and value.strip()) for value in fields):
            self.error = "Please fill in all required fields."
            raise ValidationError(self.error)

    async def _authenticate(
        self, action: str, call: Callable[[], Awaitable[Session]]
    ) -> Session:
        self.is_loading = True
        self.error = None
        try:
            session = await call()
            self._store.save(session)
        except MusicboxCliError as e:
            self.error = str(e) or f"Something went wrong during {action}"
            log.debug(f"{action.capitalize()} failed: {e}")
            raise
        finally:
            self.is_loading = False

        self._navigate(Route.HOME)
        return session

    def logout(self) -> None:
        """Clears the session locally and returns to the login surface. Never fails."""
        was_authenticated = self._store.is_authenticated
        self._store.clear()
        self.error = None
        if was_authenticated:
            log.info("Logged out.")
        self._navigate(Route.LOGIN)

    def handle_unauthorized(self, credential: Optional[str]) -> bool:
        """
        Shared remediation for a protected request that was refused.

        Only a rejection of the credential that is still active invalidates the
        session; a request that was sent before a later login cannot log the
        user out again. Returns True when a session was invalidated.
        """
        current = self._store.credential
        if credential != current:
            log.debug("Ignoring rejection of a credential that is no longer active.")
            return False

        invalidated = current is not None
        self._store.clear()
        if invalidated:
            self.error = "Your session has expired. Please log in again."
            log.warning("[yellow]Session rejected by the server; logged out.[/yellow]")
        else:
            self.error = "You need to log in first."
        self._navigate(Route.LOGIN)
        return invalidated
