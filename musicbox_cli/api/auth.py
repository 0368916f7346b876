"""
Handles authentication with the backend: credential login and registration.
"""

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from musicbox_cli.exceptions import AuthenticationError
from musicbox_cli.models.session import Identity, Session

if TYPE_CHECKING:
    from .client import MusicboxAPIClient

log = logging.getLogger(__name__)


class MusicboxAuthenticator:
    """
    Exchanges credentials for a Session.

    The authenticator never touches the session store; activating the returned
    session is the session manager's job.
    """

    def __init__(self, api_client: "MusicboxAPIClient"):
        """
        Initializes the authenticator.

        Args:
            api_client: A reference to the main MusicboxAPIClient instance.
        """
        self._api_client = api_client

    async def login(self, username: str, password: str) -> Session:
        """
        Authenticates with a username (or email) and password.

        Returns:
            A complete Session built from the backend's ``{token, user}`` reply.
        """
        log.info(f"Authenticating as: {username}")
        payload = await self._api_client.login(username, password)
        session = self._session_from_payload(payload)
        log.info(f"Successfully authenticated as: {session.identity.username}")
        return session

    async def register(self, username: str, email: str, password: str) -> Session:
        """Creates an account and returns the session the backend opens for it."""
        log.info(f"Registering account: {username}")
        payload = await self._api_client.register(username, email, password)
        return self._session_from_payload(payload)

    @staticmethod
    def _session_from_payload(payload: Any) -> Session:
        if not isinstance(payload, dict) or not payload.get("token"):
            raise AuthenticationError("The server did not return a session token.")
        try:
            identity = Identity.model_validate(payload.get("user"))
            return Session(credential=str(payload["token"]), identity=identity)
        except ValidationError as e:
            raise AuthenticationError(
                "The server returned an incomplete user profile."
            ) from e
