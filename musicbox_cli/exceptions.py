"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class MusicboxCliError(Exception):
    """Base exception for all application-specific errors."""


class ValidationError(MusicboxCliError):
    """Raised for client-side input problems, before any request is sent."""


class AuthenticationError(MusicboxCliError):
    """Raised when login or registration is rejected by the backend."""


class AuthorizationError(MusicboxCliError):
    """
    Raised when a protected request is rejected or attempted without a credential.

    The credential the request was sent with is kept so the session manager can
    tell a stale rejection apart from one that concerns the current session.
    """

    def __init__(self, message: str, credential: str | None = None):
        super().__init__(message)
        self.credential = credential


class NotFoundError(MusicboxCliError):
    """Raised when the requested resource does not exist on the backend."""


class NetworkError(MusicboxCliError):
    """Raised on transport failures (connection errors, timeouts)."""


class APIError(MusicboxCliError):
    """Raised for any other non-successful backend response."""

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


class PlaybackEngineError(MusicboxCliError):
    """Raised when the playback engine cannot decode or open a resource."""


class SessionBusyError(MusicboxCliError):
    """Raised when a login or signup is attempted while another is in flight."""


class ConfigurationError(MusicboxCliError):
    """Raised for issues related to configuration loading or validation."""
