"""
Session and identity models.

A session is either fully authenticated (credential and identity) or anonymous
(neither). Partially authenticated sessions cannot be constructed.
"""

from pydantic import BaseModel, ConfigDict, model_validator


class Identity(BaseModel):
    """The authenticated user as returned by the backend."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str = ""


class Session(BaseModel):
    """Credential and identity of the current user."""

    model_config = ConfigDict(frozen=True)

    credential: str | None = None
    identity: Identity | None = None

    @model_validator(mode="after")
    def validate_complete(self) -> "Session":
        if (self.credential is None) != (self.identity is None):
            raise ValueError("Credential and identity must be set together.")
        if self.credential is not None and not self.credential.strip():
            raise ValueError("Credential cannot be blank.")
        return self

    @classmethod
    def anonymous(cls) -> "Session":
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return self.credential is not None
