"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, Field, field_validator

DEFAULT_API_URL = "http://localhost:8080"
DEFAULT_VOLUME = 0.75


class ClientConfig(BaseModel):
    """A validated configuration model for the application."""

    # Backend
    api_url: str = DEFAULT_API_URL
    request_timeout: int = 60

    # Playback
    default_volume: float = DEFAULT_VOLUME
    chunk_size: int = 131072
    mpv_path: str = ""

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Ensures the backend URL is absolute and drops any trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"API URL must start with http:// or https://, got: {v}")
        return v.rstrip("/")

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if v < 1 or v > 600:
            raise ValueError("Request timeout must be between 1 and 600 seconds.")
        return v

    @field_validator("default_volume")
    @classmethod
    def validate_volume(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("Default volume must be between 0.0 and 1.0.")
        return v

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        """Keeps the download chunk size within sane bounds."""
        if v < 4096 or v > 4 * 1048576:
            raise ValueError("Chunk size must be between 4 KB and 4 MB.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
