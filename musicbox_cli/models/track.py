"""
Library data models.

The backend serializes Go structs, so payloads may use either the
``gorm.Model`` style keys (``ID``, ``Title``, ``CreatedAt``) or lower case JSON
tags (``id``, ``title``, ``file_path``). Both are accepted.
"""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Track(BaseModel):
    """A single song in the library."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int = Field(validation_alias=AliasChoices("ID", "id"))
    title: str = Field("", validation_alias=AliasChoices("Title", "title"))
    artist: str = Field("", validation_alias=AliasChoices("Artist", "artist"))
    album: str = Field("", validation_alias=AliasChoices("Album", "album"))
    genre: str = Field("", validation_alias=AliasChoices("Genre", "genre"))
    duration_seconds: int = Field(
        0, validation_alias=AliasChoices("Duration", "duration", "duration_seconds")
    )
    storage_locator: str = Field(
        "", validation_alias=AliasChoices("FilePath", "file_path", "storage_locator")
    )
    file_size: int | None = Field(
        None, validation_alias=AliasChoices("FileSize", "file_size")
    )
    created_at: datetime | None = Field(
        None, validation_alias=AliasChoices("CreatedAt", "created_at")
    )

    @property
    def display_name(self) -> str:
        if self.artist:
            return f"{self.title} - {self.artist}"
        return self.title or f"Track {self.id}"


class Playlist(BaseModel):
    """A user playlist and, when preloaded, its songs."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int = Field(validation_alias=AliasChoices("ID", "id"))
    name: str = Field("", validation_alias=AliasChoices("Name", "name"))
    description: str = Field(
        "", validation_alias=AliasChoices("Description", "description")
    )
    user_id: int | None = Field(
        None, validation_alias=AliasChoices("UserID", "user_id")
    )
    songs: list[Track] = Field(
        default_factory=list, validation_alias=AliasChoices("Songs", "songs")
    )
