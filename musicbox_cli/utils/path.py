"""
Utilities for building safe local file paths for downloaded tracks.
"""

from pathlib import Path

from pathvalidate import sanitize_filename

from musicbox_cli.models.track import Track


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def track_filename(track: Track, ext: str = "mp3") -> str:
    """
    Builds a filename such as 'Title - Artist.mp3' for a track.

    Falls back to the track id when the metadata sanitizes to nothing.
    """
    stem = sanitize_filename(track.display_name, platform="auto").strip()
    if not stem:
        stem = f"track-{track.id}"
    return f"{stem}.{ext.lstrip('.')}"


def unique_path(path: Path) -> Path:
    """Returns ``path`` or, if it exists, the first free 'name (n).ext' variant."""
    if not path.exists():
        return path
    n = 1
    while True:
        candidate = path.with_name(f"{path.stem} ({n}){path.suffix}")
        if not candidate.exists():
            return candidate
        n += 1
