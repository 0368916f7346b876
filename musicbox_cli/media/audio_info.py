"""
Reads basic stream information from MP3 files.
"""

import logging
from pathlib import Path
from typing import Optional

from mutagen.mp3 import MP3, HeaderNotFoundError

log = logging.getLogger(__name__)


def probe_duration(filepath: Path) -> Optional[int]:
    """
    Returns the duration of an MP3 file in whole seconds.

    Args:
        filepath: Path to the MP3 file.

    Returns:
        The rounded duration, or None if the file has no readable MP3 stream.
    """
    try:
        audio = MP3(filepath)
    except HeaderNotFoundError:
        log.warning(f"No MP3 header found in '{filepath}'.")
        return None
    except Exception as e:
        log.debug(f"Could not read stream info of '{filepath}': {e}")
        return None
    if audio.info and audio.info.length > 0:
        return round(audio.info.length)
    return None


def check_mp3(filepath: Path) -> bool:
    """Performs a basic integrity check: the file must decode to a positive duration."""
    return probe_duration(filepath) is not None
