"""
Favorite flags with the server as the source of truth.
"""

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Optional

from musicbox_cli.exceptions import MusicboxCliError

if TYPE_CHECKING:
    from musicbox_cli.api.client import MusicboxAPIClient

log = logging.getLogger(__name__)


class FavoriteCoordinator:
    """
    Tracks favorite flags per track id.

    A flag is unknown until a check or a toggle succeeds. Unknown is shown as
    "not a favorite" but never stored as False.
    """

    def __init__(self, api_client: "MusicboxAPIClient"):
        self.api_client = api_client
        self.error: Optional[str] = None
        self._flags: dict[int, bool] = {}
        self._in_flight: set[int] = set()
        # Bumped on every successful toggle so an older check cannot overwrite it.
        self._versions: defaultdict[int, int] = defaultdict(int)

    def known(self, track_id: int) -> Optional[bool]:
        """The last server-confirmed flag, or None if it was never confirmed."""
        return self._flags.get(track_id)

    def is_favorite(self, track_id: int) -> bool:
        """Display value: unknown is rendered as not favorited."""
        return self._flags.get(track_id, False)

    def is_toggling(self, track_id: int) -> bool:
        return track_id in self._in_flight

    async def check(self, track_id: int) -> Optional[bool]:
        """
        Best-effort read of the favorite status.

        Failures keep whatever was known before (None if nothing was).
        """
        version = self._versions[track_id]
        try:
            flag = await self.api_client.check_favorite(track_id)
        except MusicboxCliError as e:
            log.debug(f"Favorite check for track {track_id} failed: {e}")
            return self._flags.get(track_id)

        if version != self._versions[track_id] or track_id in self._in_flight:
            log.debug(f"Discarding stale favorite check for track {track_id}.")
            return self._flags.get(track_id)

        self._flags[track_id] = flag
        return flag

    async def toggle(self, track_id: int) -> Optional[bool]:
        """
        Flips the favorite status on the server.

        Returns the server's new value, or None when the call was suppressed
        because a toggle for the same track is still in flight, or when it failed
        (the message is kept in ``error``).
        """
        if track_id in self._in_flight:
            log.debug(f"Toggle for track {track_id} already in flight; ignoring.")
            return None

        self._in_flight.add(track_id)
        try:
            flag = await self.api_client.toggle_favorite(track_id)
        except MusicboxCliError as e:
            self.error = f"Could not update favorites: {e}"
            log.debug(self.error)
            return None
        finally:
            self._in_flight.discard(track_id)

        self._flags[track_id] = flag
        self._versions[track_id] += 1
        self.error = None
        return flag
