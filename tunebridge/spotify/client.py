"""
Spotify Web API client for tunebridge.

This module wraps the spotipy library so that every catalog call runs
with a fresh, valid user access token taken from the TokenManager. A new
spotipy.Spotify instance is built per call: spotipy instances are bound to
one token, and the manager may have refreshed it in the meantime.

Errors:
    spotipy.SpotifyException is converted to SpotifyError, with
    is_auth_error set for 401/403 responses. Token problems surface as
    AuthError/RequestError straight from the TokenManager.

Usage:
    client = SpotifyClient(token_manager)
    playlist_data = client.playlist("37i9dQZF1DXcBWIGoYBM5M")
    items = client.playlist_all_items("37i9dQZF1DXcBWIGoYBM5M")
"""

import time
from typing import Any

import spotipy

from tunebridge.core.exceptions import SpotifyError
from tunebridge.core.logger import get_logger
from tunebridge.spotify.auth import TokenManager

logger = get_logger(__name__)


# Spotify API page size limits
PLAYLIST_ITEMS_PAGE_SIZE = 100
USER_PLAYLISTS_PAGE_SIZE = 50

# Pause between consecutive page requests
PAGE_DELAY_SECONDS = 0.1


def _to_spotify_error(e: spotipy.SpotifyException, action: str, details: dict) -> SpotifyError:
    status = e.http_status
    if status == 404:
        message = f"Not found while trying to {action}"
    elif status == 429:
        message = f"Rate limited while trying to {action}"
    else:
        message = f"Failed to {action}: {e.msg or e}"

    return SpotifyError(
        message,
        details={**details, "http_status": status, "original_error": str(e)},
        is_auth_error=status in (401, 403)
    )


class SpotifyClient:
    """
    Spotify catalog client authenticated through a TokenManager.

    Attributes:
        token_manager: Source of valid access tokens.
    """

    def __init__(self, token_manager: TokenManager) -> None:
        self.token_manager = token_manager

    def _spotify(self) -> spotipy.Spotify:
        """Build a spotipy client bound to the current access token."""
        return spotipy.Spotify(auth=self.token_manager.ensure_valid())

    # =========================================================================
    # Playlist Operations
    # =========================================================================

    def playlist(self, playlist_id: str) -> dict[str, Any]:
        """
        Get playlist metadata from Spotify.

        Returns:
            Playlist object (name, description, owner, snapshot_id,
            tracks.total, ...). Use playlist_all_items() for the contents.

        Raises:
            SpotifyError: If the playlist is missing, private or unreachable.
        """
        spotify = self._spotify()
        try:
            result = spotify.playlist(
                playlist_id,
                fields="id,name,description,uri,owner,public,collaborative,snapshot_id,tracks.total"
            )
        except spotipy.SpotifyException as e:
            raise _to_spotify_error(e, "fetch playlist", {"playlist_id": playlist_id}) from e

        if result is None:
            raise SpotifyError(
                f"Playlist not found: {playlist_id}",
                details={"playlist_id": playlist_id}
            )
        return result

    def playlist_items(
        self,
        playlist_id: str,
        limit: int = PLAYLIST_ITEMS_PAGE_SIZE,
        offset: int = 0
    ) -> dict[str, Any]:
        """
        Get one page of playlist items.

        Returns:
            Paging object with 'items', 'total' and 'next'.
        """
        spotify = self._spotify()
        try:
            result = spotify.playlist_items(
                playlist_id,
                limit=min(limit, PLAYLIST_ITEMS_PAGE_SIZE),
                offset=offset,
                additional_types=["track"]
            )
        except spotipy.SpotifyException as e:
            raise _to_spotify_error(
                e, "fetch playlist items", {"playlist_id": playlist_id, "offset": offset}
            ) from e

        if result is None:
            raise SpotifyError(
                f"Failed to fetch playlist items: {playlist_id}",
                details={"playlist_id": playlist_id, "offset": offset}
            )
        return result

    def playlist_all_items(self, playlist_id: str) -> list[dict[str, Any]]:
        """
        Get ALL items of a playlist, following pagination.

        Pauses briefly between pages to stay clear of rate limits.
        """
        all_items: list[dict[str, Any]] = []
        offset = 0

        while True:
            response = self.playlist_items(playlist_id, offset=offset)
            all_items.extend(response.get("items") or [])

            if response.get("next") is None:
                break
            offset += PLAYLIST_ITEMS_PAGE_SIZE
            time.sleep(PAGE_DELAY_SECONDS)

        logger.debug(f"Fetched {len(all_items)} items from playlist {playlist_id}")
        return all_items

    # =========================================================================
    # User Operations
    # =========================================================================

    def current_user(self) -> dict[str, Any]:
        spotify = self._spotify()
        try:
            result = spotify.current_user()
        except spotipy.SpotifyException as e:
            raise _to_spotify_error(e, "fetch current user", {}) from e
        if result is None:
            raise SpotifyError("Failed to fetch current user profile")
        return result

    def current_user_playlists(
        self,
        limit: int = USER_PLAYLISTS_PAGE_SIZE,
        offset: int = 0
    ) -> dict[str, Any]:
        """
        Get one page of the authorized user's playlists.

        Returns:
            Paging object with 'items' (simplified playlists) and 'total'.
        """
        spotify = self._spotify()
        try:
            result = spotify.current_user_playlists(
                limit=min(limit, USER_PLAYLISTS_PAGE_SIZE),
                offset=offset
            )
        except spotipy.SpotifyException as e:
            raise _to_spotify_error(
                e, "fetch user playlists", {"limit": limit, "offset": offset}
            ) from e
        if result is None:
            raise SpotifyError(
                "Failed to fetch user playlists",
                details={"limit": limit, "offset": offset}
            )
        return result
