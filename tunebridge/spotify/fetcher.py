"""
Spotify playlist importer for tunebridge.

Fetches a playlist and all of its items from Spotify and writes them into
the track store:

    1. Parse the playlist ID from a URL or URI
    2. Fetch playlist metadata and every item (paginated)
    3. Skip local files, podcast episodes and items without an ID
    4. Upsert each track with its ordered artists and its album
    5. Link the track to the playlist with a 1-based position

Tracks are keyed by Spotify ID, so a song that appears in several
playlists is stored (and later converted) once. If an already converted
track carries the same ISRC under another ID (a re-release, a regional
copy), its YouTube URL is reused instead of searching again.
"""

import re
from dataclasses import replace
from typing import Any

from tunebridge.core.database import Database
from tunebridge.core.logger import get_logger
from tunebridge.core.models import Album, Artist, Playlist, Track
from tunebridge.spotify.client import SpotifyClient

logger = get_logger(__name__)


PLAYLIST_ID_PATTERN = re.compile(r"playlist[/:]([\w\d]+)")


def extract_playlist_id(url: str) -> str:
    """
    Extract the playlist ID from a Spotify playlist URL or URI.

    Accepts:
        https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M?si=abc
        spotify:playlist:37i9dQZF1DXcBWIGoYBM5M

    Raises:
        ValueError: If no playlist ID can be found.
    """
    match = PLAYLIST_ID_PATTERN.search(url)
    if not match:
        raise ValueError(f"Invalid Spotify playlist URL: {url}")
    return match.group(1)


class PlaylistImporter:
    """
    Imports Spotify playlists into the track store.

    Attributes:
        client: Authenticated Spotify client.
        database: Track store receiving the catalog rows.
    """

    def __init__(self, client: SpotifyClient, database: Database) -> None:
        self.client = client
        self.database = database

    def import_playlist_by_url(self, url: str) -> tuple[str, int]:
        """
        Import a playlist given its URL or URI.

        Returns:
            (playlist_id, number of tracks linked to the playlist)

        Raises:
            ValueError: If the URL does not contain a playlist ID.
            SpotifyError: If Spotify cannot return the playlist.
            StoreError: If writing to the store fails.
        """
        playlist_id = extract_playlist_id(url)
        playlist = self.store_playlist(playlist_id)
        return playlist_id, playlist.track_count

    def store_playlist(self, playlist_id: str) -> Playlist:
        """
        Fetch a playlist with all its items and store it.

        Re-importing an already stored playlist updates its metadata and
        positions; existing YouTube URLs are kept.
        """
        logger.info(f"Fetching playlist: {playlist_id}")
        playlist_data = self.client.playlist(playlist_id)
        items = self.client.playlist_all_items(playlist_id)
        logger.info(f"Playlist: {playlist_data.get('name', 'Unknown Playlist')} ({len(items)} items)")

        self.database.upsert_playlist(Playlist.from_spotify_api(playlist_data))

        seen: set[str] = set()
        skipped = 0
        position = 0

        for item in items:
            track_data = self._playable_track(item)
            if track_data is None:
                skipped += 1
                continue

            if track_data["id"] in seen:
                logger.debug(f"Duplicate track {track_data['id']} in playlist, keeping first position")
                skipped += 1
                continue
            seen.add(track_data["id"])

            position += 1
            track = self._store_track(track_data)
            self.database.link_playlist_track(
                playlist_id, track.id, position, added_at=item.get("added_at")
            )

        if skipped:
            logger.info(f"Skipped {skipped} items (local files, episodes or duplicates)")
        logger.info(f"Imported {position} tracks")

        return Playlist.from_spotify_api(playlist_data, track_count=position)

    @staticmethod
    def _playable_track(item: dict[str, Any] | None) -> dict[str, Any] | None:
        """Return the track object of a playlist item, or None if it can't be stored."""
        if not item or item.get("is_local"):
            return None
        track_data = item.get("track")
        if not track_data or not track_data.get("id"):
            return None
        if track_data.get("type", "track") != "track" or track_data.get("is_local"):
            return None
        return track_data

    def _store_track(self, track_data: dict[str, Any]) -> Track:
        track = Track.from_spotify_api(track_data)

        if track.isrc:
            existing = self.database.find_track_by_isrc(track.isrc)
            if existing and existing.id != track.id and existing.is_converted:
                current = self.database.get_by_id(track.id)
                if current is None or not current.is_converted:
                    logger.debug(
                        f"Reusing conversion of {existing.id} for {track.id} (ISRC {track.isrc})"
                    )
                    track = replace(track, youtube_url=existing.youtube_url)

        self.database.upsert_track(track)

        for position, artist_data in enumerate(track_data.get("artists") or []):
            if not artist_data or not artist_data.get("id"):
                continue
            artist = Artist.from_spotify_api(artist_data)
            self.database.upsert_artist(artist)
            self.database.link_track_artist(track.id, artist.id, position)

        album_data = track_data.get("album")
        if album_data and album_data.get("id"):
            album = Album.from_spotify_api(album_data)
            self.database.upsert_album(album)
            self.database.link_track_album(track.id, album.id)
            for position, artist in enumerate(album.artists):
                self.database.upsert_artist(artist)
                self.database.link_album_artist(album.id, artist.id, position)

        return track
