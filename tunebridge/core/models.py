"""
Data models for the records held in the track store.

This module defines immutable dataclasses for the catalog entities that
tunebridge imports from Spotify and converts to YouTube links. The track
store returns these models, and the converter and CLI pass them around.

Design Decisions:
    - All dataclasses are frozen (immutable); a conversion produces a new
      youtube_url in the store, never a mutated Track object
    - Parsing helpers (from_spotify_api) accept raw Spotify Web API dicts
    - from_database_row accepts sqlite3.Row or any mapping with column names

Usage:
    from tunebridge.core.models import Track, Artist

    track = Track.from_spotify_api(item["track"])
    artists = [Artist.from_spotify_api(a) for a in item["track"]["artists"]]
"""

import json
from dataclasses import dataclass, field
from typing import Any, Mapping


def _load_json(value: Any, default: Any) -> Any:
    """Decode a JSON column, tolerating NULL and legacy plain values."""
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return default


@dataclass(frozen=True)
class Artist:
    """
    An artist credited on a track or album.

    Attributes:
        id: Spotify artist ID, or "manual_artist_<uuid>" for manual entries.
        name: Display name, used to build search queries and score candidates.
        spotify_uri: "spotify:artist:<id>", empty for manual entries.
        external_urls: Spotify external URL mapping ({"spotify": "https://..."}).
    """

    id: str
    name: str
    spotify_uri: str = ""
    external_urls: dict[str, str] = field(default_factory=dict, compare=False)

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "Artist":
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            spotify_uri=data.get("uri") or "",
            external_urls=dict(data.get("external_urls") or {}),
        )

    @classmethod
    def from_database_row(cls, row: Mapping[str, Any]) -> "Artist":
        return cls(
            id=row["id"],
            name=row["name"] or "",
            spotify_uri=row["spotify_uri"] or "",
            external_urls=_load_json(row["external_urls"], {}),
        )


@dataclass(frozen=True)
class Album:
    """
    An album a track belongs to.

    Attributes:
        id: Spotify album ID.
        name: Album title.
        album_type: "album", "single" or "compilation".
        release_date: Release date string as reported by Spotify
                      ("2023", "2023-04" or "2023-04-21").
        total_tracks: Number of tracks on the album.
        spotify_uri: "spotify:album:<id>".
        artists: Album artists, in credit order.
    """

    id: str
    name: str
    album_type: str = ""
    release_date: str = ""
    total_tracks: int = 0
    spotify_uri: str = ""
    artists: tuple[Artist, ...] = ()

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "Album":
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            album_type=data.get("album_type") or "",
            release_date=data.get("release_date") or "",
            total_tracks=data.get("total_tracks") or 0,
            spotify_uri=data.get("uri") or "",
            artists=tuple(
                Artist.from_spotify_api(a) for a in data.get("artists") or []
                if a and a.get("id")
            ),
        )


@dataclass(frozen=True)
class Track:
    """
    Immutable representation of a stored track.

    Every field except youtube_url is supplied by the importer (or the
    manual-entry command) and treated as read-only input to matching.
    youtube_url is the single field the converter writes.

    Attributes:
        id: Spotify track ID (22-character base62 string), or
            "manual_<uuid>" for tracks added by hand.
        name: Track title as it appears on Spotify.
        duration_ms: Duration in milliseconds (0 when unknown).
        popularity: Spotify popularity score 0-100 (0 when unknown).
        explicit: Whether Spotify flags the track as explicit.
        spotify_uri: "spotify:track:<id>", empty for manual tracks.
        preview_url: 30-second preview MP3 URL, if Spotify provides one.
        isrc: International Standard Recording Code, if known.
        youtube_url: The matched YouTube watch URL, or None if not converted.
        external_urls: Spotify external URL mapping.

    Example:
        track = database.get_by_id("4cOdK2wGLETKBW3PvgPWqT")
        if not track.is_converted:
            url = service.convert_one(track, database.get_artists(track.id))
    """

    id: str
    name: str
    duration_ms: int = 0
    popularity: int = 0
    explicit: bool = False
    spotify_uri: str = ""
    preview_url: str | None = None
    isrc: str | None = None
    youtube_url: str | None = None
    external_urls: dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def is_converted(self) -> bool:
        """True iff a non-empty YouTube URL is stored for this track."""
        return bool(self.youtube_url)

    @property
    def duration_seconds(self) -> int:
        return self.duration_ms // 1000

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "Track":
        """
        Create a Track from a Spotify Web API track object.

        Args:
            data: The "track" object of a playlist item (or a full track
                  object from /v1/tracks).

        Returns:
            Track with youtube_url unset.
        """
        external_ids = data.get("external_ids") or {}
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            duration_ms=data.get("duration_ms") or 0,
            popularity=data.get("popularity") or 0,
            explicit=bool(data.get("explicit", False)),
            spotify_uri=data.get("uri") or "",
            preview_url=data.get("preview_url"),
            isrc=external_ids.get("isrc"),
            external_urls=dict(data.get("external_urls") or {}),
        )

    @classmethod
    def from_database_row(cls, row: Mapping[str, Any]) -> "Track":
        return cls(
            id=row["id"],
            name=row["name"] or "",
            duration_ms=row["duration_ms"] or 0,
            popularity=row["popularity"] or 0,
            explicit=bool(row["explicit"]),
            spotify_uri=row["spotify_uri"] or "",
            preview_url=row["preview_url"],
            isrc=row["isrc"],
            youtube_url=row["youtube_url"],
            external_urls=_load_json(row["external_urls"], {}),
        )


@dataclass(frozen=True)
class Playlist:
    """
    A Spotify playlist imported into the store.

    Attributes:
        id: Spotify playlist ID.
        name: Playlist name.
        description: Playlist description (may contain HTML entities).
        spotify_uri: "spotify:playlist:<id>".
        owner_id: Spotify user ID of the owner.
        owner_name: Owner display name ("Unknown User" when hidden).
        public: Whether the playlist is public.
        collaborative: Whether the playlist is collaborative.
        snapshot_id: Spotify snapshot ID at import time.
        track_count: Number of tracks linked in the store.
        imported_at: ISO timestamp of the last import.
    """

    id: str
    name: str
    description: str | None = None
    spotify_uri: str = ""
    owner_id: str = ""
    owner_name: str = ""
    public: bool = False
    collaborative: bool = False
    snapshot_id: str = ""
    track_count: int = 0
    imported_at: str | None = None

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any], track_count: int = 0) -> "Playlist":
        owner = data.get("owner") or {}
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "Unknown Playlist",
            description=data.get("description") or None,
            spotify_uri=data.get("uri") or "",
            owner_id=owner.get("id") or "",
            owner_name=owner.get("display_name") or "Unknown User",
            public=bool(data.get("public")),
            collaborative=bool(data.get("collaborative")),
            snapshot_id=data.get("snapshot_id") or "",
            track_count=track_count,
        )

    @classmethod
    def from_database_row(cls, row: Mapping[str, Any]) -> "Playlist":
        return cls(
            id=row["id"],
            name=row["name"] or "",
            description=row["description"],
            spotify_uri=row["spotify_uri"] or "",
            owner_id=row["owner_id"] or "",
            owner_name=row["owner_name"] or "",
            public=bool(row["public"]),
            collaborative=bool(row["collaborative"]),
            snapshot_id=row["snapshot_id"] or "",
            track_count=row["track_count"] or 0,
            imported_at=row["imported_at"],
        )


@dataclass(frozen=True)
class ConversionStats:
    """
    Read-only snapshot of conversion progress across the whole store.

    Attributes:
        total_tracks: Number of tracks in the store.
        converted_tracks: Tracks with a non-empty youtube_url.
        pending_conversion: Tracks still waiting for a match.
    """

    total_tracks: int
    converted_tracks: int
    pending_conversion: int

    @property
    def conversion_rate(self) -> float:
        """Converted share in percent (0.0 for an empty store)."""
        if self.total_tracks == 0:
            return 0.0
        return self.converted_tracks / self.total_tracks * 100.0
