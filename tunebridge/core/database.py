"""
Thread-safe SQLite track store for tunebridge.

Every unique Spotify track is stored once in `tracks` and linked to
playlists, artists and albums through junction tables, so the same song in
N playlists is converted to a YouTube URL exactly once.

Schema:
    playlists:        Playlist metadata (owner, snapshot, import time)
    tracks:           One row per track id (metadata + youtube_url)
    artists:          One row per artist id
    albums:           One row per album id
    track_artists:    (track_id, artist_id, position) - credit order
    track_albums:     (track_id, album_id)
    album_artists:    (album_id, artist_id, position)
    playlist_tracks:  (playlist_id, track_id, position, added_at)

Usage:
    db = Database(data_dir / "database.db")

    # Import
    db.upsert_track(track)
    db.link_playlist_track(playlist_id, track.id, position=1)

    # Conversion
    for track in db.get_unconverted(limit=50):
        db.set_youtube_url(track.id, youtube_url)
"""

import json
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

from tunebridge.core.exceptions import StoreError
from tunebridge.core.logger import get_logger
from tunebridge.core.models import Album, Artist, ConversionStats, Playlist, Track

logger = get_logger(__name__)


DATABASE_VERSION = 1
MANUAL_TRACK_PREFIX = "manual_"
MANUAL_ARTIST_PREFIX = "manual_artist_"


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS playlists (
    id TEXT PRIMARY KEY,
    name TEXT,
    description TEXT,
    spotify_uri TEXT,
    owner_id TEXT,
    owner_name TEXT,
    public INTEGER DEFAULT 0,
    collaborative INTEGER DEFAULT 0,
    snapshot_id TEXT,
    imported_at TEXT
);

CREATE TABLE IF NOT EXISTS tracks (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT UNIQUE NOT NULL,
    name TEXT,
    duration_ms INTEGER DEFAULT 0,
    popularity INTEGER DEFAULT 0,
    explicit INTEGER DEFAULT 0,
    spotify_uri TEXT,
    preview_url TEXT,
    external_urls TEXT,  -- JSON object
    isrc TEXT,
    youtube_url TEXT,
    converted_at TEXT,
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS artists (
    id TEXT PRIMARY KEY,
    name TEXT,
    spotify_uri TEXT,
    external_urls TEXT  -- JSON object
);

CREATE TABLE IF NOT EXISTS albums (
    id TEXT PRIMARY KEY,
    name TEXT,
    album_type TEXT,
    release_date TEXT,
    total_tracks INTEGER DEFAULT 0,
    spotify_uri TEXT
);

CREATE TABLE IF NOT EXISTS track_artists (
    track_id TEXT NOT NULL,
    artist_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    FOREIGN KEY (track_id) REFERENCES tracks(id) ON DELETE CASCADE,
    FOREIGN KEY (artist_id) REFERENCES artists(id) ON DELETE CASCADE,
    PRIMARY KEY (track_id, artist_id)
);

CREATE TABLE IF NOT EXISTS track_albums (
    track_id TEXT PRIMARY KEY,
    album_id TEXT NOT NULL,
    FOREIGN KEY (track_id) REFERENCES tracks(id) ON DELETE CASCADE,
    FOREIGN KEY (album_id) REFERENCES albums(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS album_artists (
    album_id TEXT NOT NULL,
    artist_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    FOREIGN KEY (album_id) REFERENCES albums(id) ON DELETE CASCADE,
    FOREIGN KEY (artist_id) REFERENCES artists(id) ON DELETE CASCADE,
    PRIMARY KEY (album_id, artist_id)
);

CREATE TABLE IF NOT EXISTS playlist_tracks (
    playlist_id TEXT NOT NULL,
    track_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    added_at TEXT,
    FOREIGN KEY (playlist_id) REFERENCES playlists(id) ON DELETE CASCADE,
    FOREIGN KEY (track_id) REFERENCES tracks(id) ON DELETE CASCADE,
    PRIMARY KEY (playlist_id, track_id)
);

CREATE INDEX IF NOT EXISTS idx_tracks_youtube_url ON tracks(youtube_url);
CREATE INDEX IF NOT EXISTS idx_tracks_isrc ON tracks(isrc);
CREATE INDEX IF NOT EXISTS idx_track_artists_track ON track_artists(track_id);
CREATE INDEX IF NOT EXISTS idx_playlist_tracks_playlist ON playlist_tracks(playlist_id);
"""

_UNCONVERTED_CLAUSE = "(youtube_url IS NULL OR youtube_url = '')"


class Database:
    """
    Thread-safe SQLite track store.

    Uses a single persistent connection with thread locking for safety.
    All public methods acquire self._lock before executing, which makes
    one instance safe to share between conversion worker threads.

    Every sqlite3.Error raised by a query surfaces as StoreError.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        if not db_path.parent.exists():
            raise StoreError(
                f"Parent directory does not exist: {db_path.parent}",
                details={"path": str(db_path.parent)}
            )

        try:
            self._init_database()
        except sqlite3.Error as e:
            raise StoreError(
                f"Failed to initialize database: {e}",
                details={"path": str(db_path)}
            ) from e

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Yield the persistent connection, translating sqlite3 errors.

        The connection is created once and reused for all operations.
        Exiting the context does not close it.
        """
        if self._conn is None:
            self._conn = self._connect()
        try:
            yield self._conn
        except sqlite3.Error as e:
            self._conn.rollback()
            raise StoreError(
                f"Database operation failed: {e}",
                details={"path": str(self.db_path), "original_error": str(e)}
            ) from e

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=30.0,
            check_same_thread=False  # We handle thread safety with _lock
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def _init_database(self) -> None:
        self._conn = self._connect()
        conn = self._conn
        conn.executescript(_SCHEMA_SQL)

        row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
        if row is None:
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (DATABASE_VERSION,))
        elif row[0] != DATABASE_VERSION:
            raise StoreError(
                f"Database version mismatch: expected {DATABASE_VERSION}, got {row[0]}",
                details={"expected": DATABASE_VERSION, "actual": row[0]}
            )
        conn.commit()

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    # =========================================================================
    # Track Store contract (used by the converter)
    # =========================================================================

    def get_unconverted(self, limit: int) -> list[Track]:
        """Tracks without a YouTube URL, oldest first, at most `limit`."""
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute(f"""
                    SELECT * FROM tracks
                    WHERE {_UNCONVERTED_CLAUSE}
                    ORDER BY seq
                    LIMIT ?
                """, (max(limit, 0),))
                return [Track.from_database_row(row) for row in cursor.fetchall()]

    def get_by_id(self, track_id: str) -> Track | None:
        with self._lock:
            with self._get_connection() as conn:
                row = conn.execute("SELECT * FROM tracks WHERE id = ?", (track_id,)).fetchone()
                return Track.from_database_row(row) if row else None

    def set_youtube_url(self, track_id: str, youtube_url: str) -> None:
        """
        Store the YouTube URL for a track.

        Raises:
            StoreError: If the track id is not in the store.
        """
        with self._lock:
            with self._get_connection() as conn:
                now = self._now_iso()
                cursor = conn.execute("""
                    UPDATE tracks
                    SET youtube_url = ?, converted_at = ?, updated_at = ?
                    WHERE id = ?
                """, (youtube_url, now, now, track_id))

                if cursor.rowcount == 0:
                    raise StoreError(
                        f"Track not found: {track_id}",
                        details={"track_id": track_id}
                    )
                conn.commit()

    def get_artists(self, track_id: str) -> list[Artist]:
        """Artists credited on a track, in credit order."""
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("""
                    SELECT a.* FROM artists a
                    JOIN track_artists ta ON ta.artist_id = a.id
                    WHERE ta.track_id = ?
                    ORDER BY ta.position
                """, (track_id,))
                return [Artist.from_database_row(row) for row in cursor.fetchall()]

    def get_conversion_counts(self) -> ConversionStats:
        with self._lock:
            with self._get_connection() as conn:
                total = conn.execute("SELECT COUNT(*) FROM tracks").fetchone()[0]
                pending = conn.execute(
                    f"SELECT COUNT(*) FROM tracks WHERE {_UNCONVERTED_CLAUSE}"
                ).fetchone()[0]
                return ConversionStats(
                    total_tracks=total,
                    converted_tracks=total - pending,
                    pending_conversion=pending,
                )

    # =========================================================================
    # Catalog writes (used by the importer)
    # =========================================================================

    def upsert_artist(self, artist: Artist) -> None:
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO artists (id, name, spotify_uri, external_urls)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        name = excluded.name,
                        spotify_uri = excluded.spotify_uri,
                        external_urls = excluded.external_urls
                """, (artist.id, artist.name, artist.spotify_uri,
                      json.dumps(artist.external_urls)))
                conn.commit()

    def upsert_album(self, album: Album) -> None:
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO albums (id, name, album_type, release_date, total_tracks, spotify_uri)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        name = excluded.name,
                        album_type = excluded.album_type,
                        release_date = excluded.release_date,
                        total_tracks = excluded.total_tracks,
                        spotify_uri = excluded.spotify_uri
                """, (album.id, album.name, album.album_type, album.release_date,
                      album.total_tracks, album.spotify_uri))
                conn.commit()

    def upsert_track(self, track: Track) -> None:
        """
        Create or update a track's metadata.

        An existing youtube_url is preserved: re-importing a playlist never
        discards a conversion.
        """
        with self._lock:
            with self._get_connection() as conn:
                now = self._now_iso()
                conn.execute("""
                    INSERT INTO tracks (
                        id, name, duration_ms, popularity, explicit, spotify_uri,
                        preview_url, external_urls, isrc, youtube_url, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        name = excluded.name,
                        duration_ms = excluded.duration_ms,
                        popularity = excluded.popularity,
                        explicit = excluded.explicit,
                        spotify_uri = excluded.spotify_uri,
                        preview_url = excluded.preview_url,
                        external_urls = excluded.external_urls,
                        isrc = excluded.isrc,
                        youtube_url = COALESCE(tracks.youtube_url, excluded.youtube_url),
                        updated_at = excluded.updated_at
                """, (
                    track.id, track.name, track.duration_ms, track.popularity,
                    1 if track.explicit else 0, track.spotify_uri, track.preview_url,
                    json.dumps(track.external_urls), track.isrc, track.youtube_url,
                    now, now
                ))
                conn.commit()

    def link_track_artist(self, track_id: str, artist_id: str, position: int) -> None:
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO track_artists (track_id, artist_id, position)
                    VALUES (?, ?, ?)
                    ON CONFLICT(track_id, artist_id) DO UPDATE SET position = excluded.position
                """, (track_id, artist_id, position))
                conn.commit()

    def link_track_album(self, track_id: str, album_id: str) -> None:
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO track_albums (track_id, album_id) VALUES (?, ?)
                    ON CONFLICT(track_id) DO UPDATE SET album_id = excluded.album_id
                """, (track_id, album_id))
                conn.commit()

    def link_album_artist(self, album_id: str, artist_id: str, position: int) -> None:
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO album_artists (album_id, artist_id, position)
                    VALUES (?, ?, ?)
                    ON CONFLICT(album_id, artist_id) DO UPDATE SET position = excluded.position
                """, (album_id, artist_id, position))
                conn.commit()

    def find_track_by_isrc(self, isrc: str) -> Track | None:
        with self._lock:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT * FROM tracks WHERE isrc = ? ORDER BY seq LIMIT 1", (isrc,)
                ).fetchone()
                return Track.from_database_row(row) if row else None

    def add_manual_track(self, track_name: str, artist_name: str) -> str:
        """
        Add a track that does not come from Spotify.

        Creates a "manual_<uuid>" track credited to a new
        "manual_artist_<uuid>" artist, so it shows up in get_unconverted()
        like any imported track.

        Returns:
            The new track id.
        """
        track_id = f"{MANUAL_TRACK_PREFIX}{uuid.uuid4()}"
        artist_id = f"{MANUAL_ARTIST_PREFIX}{uuid.uuid4()}"

        self.upsert_artist(Artist(id=artist_id, name=artist_name))
        self.upsert_track(Track(id=track_id, name=track_name))
        self.link_track_artist(track_id, artist_id, position=0)

        logger.debug(f"Added manual track {track_name} by {artist_name} as {track_id}")
        return track_id

    # =========================================================================
    # Playlist Operations
    # =========================================================================

    def upsert_playlist(self, playlist: Playlist) -> None:
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO playlists (
                        id, name, description, spotify_uri, owner_id, owner_name,
                        public, collaborative, snapshot_id, imported_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        name = excluded.name,
                        description = excluded.description,
                        spotify_uri = excluded.spotify_uri,
                        owner_id = excluded.owner_id,
                        owner_name = excluded.owner_name,
                        public = excluded.public,
                        collaborative = excluded.collaborative,
                        snapshot_id = excluded.snapshot_id,
                        imported_at = excluded.imported_at
                """, (
                    playlist.id, playlist.name, playlist.description, playlist.spotify_uri,
                    playlist.owner_id, playlist.owner_name, 1 if playlist.public else 0,
                    1 if playlist.collaborative else 0, playlist.snapshot_id, self._now_iso()
                ))
                conn.commit()

    def link_playlist_track(
        self,
        playlist_id: str,
        track_id: str,
        position: int,
        added_at: str | None = None
    ) -> None:
        """
        Create or update the link between a playlist and a track.

        Args:
            playlist_id: Spotify playlist ID (must already be stored).
            track_id: Track ID (must already be stored).
            position: Track position in playlist (1-indexed).
            added_at: ISO timestamp when the track was added to the playlist.
        """
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO playlist_tracks (playlist_id, track_id, position, added_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(playlist_id, track_id) DO UPDATE SET
                        position = excluded.position,
                        added_at = COALESCE(excluded.added_at, playlist_tracks.added_at)
                """, (playlist_id, track_id, position, added_at))
                conn.commit()

    def get_playlist(self, playlist_id: str) -> Playlist | None:
        with self._lock:
            with self._get_connection() as conn:
                row = conn.execute("""
                    SELECT p.*, COUNT(pt.track_id) AS track_count
                    FROM playlists p
                    LEFT JOIN playlist_tracks pt ON pt.playlist_id = p.id
                    WHERE p.id = ?
                    GROUP BY p.id
                """, (playlist_id,)).fetchone()
                return Playlist.from_database_row(row) if row else None

    def get_all_playlists(self, limit: int = 50, offset: int = 0) -> list[Playlist]:
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("""
                    SELECT p.*, COUNT(pt.track_id) AS track_count
                    FROM playlists p
                    LEFT JOIN playlist_tracks pt ON pt.playlist_id = p.id
                    GROUP BY p.id
                    ORDER BY p.name COLLATE NOCASE, p.id
                    LIMIT ? OFFSET ?
                """, (limit, offset))
                return [Playlist.from_database_row(row) for row in cursor.fetchall()]

    def get_playlist_tracks(self, playlist_id: str) -> list[tuple[Track, int]]:
        """All tracks in a playlist with their positions, ordered by position."""
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("""
                    SELECT t.*, pt.position AS playlist_position
                    FROM tracks t
                    JOIN playlist_tracks pt ON pt.track_id = t.id
                    WHERE pt.playlist_id = ?
                    ORDER BY pt.position
                """, (playlist_id,))
                return [
                    (Track.from_database_row(row), row["playlist_position"])
                    for row in cursor.fetchall()
                ]

    def search_tracks_by_name(self, name: str, limit: int = 20) -> list[Track]:
        """Case-insensitive substring search over track names."""
        pattern = "%" + name.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("""
                    SELECT * FROM tracks
                    WHERE name LIKE ? ESCAPE '\\'
                    ORDER BY name COLLATE NOCASE, seq
                    LIMIT ?
                """, (pattern, limit))
                return [Track.from_database_row(row) for row in cursor.fetchall()]
