"""Tests for the SQLite track store"""

import sqlite3

import pytest

from tunebridge.core.database import Database
from tunebridge.core.exceptions import StoreError
from tunebridge.core.models import Album, Artist, Playlist, Track


URL = "https://www.youtube.com/watch?v=abcdefghijk"


class TestDatabaseInit:
    """Test database creation"""

    def test_missing_parent_directory(self, temp_dir):
        """A database cannot be created in a missing directory"""
        with pytest.raises(StoreError):
            Database(temp_dir / "missing" / "database.db")

    def test_reopen_keeps_data(self, temp_dir):
        """Data survives closing and reopening the store"""
        path = temp_dir / "database.db"
        with Database(path) as db:
            db.upsert_track(Track(id="t1", name="Song"))

        with Database(path) as db:
            assert db.get_by_id("t1").name == "Song"

    def test_schema_version_mismatch(self, temp_dir):
        """A store written by another schema version is rejected"""
        path = temp_dir / "database.db"
        Database(path).close()

        conn = sqlite3.connect(str(path))
        conn.execute("UPDATE schema_version SET version = 99")
        conn.commit()
        conn.close()

        with pytest.raises(StoreError) as exc_info:
            Database(path)
        assert exc_info.value.details["actual"] == 99


class TestTrackStore:
    """Test the operations the converter relies on"""

    def test_get_unconverted_order_and_limit(self, database, add_track):
        """Unconverted tracks come back in insertion order"""
        add_track("z", "Last inserted first")
        add_track("a", "Second")
        add_track("m", "Done", youtube_url=URL)
        add_track("b", "Third")

        tracks = database.get_unconverted(limit=2)

        assert [t.id for t in tracks] == ["z", "a"]
        assert [t.id for t in database.get_unconverted(limit=10)] == ["z", "a", "b"]

    def test_empty_url_counts_as_unconverted(self, database, add_track):
        """An empty string is not a conversion"""
        add_track("t1", "Song", youtube_url="")
        assert [t.id for t in database.get_unconverted(limit=10)] == ["t1"]
        assert database.get_by_id("t1").is_converted is False

    def test_set_youtube_url(self, database, add_track):
        """Setting a URL removes the track from the unconverted set"""
        add_track("t1", "Song")

        database.set_youtube_url("t1", URL)

        assert database.get_by_id("t1").youtube_url == URL
        assert database.get_unconverted(limit=10) == []

    def test_set_youtube_url_unknown_track(self, database):
        """Updating an unknown id raises StoreError"""
        with pytest.raises(StoreError) as exc_info:
            database.set_youtube_url("nope", URL)
        assert exc_info.value.details["track_id"] == "nope"

    def test_get_by_id_missing(self, database):
        """Unknown ids return None"""
        assert database.get_by_id("nope") is None

    def test_artists_in_credit_order(self, database, add_track):
        """Artists are returned by credit position"""
        add_track("t1", "Song", ["Main", "Featured", "Remixer"])
        assert [a.name for a in database.get_artists("t1")] == ["Main", "Featured", "Remixer"]

    def test_conversion_counts(self, database, add_track):
        """Counts split the store into converted and pending"""
        add_track("t1", "One", youtube_url=URL)
        add_track("t2", "Two")
        add_track("t3", "Three")

        stats = database.get_conversion_counts()

        assert (stats.total_tracks, stats.converted_tracks, stats.pending_conversion) == (3, 1, 2)

    def test_upsert_preserves_conversion(self, database, add_track):
        """Re-importing a track keeps its YouTube URL"""
        add_track("t1", "Song", youtube_url=URL)

        database.upsert_track(Track(id="t1", name="Song (Remastered)", popularity=50))

        track = database.get_by_id("t1")
        assert track.name == "Song (Remastered)"
        assert track.popularity == 50
        assert track.youtube_url == URL


class TestCatalog:
    """Test catalog writes and lookups"""

    def test_find_track_by_isrc(self, database):
        """Tracks can be found by recording code"""
        database.upsert_track(Track(id="t1", name="Song", isrc="USRC17607839"))
        assert database.find_track_by_isrc("USRC17607839").id == "t1"
        assert database.find_track_by_isrc("UNKNOWN") is None

    def test_add_manual_track(self, database):
        """Manual tracks get prefixed ids and one artist"""
        track_id = database.add_manual_track("Song", "Singer")

        assert track_id.startswith("manual_")
        artists = database.get_artists(track_id)
        assert [a.name for a in artists] == ["Singer"]
        assert artists[0].id.startswith("manual_artist_")
        assert [t.id for t in database.get_unconverted(limit=10)] == [track_id]

    def test_manual_tracks_are_distinct(self, database):
        """Adding the same song twice creates two tracks"""
        first = database.add_manual_track("Song", "Singer")
        second = database.add_manual_track("Song", "Singer")
        assert first != second

    def test_album_links(self, database):
        """Albums and their artists can be linked to tracks"""
        database.upsert_track(Track(id="t1", name="Song"))
        database.upsert_artist(Artist(id="a1", name="Artist"))
        database.upsert_album(Album(id="al1", name="Album", total_tracks=10))
        database.link_track_album("t1", "al1")
        database.link_album_artist("al1", "a1", 0)

        with database._get_connection() as conn:
            row = conn.execute("SELECT album_id FROM track_albums WHERE track_id = 't1'").fetchone()
        assert row["album_id"] == "al1"

    def test_search_by_name_case_insensitive(self, database, add_track):
        """Name search matches substrings regardless of case"""
        add_track("t1", "Hello World")
        add_track("t2", "Goodbye")
        add_track("t3", "hello again")

        assert [t.id for t in database.search_tracks_by_name("HELLO")] == ["t3", "t1"]

    def test_search_escapes_wildcards(self, database, add_track):
        """Percent signs are matched literally"""
        add_track("t1", "100% Pure")
        add_track("t2", "1000 Pure")
        assert [t.id for t in database.search_tracks_by_name("100%")] == ["t1"]


class TestPlaylists:
    """Test playlist storage"""

    def _store_playlist(self, database, add_track, playlist_id="p1", name="Mix"):
        database.upsert_playlist(Playlist(id=playlist_id, name=name, owner_name="Owner"))
        add_track("t1", "First")
        add_track("t2", "Second")
        database.link_playlist_track(playlist_id, "t2", 2)
        database.link_playlist_track(playlist_id, "t1", 1, added_at="2024-03-01T12:00:00Z")

    def test_playlist_track_count(self, database, add_track):
        """track_count reflects linked tracks"""
        self._store_playlist(database, add_track)

        playlist = database.get_playlist("p1")

        assert playlist.name == "Mix"
        assert playlist.track_count == 2
        assert playlist.imported_at is not None

    def test_playlist_tracks_by_position(self, database, add_track):
        """Tracks come back ordered by playlist position"""
        self._store_playlist(database, add_track)

        tracks = database.get_playlist_tracks("p1")

        assert [(t.id, pos) for t, pos in tracks] == [("t1", 1), ("t2", 2)]

    def test_get_all_playlists_sorted_by_name(self, database):
        """Listing is alphabetical and paginated"""
        for playlist_id, name in (("p1", "beta"), ("p2", "Alpha"), ("p3", "gamma")):
            database.upsert_playlist(Playlist(id=playlist_id, name=name))

        assert [p.name for p in database.get_all_playlists()] == ["Alpha", "beta", "gamma"]
        assert [p.name for p in database.get_all_playlists(limit=1, offset=1)] == ["beta"]

    def test_missing_playlist(self, database):
        """Unknown playlists return None"""
        assert database.get_playlist("nope") is None

    def test_shared_track_stored_once(self, database, add_track):
        """A track in two playlists is a single store row"""
        add_track("t1", "Shared")
        for playlist_id in ("p1", "p2"):
            database.upsert_playlist(Playlist(id=playlist_id, name=playlist_id))
            database.link_playlist_track(playlist_id, "t1", 1)

        assert database.get_conversion_counts().total_tracks == 1
        assert database.get_playlist("p2").track_count == 1
