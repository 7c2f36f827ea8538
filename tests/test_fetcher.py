"""Tests for Spotify playlist import"""

import copy
from unittest.mock import Mock, patch

import pytest
import spotipy

from tunebridge.core.exceptions import SpotifyError
from tunebridge.spotify.client import SpotifyClient
from tunebridge.spotify.fetcher import PlaylistImporter, extract_playlist_id


def make_item(base, track_id, name, isrc=None):
    item = copy.deepcopy(base)
    item["track"]["id"] = track_id
    item["track"]["name"] = name
    item["track"]["uri"] = f"spotify:track:{track_id}"
    item["track"]["external_ids"] = {"isrc": isrc} if isrc else {}
    return item


@pytest.fixture
def mock_client(sample_playlist_data):
    client = Mock(spec=SpotifyClient)
    client.playlist.return_value = sample_playlist_data
    return client


class TestExtractPlaylistId:
    """Test playlist URL parsing"""

    def test_url_with_query_string(self):
        url = "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M?si=abc123"
        assert extract_playlist_id(url) == "37i9dQZF1DXcBWIGoYBM5M"

    def test_uri(self):
        assert extract_playlist_id("spotify:playlist:37i9dQZF1DXcBWIGoYBM5M") == "37i9dQZF1DXcBWIGoYBM5M"

    def test_invalid_url(self):
        """URLs without a playlist id are rejected"""
        with pytest.raises(ValueError, match="Invalid Spotify playlist URL"):
            extract_playlist_id("https://open.spotify.com/track/4cOdK2wGLETKBW3PvgPWqT")


class TestPlaylistImporter:
    """Test storing playlists"""

    def test_stores_track_with_artists_and_album(self, database, mock_client, sample_track_data):
        """Tracks are stored with ordered artists and linked to the playlist"""
        mock_client.playlist_all_items.return_value = [sample_track_data]

        playlist = PlaylistImporter(mock_client, database).store_playlist("37i9dQZF1DXcBWIGoYBM5M")

        assert playlist.track_count == 1
        assert playlist.owner_name == "Test Owner"

        track = database.get_by_id("4cOdK2wGLETKBW3PvgPWqT")
        assert track.name == "Test Song"
        assert track.isrc == "USRC17607839"
        assert track.duration_ms == 210000
        assert track.youtube_url is None
        assert [a.id for a in database.get_artists(track.id)] == ["artist_123", "artist_456"]

        tracks = database.get_playlist_tracks("37i9dQZF1DXcBWIGoYBM5M")
        assert [(t.id, pos) for t, pos in tracks] == [("4cOdK2wGLETKBW3PvgPWqT", 1)]

    def test_skips_local_files_and_episodes(self, database, mock_client, sample_track_data):
        """Only real Spotify tracks are stored; positions stay contiguous"""
        local = make_item(sample_track_data, "local_1", "Local")
        local["is_local"] = True
        episode = make_item(sample_track_data, "episode_1", "Podcast")
        episode["track"]["type"] = "episode"
        removed = {"added_at": None, "is_local": False, "track": None}

        mock_client.playlist_all_items.return_value = [
            make_item(sample_track_data, "track_a", "A"),
            local,
            episode,
            removed,
            make_item(sample_track_data, "track_b", "B"),
        ]

        playlist = PlaylistImporter(mock_client, database).store_playlist("37i9dQZF1DXcBWIGoYBM5M")

        assert playlist.track_count == 2
        tracks = database.get_playlist_tracks("37i9dQZF1DXcBWIGoYBM5M")
        assert [(t.id, pos) for t, pos in tracks] == [("track_a", 1), ("track_b", 2)]
        assert database.get_by_id("local_1") is None
        assert database.get_by_id("episode_1") is None

    def test_duplicate_keeps_first_position(self, database, mock_client, sample_track_data):
        """A track listed twice is linked once, at its first position"""
        mock_client.playlist_all_items.return_value = [
            make_item(sample_track_data, "track_a", "A"),
            make_item(sample_track_data, "track_b", "B"),
            make_item(sample_track_data, "track_a", "A"),
        ]

        playlist = PlaylistImporter(mock_client, database).store_playlist("37i9dQZF1DXcBWIGoYBM5M")

        assert playlist.track_count == 2
        tracks = database.get_playlist_tracks("37i9dQZF1DXcBWIGoYBM5M")
        assert [(t.id, pos) for t, pos in tracks] == [("track_a", 1), ("track_b", 2)]

    def test_reimport_keeps_conversion(self, database, mock_client, sample_track_data):
        """Importing again does not discard a stored YouTube URL"""
        mock_client.playlist_all_items.return_value = [sample_track_data]
        importer = PlaylistImporter(mock_client, database)
        importer.store_playlist("37i9dQZF1DXcBWIGoYBM5M")
        database.set_youtube_url("4cOdK2wGLETKBW3PvgPWqT", "https://www.youtube.com/watch?v=abcdefghijk")

        importer.store_playlist("37i9dQZF1DXcBWIGoYBM5M")

        track = database.get_by_id("4cOdK2wGLETKBW3PvgPWqT")
        assert track.youtube_url == "https://www.youtube.com/watch?v=abcdefghijk"

    def test_reuses_conversion_for_same_isrc(self, database, mock_client, sample_track_data):
        """A new track id with a converted ISRC inherits the URL"""
        mock_client.playlist_all_items.return_value = [
            make_item(sample_track_data, "original", "Song", isrc="GBAYE0000001")
        ]
        importer = PlaylistImporter(mock_client, database)
        importer.store_playlist("37i9dQZF1DXcBWIGoYBM5M")
        database.set_youtube_url("original", "https://www.youtube.com/watch?v=abcdefghijk")

        mock_client.playlist_all_items.return_value = [
            make_item(sample_track_data, "rerelease", "Song", isrc="GBAYE0000001")
        ]
        importer.store_playlist("37i9dQZF1DXcBWIGoYBM5M")

        assert database.get_by_id("rerelease").youtube_url == "https://www.youtube.com/watch?v=abcdefghijk"

    def test_import_by_url(self, database, mock_client, sample_track_data):
        """The URL entry point returns the id and track count"""
        mock_client.playlist_all_items.return_value = [sample_track_data]

        result = PlaylistImporter(mock_client, database).import_playlist_by_url(
            "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M?si=x"
        )

        assert result == ("37i9dQZF1DXcBWIGoYBM5M", 1)
        mock_client.playlist.assert_called_once_with("37i9dQZF1DXcBWIGoYBM5M")


class TestSpotifyClient:
    """Test the spotipy wrapper"""

    @pytest.fixture
    def token_manager(self):
        manager = Mock()
        manager.ensure_valid.return_value = "access-token"
        return manager

    @patch("tunebridge.spotify.client.time.sleep")
    @patch("tunebridge.spotify.client.spotipy.Spotify")
    def test_all_items_follows_pages(self, mock_spotify_cls, mock_sleep, token_manager):
        """Pagination continues until 'next' is empty"""
        mock_spotify = mock_spotify_cls.return_value
        mock_spotify.playlist_items.side_effect = [
            {"items": [{"n": 1}, {"n": 2}], "next": "page-2"},
            {"items": [{"n": 3}], "next": None},
        ]

        items = SpotifyClient(token_manager).playlist_all_items("p1")

        assert items == [{"n": 1}, {"n": 2}, {"n": 3}]
        offsets = [c.kwargs["offset"] for c in mock_spotify.playlist_items.call_args_list]
        assert offsets == [0, 100]
        mock_spotify_cls.assert_called_with(auth="access-token")

    @patch("tunebridge.spotify.client.spotipy.Spotify")
    def test_not_found_becomes_spotify_error(self, mock_spotify_cls, token_manager):
        """spotipy errors are wrapped"""
        mock_spotify_cls.return_value.playlist.side_effect = spotipy.SpotifyException(
            404, -1, "Not found"
        )

        with pytest.raises(SpotifyError) as exc_info:
            SpotifyClient(token_manager).playlist("missing")

        assert exc_info.value.details["http_status"] == 404
        assert exc_info.value.is_auth_error is False

    @patch("tunebridge.spotify.client.spotipy.Spotify")
    def test_unauthorized_is_auth_error(self, mock_spotify_cls, token_manager):
        """401 responses are flagged as authentication failures"""
        mock_spotify_cls.return_value.current_user.side_effect = spotipy.SpotifyException(
            401, -1, "The access token expired"
        )

        with pytest.raises(SpotifyError) as exc_info:
            SpotifyClient(token_manager).current_user()

        assert exc_info.value.is_auth_error is True
