"""Test configuration and fixtures"""

import tempfile
from pathlib import Path

import pytest

from tunebridge.core.database import Database
from tunebridge.core.models import Artist, Track


class FakeClock:
    """Manually advanced replacement for time.time"""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def database(temp_dir):
    """Empty track store in a temporary directory"""
    db = Database(temp_dir / "database.db")
    yield db
    db.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def add_track(database):
    """Store a track with its artists and return it"""

    def _add(track_id, name, artist_names=(), spotify_uri=None, youtube_url=None):
        track = Track(
            id=track_id,
            name=name,
            spotify_uri=f"spotify:track:{track_id}" if spotify_uri is None else spotify_uri,
            youtube_url=youtube_url,
        )
        database.upsert_track(track)
        for position, artist_name in enumerate(artist_names):
            artist_id = f"{track_id}_artist_{position}"
            database.upsert_artist(Artist(id=artist_id, name=artist_name))
            database.link_track_artist(track_id, artist_id, position)
        return track

    return _add


@pytest.fixture
def sample_track_data():
    """Sample playlist item for testing"""
    return {
        'added_at': '2024-03-01T12:00:00Z',
        'is_local': False,
        'track': {
            'id': '4cOdK2wGLETKBW3PvgPWqT',
            'name': 'Test Song',
            'type': 'track',
            'uri': 'spotify:track:4cOdK2wGLETKBW3PvgPWqT',
            'artists': [
                {'id': 'artist_123', 'name': 'Test Artist', 'uri': 'spotify:artist:artist_123'},
                {'id': 'artist_456', 'name': 'Guest Artist', 'uri': 'spotify:artist:artist_456'},
            ],
            'album': {
                'id': 'album_123',
                'name': 'Test Album',
                'album_type': 'album',
                'total_tracks': 12,
                'release_date': '2023-01-01',
                'uri': 'spotify:album:album_123',
                'artists': [{'id': 'artist_123', 'name': 'Test Artist'}]
            },
            'duration_ms': 210000,  # 3:30
            'explicit': False,
            'popularity': 75,
            'preview_url': None,
            'external_ids': {'isrc': 'USRC17607839'},
            'external_urls': {'spotify': 'https://open.spotify.com/track/4cOdK2wGLETKBW3PvgPWqT'},
        }
    }


@pytest.fixture
def sample_playlist_data():
    """Sample playlist metadata for testing"""
    return {
        'id': '37i9dQZF1DXcBWIGoYBM5M',
        'name': 'Test Playlist',
        'description': 'A playlist for tests',
        'uri': 'spotify:playlist:37i9dQZF1DXcBWIGoYBM5M',
        'owner': {'id': 'owner_1', 'display_name': 'Test Owner'},
        'public': True,
        'collaborative': False,
        'snapshot_id': 'snap_1',
        'tracks': {'total': 3},
    }
