"""Test catalog data models"""

from tunebridge.core.models import Album, Artist, ConversionStats, Playlist, Track
from tunebridge.youtube.models import BatchResult, CandidateVideo, TrackOutcome


class TestSpotifyParsing:
    """Test building models from Spotify API data"""

    def test_artist_creation(self):
        """Test Artist creation from data"""
        data = {
            'id': 'artist123',
            'name': 'Test Artist',
            'uri': 'spotify:artist:artist123',
            'external_urls': {'spotify': 'https://spotify.com/artist/artist123'}
        }
        artist = Artist.from_spotify_api(data)

        assert artist.id == 'artist123'
        assert artist.name == 'Test Artist'
        assert artist.external_urls['spotify'] == 'https://spotify.com/artist/artist123'

    def test_track_from_playlist_item(self, sample_track_data):
        """Track fields come from the item's track object"""
        track = Track.from_spotify_api(sample_track_data['track'])

        assert track.id == '4cOdK2wGLETKBW3PvgPWqT'
        assert track.duration_seconds == 210
        assert track.popularity == 75
        assert track.isrc == 'USRC17607839'
        assert track.is_converted is False

    def test_track_without_isrc(self):
        track = Track.from_spotify_api({'id': 't1', 'name': 'Song'})
        assert track.isrc is None
        assert track.spotify_uri == ''

    def test_album_skips_artists_without_id(self):
        """Album artists need an id to be stored"""
        album = Album.from_spotify_api({
            'id': 'album1',
            'name': 'Album',
            'artists': [{'id': 'a1', 'name': 'One'}, {'id': None, 'name': 'Unknown'}],
        })
        assert [a.id for a in album.artists] == ['a1']

    def test_playlist_owner_fallback(self):
        """Hidden owners are shown as Unknown User"""
        playlist = Playlist.from_spotify_api({'id': 'p1', 'name': 'Mix', 'owner': {}}, track_count=3)
        assert playlist.owner_name == 'Unknown User'
        assert playlist.track_count == 3


class TestDerivedValues:
    """Test computed properties"""

    def test_empty_url_is_not_converted(self):
        assert Track(id='t1', name='Song', youtube_url='').is_converted is False
        assert Track(id='t1', name='Song', youtube_url='https://www.youtube.com/watch?v=x').is_converted

    def test_conversion_rate(self):
        assert ConversionStats(4, 1, 3).conversion_rate == 25.0
        assert ConversionStats(0, 0, 0).conversion_rate == 0.0

    def test_batch_success_rate(self):
        assert BatchResult(5, 4, 1).success_rate == 80.0
        assert BatchResult().success_rate == 0.0

    def test_candidate_from_api_item(self):
        """Search items without a videoId have no URL"""
        candidate = CandidateVideo.from_api_item({'id': {'kind': 'youtube#playlist'}, 'snippet': {}})
        assert candidate.video_id is None
        assert candidate.url is None
        assert candidate.title == ''

    def test_candidate_ignores_malformed_id(self):
        candidate = CandidateVideo.from_api_item({'id': 'abc', 'snippet': None})
        assert candidate.video_id is None
        assert candidate.channel_title == ''

    def test_track_outcome(self):
        assert TrackOutcome('t1', 'Song', youtube_url='u').converted is True
        assert TrackOutcome('t1', 'Song', error='boom').converted is False
