"""
Spotify integration for tunebridge.

    - auth: TokenManager (token lifecycle) and interactive authorization
    - token_store: JSON persistence of the token pair
    - client: spotipy wrapper authenticated through the TokenManager
    - fetcher: playlist import into the track store
"""

from tunebridge.spotify.auth import TokenManager, authorize_interactively
from tunebridge.spotify.client import SpotifyClient
from tunebridge.spotify.fetcher import PlaylistImporter, extract_playlist_id
from tunebridge.spotify.models import TokenState
from tunebridge.spotify.token_store import TokenStore

__all__ = [
    "TokenManager",
    "TokenState",
    "TokenStore",
    "authorize_interactively",
    "SpotifyClient",
    "PlaylistImporter",
    "extract_playlist_id",
]
