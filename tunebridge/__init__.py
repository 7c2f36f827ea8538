"""
tunebridge: Convert Spotify playlists to YouTube links.

This package imports Spotify playlists into a local SQLite track store and
matches every stored track to a YouTube video.

Architecture:
    spotify/ (import):
        - OAuth token lifecycle with background refresh (TokenManager)
        - Fetch playlist metadata and all items via spotipy
        - Store tracks, artists, albums and playlist positions

    youtube/ (conversion):
        - Build a search query per unconverted track
        - Search YouTube (Data API v3, or a deterministic mock)
        - Score candidates and store the best watch URL

Modules:
    core/       - Configuration, track store, logging, exceptions, models
    spotify/    - Token management, Spotify client, playlist import
    youtube/    - Search providers, match selection, conversion service
    cli.py      - Command-line interface

Usage:
    Command Line:
        tunebridge auth
        tunebridge import "https://open.spotify.com/playlist/..."
        tunebridge convert --limit 100

    Python API:
        from tunebridge.core import load_config, Database, setup_logging
        from tunebridge.spotify import TokenManager, TokenStore, SpotifyClient, PlaylistImporter
        from tunebridge.youtube import ConversionService, create_search_provider

        config = load_config()
        setup_logging(config.storage.data_dir)
        database = Database(config.storage.database_path)

        manager = TokenManager(
            config.spotify.client_id,
            config.spotify.client_secret,
            token_store=TokenStore(config.storage.tokens_path),
        )
        manager.load()

        PlaylistImporter(SpotifyClient(manager), database).import_playlist_by_url(url)
        service = ConversionService(database, create_search_provider(config.youtube), config.youtube)
        service.convert_batch(limit=50)

Dependencies:
    - spotipy: Spotify API client
    - requests: Token endpoint and YouTube Data API calls
    - click / rich-click: CLI
    - rich: Progress bars
    - tqdm: Progress-bar-safe console logging
    - pyyaml: Configuration file parsing
    - python-dotenv: .env loading
"""

__version__ = "0.1.0"
__author__ = "tunebridge"
__license__ = "MIT"

# Convenience imports for common usage
from tunebridge.core import (
    Config,
    ConfigError,
    Database,
    StoreError,
    TuneBridgeError,
    get_logger,
    load_config,
    setup_logging,
)
from tunebridge.spotify import PlaylistImporter, SpotifyClient, TokenManager
from tunebridge.youtube import ConversionService, create_search_provider

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "Database",
    "setup_logging",
    "get_logger",
    # Exceptions
    "TuneBridgeError",
    "ConfigError",
    "StoreError",
    # Services
    "TokenManager",
    "SpotifyClient",
    "PlaylistImporter",
    "ConversionService",
    "create_search_provider",
]
