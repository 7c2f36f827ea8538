"""
Core module for tunebridge.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - models: Immutable catalog records (Track, Artist, Album, Playlist)
    - config: Configuration loading and validation
    - database: Thread-safe SQLite track store
    - logger: Logging system with multiple outputs

Usage:
    from tunebridge.core import (
        Config, load_config,
        Database,
        setup_logging, get_logger,
        TuneBridgeError, ConfigError, StoreError
    )
"""

from tunebridge.core.exceptions import (
    AuthError,
    ConfigError,
    NoResultsFound,
    NoUsableCandidates,
    RequestError,
    SpotifyError,
    StoreError,
    TuneBridgeError,
)
from tunebridge.core.models import Album, Artist, ConversionStats, Playlist, Track
from tunebridge.core.config import (
    Config,
    ConversionConfig,
    SpotifyConfig,
    StorageConfig,
    TokenConfig,
    YouTubeConfig,
    load_config,
)
from tunebridge.core.logger import (
    get_logger,
    log_conversion_failure,
    setup_logging,
    shutdown_logging,
)
from tunebridge.core.database import Database

__all__ = [
    # Config
    "Config",
    "SpotifyConfig",
    "YouTubeConfig",
    "ConversionConfig",
    "TokenConfig",
    "StorageConfig",
    "load_config",
    # Database
    "Database",
    # Models
    "Album",
    "Artist",
    "ConversionStats",
    "Playlist",
    "Track",
    # Exceptions
    "TuneBridgeError",
    "ConfigError",
    "AuthError",
    "RequestError",
    "SpotifyError",
    "StoreError",
    "NoResultsFound",
    "NoUsableCandidates",
    # Logging
    "setup_logging",
    "get_logger",
    "log_conversion_failure",
    "shutdown_logging",
]
