"""
Configuration management for tunebridge.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml, with secrets optionally
supplied through environment variables (or a .env file).

The configuration contains:
    - Spotify API credentials (client_id, client_secret, redirect_uri)
    - YouTube Data API key (optional - without it, mock search is used)
    - Batch conversion sizes and worker count
    - Token refresh/save intervals
    - Data directory holding the database, tokens.json and logs

Configuration File Location:
    config.yaml in the current working directory, unless an explicit path
    is passed. The file is optional when every required value comes from
    the environment.

Environment Overrides (applied after the YAML file):
    SPOTIFY_CLIENT_ID, SPOTIFY_CLIENT_SECRET, SPOTIFY_REDIRECT_URI,
    YOUTUBE_API_KEY, TUNEBRIDGE_DATA_DIR

Example config.yaml:
    spotify:
      client_id: "your_client_id_here"
      client_secret: "your_client_secret_here"
      redirect_uri: "http://localhost:8080/callback"

    youtube:
      api_key: null        # null = mock mode (deterministic fake ids)
      max_results: 5

    conversion:
      batch_size: 50
      max_tracks: null
      workers: 1

    token:
      save_interval: 300
      retry_interval: 300
      max_refresh_failures: null   # null = retry forever

    storage:
      data_dir: "~/.tunebridge"
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from tunebridge.core.exceptions import ConfigError


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_REDIRECT_URI = "http://localhost:8080/callback"
DEFAULT_DATA_DIR = "~/.tunebridge"

DATABASE_FILENAME = "database.db"
TOKENS_FILENAME = "tokens.json"


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify application credentials.

    These credentials are obtained from the Spotify Developer Dashboard:
    https://developer.spotify.com/dashboard

    Attributes:
        client_id: The Spotify application client ID.
        client_secret: The Spotify application client secret.
        redirect_uri: OAuth callback URL registered for the application.
                      A localhost URI makes `tunebridge auth` start a local
                      callback server on that port.
    """
    client_id: str
    client_secret: str
    redirect_uri: str = DEFAULT_REDIRECT_URI


@dataclass(frozen=True)
class YouTubeConfig:
    """
    YouTube search configuration.

    Attributes:
        api_key: YouTube Data API v3 key. None selects the mock provider.
        max_results: Candidates requested per search.
        request_delay: Seconds to pause between live searches in a batch.
        mock_latency: Simulated latency of the mock provider, in seconds.
    """
    api_key: str | None = None
    max_results: int = 5
    request_delay: float = 0.1
    mock_latency: float = 0.2

    @property
    def mock_mode(self) -> bool:
        return not self.api_key


@dataclass(frozen=True)
class ConversionConfig:
    """
    Batch conversion configuration.

    Attributes:
        batch_size: Default number of unconverted tracks pulled per run.
        max_tracks: Optional hard cap; the effective limit is the smaller one.
        workers: Worker threads for batch conversion; above 1 the pool is used and
                 completion order is not preserved.
    """
    batch_size: int = 50
    max_tracks: int | None = None
    workers: int = 1


@dataclass(frozen=True)
class TokenConfig:
    """
    Token lifecycle timing.

    Attributes:
        save_interval: Seconds between periodic token saves.
        retry_interval: Seconds to wait after a failed background refresh.
        max_refresh_failures: Stop the refresh loop after this many
                              consecutive failures. None retries forever.
        retry_backoff: Multiplier applied to retry_interval after each
                       consecutive failure. 1.0 keeps the interval fixed.
    """
    save_interval: float = 300.0
    retry_interval: float = 300.0
    max_refresh_failures: int | None = None
    retry_backoff: float = 1.0


@dataclass(frozen=True)
class StorageConfig:
    """
    Local storage configuration.

    Attributes:
        data_dir: Absolute directory for database.db, tokens.json and logs/.
                  Path expansion is performed (~ is expanded to home directory).
    """
    data_dir: Path

    @property
    def database_path(self) -> Path:
        return self.data_dir / DATABASE_FILENAME

    @property
    def tokens_path(self) -> Path:
        return self.data_dir / TOKENS_FILENAME


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    This is the main configuration object that aggregates all configuration
    sections. It is created by load_config() and should be treated as
    immutable (frozen dataclass).

    Example:
        config = load_config()
        print(f"Data in: {config.storage.data_dir}")
        if config.youtube.mock_mode:
            print("No YouTube API key - using mock search")
    """
    spotify: SpotifyConfig
    youtube: YouTubeConfig
    conversion: ConversionConfig
    token: TokenConfig
    storage: StorageConfig


# Environment variable -> (section, key) in the raw YAML dictionary
ENV_OVERRIDES = {
    "SPOTIFY_CLIENT_ID": ("spotify", "client_id"),
    "SPOTIFY_CLIENT_SECRET": ("spotify", "client_secret"),
    "SPOTIFY_REDIRECT_URI": ("spotify", "redirect_uri"),
    "YOUTUBE_API_KEY": ("youtube", "api_key"),
    "TUNEBRIDGE_DATA_DIR": ("storage", "data_dir"),
}


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml and the environment.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working
                     directory and tolerates its absence.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If an explicit config file is not found, the YAML is
                     invalid, Spotify credentials are missing, or a value
                     is out of range.

    Behavior:
        1. Load .env into the process environment (existing vars win)
        2. Read and parse YAML content (if a file is present)
        3. Apply environment overrides
        4. Validate and parse every section, applying defaults
        5. Create and return frozen Config object

    Thread Safety:
        This function is NOT thread-safe. It should be called once at
        application startup, before any threads are created.
    """
    load_dotenv()

    explicit = config_path is not None
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    raw_config: dict[str, Any] = {}
    if config_path.exists():
        raw_config = _read_yaml(config_path)
    elif explicit:
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    _apply_env_overrides(raw_config)
    _validate_config(raw_config)

    return Config(
        spotify=_parse_spotify_config(raw_config.get("spotify") or {}),
        youtube=_parse_youtube_config(raw_config.get("youtube") or {}),
        conversion=_parse_conversion_config(raw_config.get("conversion") or {}),
        token=_parse_token_config(raw_config.get("token") or {}),
        storage=_parse_storage_config(raw_config.get("storage") or {}),
    )


def _read_yaml(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    # An empty file parses to None
    if raw_config is None:
        return {}

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )
    return raw_config


def _apply_env_overrides(raw_config: dict[str, Any]) -> None:
    """Overlay non-empty environment variables onto the raw config in place."""
    for env_var, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if not value:
            continue
        if not isinstance(raw_config.get(section), dict):
            raw_config[section] = {}
        raw_config[section][key] = value


def _validate_config(raw_config: dict[str, Any]) -> None:
    """
    Check that every present section is a dictionary.

    Raises:
        ConfigError: If a section has a non-mapping value.
    """
    for section in ("spotify", "youtube", "conversion", "token", "storage"):
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )


def _parse_spotify_config(section: dict[str, Any]) -> SpotifyConfig:
    """
    Parse and validate the Spotify configuration section.

    Raises:
        ConfigError: If client_id or client_secret is missing or empty.
    """
    client_id = section.get("client_id", "")
    client_secret = section.get("client_secret", "")
    redirect_uri = section.get("redirect_uri") or DEFAULT_REDIRECT_URI

    if not isinstance(client_id, str) or not client_id.strip():
        raise ConfigError(
            "'spotify.client_id' must be a non-empty string "
            "(or set SPOTIFY_CLIENT_ID)",
            details={"field": "spotify.client_id"}
        )

    if not isinstance(client_secret, str) or not client_secret.strip():
        raise ConfigError(
            "'spotify.client_secret' must be a non-empty string "
            "(or set SPOTIFY_CLIENT_SECRET)",
            details={"field": "spotify.client_secret"}
        )

    if not isinstance(redirect_uri, str) or not redirect_uri.startswith(("http://", "https://")):
        raise ConfigError(
            "'spotify.redirect_uri' must be an http(s) URL",
            details={"field": "spotify.redirect_uri", "value": redirect_uri}
        )

    return SpotifyConfig(
        client_id=client_id.strip(),
        client_secret=client_secret.strip(),
        redirect_uri=redirect_uri.strip()
    )


def _parse_youtube_config(section: dict[str, Any]) -> YouTubeConfig:
    api_key = section.get("api_key")
    if api_key is not None and not isinstance(api_key, str):
        raise ConfigError(
            "'youtube.api_key' must be a string or null",
            details={"field": "youtube.api_key"}
        )

    return YouTubeConfig(
        api_key=api_key.strip() if api_key and api_key.strip() else None,
        max_results=_positive_int(section, "max_results", 5, "youtube"),
        request_delay=_non_negative_float(section, "request_delay", 0.1, "youtube"),
        mock_latency=_non_negative_float(section, "mock_latency", 0.2, "youtube"),
    )


def _parse_conversion_config(section: dict[str, Any]) -> ConversionConfig:
    max_tracks = None
    if section.get("max_tracks") is not None:
        max_tracks = _positive_int(section, "max_tracks", 1, "conversion")

    return ConversionConfig(
        batch_size=_positive_int(section, "batch_size", 50, "conversion"),
        max_tracks=max_tracks,
        workers=_positive_int(section, "workers", 1, "conversion"),
    )


def _parse_token_config(section: dict[str, Any]) -> TokenConfig:
    max_failures = None
    if section.get("max_refresh_failures") is not None:
        max_failures = _positive_int(section, "max_refresh_failures", 1, "token")

    backoff = _non_negative_float(section, "retry_backoff", 1.0, "token")
    if backoff < 1.0:
        raise ConfigError(
            "'token.retry_backoff' must be >= 1.0",
            details={"field": "token.retry_backoff", "value": backoff}
        )

    return TokenConfig(
        save_interval=_non_negative_float(section, "save_interval", 300.0, "token"),
        retry_interval=_non_negative_float(section, "retry_interval", 300.0, "token"),
        max_refresh_failures=max_failures,
        retry_backoff=backoff,
    )


def _parse_storage_config(section: dict[str, Any]) -> StorageConfig:
    """
    Parse the storage section.

    Expands ~ to home directory and converts to absolute Path.
    Does NOT create the directory (the CLI does that at startup).
    """
    data_dir = section.get("data_dir") or DEFAULT_DATA_DIR
    if not isinstance(data_dir, str) or not data_dir.strip():
        raise ConfigError(
            "'storage.data_dir' must be a non-empty string",
            details={"field": "storage.data_dir"}
        )
    return StorageConfig(data_dir=Path(data_dir.strip()).expanduser().resolve())


def _positive_int(section: dict[str, Any], key: str, default: int, prefix: str) -> int:
    value = section.get(key)
    if value is None:
        return default
    # bool is a subclass of int; "workers: yes" is a mistake
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(
            f"'{prefix}.{key}' must be a positive integer",
            details={"field": f"{prefix}.{key}", "value": value}
        )
    return value


def _non_negative_float(section: dict[str, Any], key: str, default: float, prefix: str) -> float:
    value = section.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ConfigError(
            f"'{prefix}.{key}' must be a non-negative number",
            details={"field": f"{prefix}.{key}", "value": value}
        )
    return float(value)
