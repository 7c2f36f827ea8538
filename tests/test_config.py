"""Tests for configuration loading"""

from pathlib import Path
from unittest.mock import patch

import pytest

from tunebridge.core.config import ENV_OVERRIDES, load_config
from tunebridge.core.exceptions import ConfigError


VALID_CONFIG = """
spotify:
  client_id: "file_client_id"
  client_secret: "file_client_secret"
"""


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Isolate tests from the developer's environment and .env file"""
    for env_var in ENV_OVERRIDES:
        monkeypatch.delenv(env_var, raising=False)
    with patch("tunebridge.core.config.load_dotenv"):
        yield


def write_config(temp_dir, content):
    path = temp_dir / "config.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestLoadConfig:
    """Test loading config.yaml"""

    def test_defaults(self, temp_dir):
        """Only credentials are required; everything else has defaults"""
        config = load_config(write_config(temp_dir, VALID_CONFIG))

        assert config.spotify.client_id == "file_client_id"
        assert config.spotify.redirect_uri == "http://localhost:8080/callback"
        assert config.youtube.api_key is None
        assert config.youtube.mock_mode is True
        assert config.youtube.max_results == 5
        assert config.conversion.batch_size == 50
        assert config.conversion.max_tracks is None
        assert config.conversion.workers == 1
        assert config.token.save_interval == 300.0
        assert config.token.max_refresh_failures is None
        assert config.storage.data_dir == Path("~/.tunebridge").expanduser().resolve()

    def test_explicit_missing_file(self, temp_dir):
        """An explicit path that does not exist is an error"""
        with pytest.raises(ConfigError, match="not found"):
            load_config(temp_dir / "nope.yaml")

    def test_invalid_yaml(self, temp_dir):
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(write_config(temp_dir, "spotify: [unclosed"))

    def test_missing_credentials(self, temp_dir):
        """Spotify credentials must come from the file or the environment"""
        with pytest.raises(ConfigError) as exc_info:
            load_config(write_config(temp_dir, "youtube:\n  max_results: 3\n"))
        assert exc_info.value.details["field"] == "spotify.client_id"

    def test_invalid_workers(self, temp_dir):
        """Non-positive worker counts are rejected"""
        content = VALID_CONFIG + "conversion:\n  workers: 0\n"
        with pytest.raises(ConfigError) as exc_info:
            load_config(write_config(temp_dir, content))
        assert exc_info.value.details["field"] == "conversion.workers"

    def test_boolean_is_not_a_number(self, temp_dir):
        content = VALID_CONFIG + "conversion:\n  batch_size: yes\n"
        with pytest.raises(ConfigError):
            load_config(write_config(temp_dir, content))

    def test_section_must_be_mapping(self, temp_dir):
        with pytest.raises(ConfigError, match="youtube"):
            load_config(write_config(temp_dir, VALID_CONFIG + "youtube: 5\n"))

    def test_backoff_below_one_rejected(self, temp_dir):
        content = VALID_CONFIG + "token:\n  retry_backoff: 0.5\n"
        with pytest.raises(ConfigError):
            load_config(write_config(temp_dir, content))

    def test_data_dir_expansion(self, temp_dir):
        """storage.data_dir is expanded and made absolute"""
        content = VALID_CONFIG + f"storage:\n  data_dir: \"{temp_dir / 'data'}\"\n"
        config = load_config(write_config(temp_dir, content))

        assert config.storage.data_dir == (temp_dir / "data").resolve()
        assert config.storage.database_path.name == "database.db"
        assert config.storage.tokens_path.name == "tokens.json"


class TestEnvironmentOverrides:
    """Test environment variables taking precedence"""

    def test_env_overrides_file(self, temp_dir, monkeypatch):
        monkeypatch.setenv("SPOTIFY_CLIENT_ID", "env_client_id")
        monkeypatch.setenv("YOUTUBE_API_KEY", "env_api_key")

        config = load_config(write_config(temp_dir, VALID_CONFIG))

        assert config.spotify.client_id == "env_client_id"
        assert config.spotify.client_secret == "file_client_secret"
        assert config.youtube.api_key == "env_api_key"
        assert config.youtube.mock_mode is False

    def test_environment_only(self, temp_dir, monkeypatch):
        """No config file is needed when credentials are in the environment"""
        monkeypatch.chdir(temp_dir)
        monkeypatch.setenv("SPOTIFY_CLIENT_ID", "env_id")
        monkeypatch.setenv("SPOTIFY_CLIENT_SECRET", "env_secret")
        monkeypatch.setenv("TUNEBRIDGE_DATA_DIR", str(temp_dir / "env_data"))

        config = load_config()

        assert config.spotify.client_secret == "env_secret"
        assert config.storage.data_dir == (temp_dir / "env_data").resolve()

    def test_empty_env_value_ignored(self, temp_dir, monkeypatch):
        monkeypatch.setenv("SPOTIFY_CLIENT_ID", "")
        config = load_config(write_config(temp_dir, VALID_CONFIG))
        assert config.spotify.client_id == "file_client_id"
