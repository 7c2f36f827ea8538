"""Integration tests"""

import re
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from tunebridge.cli import cli
from tunebridge.core.config import ENV_OVERRIDES
from tunebridge.core.logger import shutdown_logging


@pytest.fixture
def config_file(temp_dir, monkeypatch):
    """config.yaml with mock search and a temporary data directory"""
    for env_var in ENV_OVERRIDES:
        monkeypatch.delenv(env_var, raising=False)

    path = temp_dir / "config.yaml"
    path.write_text(
        "spotify:\n"
        "  client_id: test_id\n"
        "  client_secret: test_secret\n"
        "youtube:\n"
        "  mock_latency: 0\n"
        "storage:\n"
        f"  data_dir: \"{temp_dir / 'data'}\"\n",
        encoding="utf-8"
    )
    with patch("tunebridge.core.config.load_dotenv"):
        yield path
    shutdown_logging()


@pytest.fixture
def run(config_file):
    runner = CliRunner()

    def _run(*args):
        return runner.invoke(cli, ["--config", str(config_file), *args])

    return _run


class TestIntegration:
    """Test the command line end to end"""

    def test_add_track_then_convert(self, run, temp_dir):
        """Manually added tracks are converted with the mock provider"""
        result = run("add-track", "Hello", "Adele")
        assert result.exit_code == 0, result.output
        track_id = re.search(r"manual_[0-9a-f-]+", result.output).group(0)

        result = run("convert", "--workers", "1")
        assert result.exit_code == 0, result.output
        assert "Processed 1: 1 converted, 0 failed" in result.output

        result = run("search", "hello")
        assert result.exit_code == 0, result.output
        assert track_id in result.output
        assert "https://www.youtube.com/watch?v=" in result.output

        assert (temp_dir / "data" / "database.db").exists()
        assert list((temp_dir / "data" / "logs").glob("log_full_*.log"))

    def test_concurrent_convert(self, run):
        """The worker pool converts every pending track"""
        for i in range(3):
            assert run("add-track", f"Song {i}", f"Artist {i}").exit_code == 0

        result = run("convert", "--workers", "3")

        assert result.exit_code == 0, result.output
        assert "Processed 3: 3 converted, 0 failed" in result.output

    def test_convert_defaults_to_sequential(self, run):
        """Without --workers the batch runs in store order, not on the pool"""
        for i in range(2):
            assert run("add-track", f"Song {i}", f"Artist {i}").exit_code == 0

        with patch("tunebridge.cli.ConversionService.convert_concurrent") as mock_concurrent:
            result = run("convert")

        assert result.exit_code == 0, result.output
        assert "Processed 2: 2 converted, 0 failed" in result.output
        mock_concurrent.assert_not_called()

    def test_convert_with_nothing_pending(self, run):
        result = run("convert")
        assert result.exit_code == 0, result.output
        assert "Processed" not in result.output

    def test_convert_track_unknown_id(self, run):
        """Forced conversion of an unknown track is a store error"""
        result = run("convert-track", "missing")
        assert result.exit_code == 2

    def test_show_unknown_playlist(self, run):
        result = run("show", "missing")
        assert result.exit_code == 2

    def test_empty_playlist_list(self, run):
        result = run("playlists")
        assert result.exit_code == 0
        assert "No playlists imported yet" in result.output

    def test_invalid_playlist_url(self, run, temp_dir):
        """A URL without a playlist id is rejected before any request"""
        result = run("import", "https://example.com/not-a-playlist")
        assert result.exit_code == 2
        assert not (temp_dir / "data").exists()

    def test_missing_credentials(self, temp_dir, monkeypatch):
        """Configuration errors exit with code 1"""
        for env_var in ENV_OVERRIDES:
            monkeypatch.delenv(env_var, raising=False)
        path = temp_dir / "config.yaml"
        path.write_text("youtube:\n  max_results: 3\n", encoding="utf-8")

        with patch("tunebridge.core.config.load_dotenv"):
            result = CliRunner().invoke(cli, ["--config", str(path), "stats"])

        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "tunebridge" in result.output
