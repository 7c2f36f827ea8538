"""
File persistence for Spotify OAuth tokens.

Tokens are written as JSON next to the track store:

    {
      "access_token": "BQD...",
      "refresh_token": "AQC...",
      "expires_at": 1767225600.0,
      "saved_at": "2026-01-01T00:00:00"
    }

The file is restricted to the owner (0600) on systems that support it.
"""

import json
import os
import threading
from datetime import datetime
from pathlib import Path

from tunebridge.core.logger import get_logger
from tunebridge.spotify.models import TokenState

logger = get_logger(__name__)


class TokenStore:
    """
    Load and save TokenState to a JSON file.

    A missing file and a corrupt file both load as None: the caller falls
    back to interactive authorization instead of crashing on bad state.
    Saving is atomic (write to a temp file, then replace).

    Attributes:
        path: Location of the token file.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    def load(self) -> TokenState | None:
        if not self.path.exists():
            logger.debug(f"No token file at {self.path}")
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("token file must contain a JSON object")
            return TokenState.from_dict(data)
        except (OSError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning(f"Ignoring unreadable token file {self.path}: {e}")
            return None

    def save(self, state: TokenState) -> None:
        """
        Persist a token state.

        Raises:
            OSError: If the file cannot be written.
        """
        payload = {
            **state.to_dict(),
            "saved_at": datetime.now().isoformat(),
        }

        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self.path.with_suffix(".tmp")

            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)

            try:
                os.chmod(temp_path, 0o600)
            except OSError as e:
                # Not supported on every filesystem (e.g. Windows)
                logger.debug(f"Could not restrict token file permissions: {e}")

            temp_path.replace(self.path)

        logger.debug(f"Tokens saved to {self.path}")
