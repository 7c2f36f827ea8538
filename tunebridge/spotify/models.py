"""
OAuth token state for the Spotify Web API.

TokenState is the unit the token manager mutates and the token store
persists. It is immutable: each refresh produces a new instance through
dataclasses.replace(), so a reader holding an old snapshot never sees a
half-updated token pair.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class TokenState:
    """
    Access/refresh token pair with its expiry.

    Attributes:
        access_token: Bearer token for Spotify API calls, None before
                      the first authorization.
        refresh_token: Long-lived token used to obtain new access tokens.
        expires_at: Absolute expiry as epoch seconds. None means the
                    expiry is unknown and the token is treated as expired.
    """

    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TokenState":
        """
        Build a TokenState from a persisted token file.

        Unknown keys (saved_at, client_id) are ignored.

        Raises:
            ValueError: If expires_at is present but not a number.
        """
        expires_at = data.get("expires_at")
        if expires_at is not None:
            if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
                raise ValueError(f"expires_at must be a number, got {expires_at!r}")
            expires_at = float(expires_at)

        return cls(
            access_token=data.get("access_token") or None,
            refresh_token=data.get("refresh_token") or None,
            expires_at=expires_at,
        )
