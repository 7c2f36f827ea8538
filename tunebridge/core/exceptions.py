"""
Exception classes for tunebridge.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus a details dictionary
with structured context, so callers and tests can branch on fields rather
than parse strings.

Exception Hierarchy:
    TuneBridgeError (base)
        ConfigError - Configuration file / environment issues
        AuthError - Token exchange or refresh failed, or re-authorization needed
        RequestError - Transport-level failure calling an external HTTP API
        SpotifyError - Spotify catalog API issues (playlist fetch, user data)
        StoreError - Track store (SQLite) issues
        NoResultsFound - Video search returned nothing for a track
        NoUsableCandidates - Every search candidate lacked a video id
"""


class TuneBridgeError(Exception):
    """
    Base exception for all tunebridge errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all tunebridge errors with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Dictionary with additional context (e.g., track id, URL).

    Example:
        try:
            service.convert_one(track, artists)
        except TuneBridgeError as e:
            logger.error(f"Conversion failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'track_id': Track ID involved in the error
                     - 'url': URL that caused the error
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(TuneBridgeError):
    """
    Raised when there's an issue with the configuration.

    This is a CRITICAL error - the application cannot run without
    valid configuration.

    Common causes:
        - Explicit config file path does not exist
        - Invalid YAML syntax
        - Missing Spotify credentials (neither config.yaml nor environment)
        - Non-positive numeric values (batch size, workers, intervals)

    Example:
        raise ConfigError(
            "'conversion.workers' must be a positive integer",
            details={'field': 'conversion.workers', 'value': 0}
        )
    """
    pass


class AuthError(TuneBridgeError):
    """
    Raised when the OAuth token lifecycle cannot produce a valid token.

    Common causes:
        - No refresh token stored (interactive re-authorization required)
        - The token endpoint rejected the refresh token or authorization code
        - The user denied access in the browser

    Attributes:
        status_code: HTTP status returned by the token endpoint, if any.
        response_body: Raw error body returned by the provider, if any.
        needs_reauthorization: True when only a new interactive authorization
                               can recover (no refresh token available).

    Example:
        raise AuthError(
            "Token refresh failed",
            details={'status_code': 400},
            status_code=400,
            response_body='{"error": "invalid_grant"}'
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        status_code: int | None = None,
        response_body: str | None = None,
        needs_reauthorization: bool = False
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code
        self.response_body = response_body
        self.needs_reauthorization = needs_reauthorization


class RequestError(TuneBridgeError):
    """
    Raised when an external HTTP API call fails at the transport level
    or returns a non-success status.

    Inside the token refresh loop this is retried on the loop's fixed
    interval; everywhere else it surfaces immediately.

    Attributes:
        url: The endpoint that was called.
        status_code: HTTP status, or None when no response was received.
        response_body: Raw response body, if any.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        url: str | None = None,
        status_code: int | None = None,
        response_body: str | None = None
    ) -> None:
        super().__init__(message, details)
        self.url = url
        self.status_code = status_code
        self.response_body = response_body


class SpotifyError(TuneBridgeError):
    """
    Raised when there's an issue with the Spotify catalog API.

    Common causes:
        - Playlist not found or private
        - Access token rejected (is_auth_error)
        - Network connectivity issues

    Attributes:
        is_auth_error: True if the API rejected our credentials.

    Example:
        raise SpotifyError(
            "Failed to fetch playlist: not found",
            details={'playlist_id': playlist_id, 'status_code': 404}
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        is_auth_error: bool = False
    ) -> None:
        super().__init__(message, details)
        self.is_auth_error = is_auth_error


class StoreError(TuneBridgeError):
    """
    Raised when there's an issue with the track store.

    Fatal at startup (the store cannot be opened), per-track inside
    batch conversion (a single write failed).

    Common causes:
        - Data directory does not exist or is not writable
        - Database file is corrupted or has an unexpected schema version
        - Updating a track id that is not in the store

    Example:
        raise StoreError(
            f"Track not found: {track_id}",
            details={'track_id': track_id}
        )
    """
    pass


class NoResultsFound(TuneBridgeError):
    """
    Raised when the video search provider returns zero results for a query.

    Per-track failure: batch conversion logs it and moves on.

    Attributes:
        query: The search query that produced no results.
    """

    def __init__(self, query: str, details: dict | None = None) -> None:
        super().__init__(f"No YouTube videos found for query: {query}", details)
        self.query = query


class NoUsableCandidates(TuneBridgeError):
    """
    Raised when no search candidate can produce a video URL.

    Either the candidate list was empty, or every candidate was a channel
    or playlist result without a video id.

    Attributes:
        candidate_count: How many candidates were inspected.
    """

    def __init__(self, candidate_count: int, details: dict | None = None) -> None:
        if candidate_count == 0:
            message = "No candidates to select from"
        else:
            message = f"None of {candidate_count} candidates has a video id"
        super().__init__(message, details)
        self.candidate_count = candidate_count
