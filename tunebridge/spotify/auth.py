"""
OAuth2 token lifecycle for the Spotify Web API.

This module keeps a valid Spotify access token available to the rest of
the application for as long as the process runs:

    - TokenManager: holds the token pair, refreshes it on demand
      (ensure_valid) and in the background (run_refresh_loop), and
      persists it through a TokenStore after every change
    - authorize_interactively: the one-time browser authorization that
      produces the first token pair

Token expiry is checked with a 120-second safety margin, so a token is
never handed out moments before Spotify would reject it.

Thread Safety:
    All token state is guarded by a single lock, readers included. A
    second lock serializes refreshes so at most one token request is in
    flight. Network and file I/O never happen while the state lock is held.

Usage:
    manager = TokenManager(
        client_id=config.spotify.client_id,
        client_secret=config.spotify.client_secret,
        redirect_uri=config.spotify.redirect_uri,
        token_store=TokenStore(config.storage.tokens_path),
        token_config=config.token,
    )
    manager.load()
    authorize_interactively(manager)   # no-op when tokens are usable
    manager.start_background_tasks()
    ...
    access_token = manager.ensure_valid()
    ...
    manager.stop()
"""

import secrets
import threading
import time
import urllib.parse
import webbrowser
from dataclasses import replace
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Callable

import requests

from tunebridge.core.config import DEFAULT_REDIRECT_URI, TokenConfig
from tunebridge.core.exceptions import AuthError, RequestError
from tunebridge.core.logger import get_logger
from tunebridge.spotify.models import TokenState
from tunebridge.spotify.token_store import TokenStore

logger = get_logger(__name__)


TOKEN_URL = "https://accounts.spotify.com/api/token"
AUTHORIZE_URL = "https://accounts.spotify.com/authorize"

SCOPES = (
    "user-read-private user-read-email user-read-playback-state "
    "playlist-read-private playlist-read-collaborative"
)

# Tokens are considered expired this many seconds before their real expiry
EXPIRY_MARGIN_SECONDS = 120

DEFAULT_EXPIRES_IN = 3600

# Re-check interval for the refresh loop when no expiry is recorded
NO_EXPIRY_CHECK_INTERVAL = 3300
# Shortest wait between successful refreshes when tokens expire inside the margin
MIN_REFRESH_DELAY = 30

REQUEST_TIMEOUT = 30

CALLBACK_TIMEOUT = 60.0


class TokenManager:
    """
    Owner of the Spotify access/refresh token pair.

    Attributes:
        client_id: Spotify application client ID.
        client_secret: Spotify application client secret.
        redirect_uri: OAuth redirect URI registered for the application.
        token_store: Where state is persisted, or None to keep it in memory.
        token_config: Intervals for the background loops.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str = DEFAULT_REDIRECT_URI,
        token_store: TokenStore | None = None,
        token_config: TokenConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.token_store = token_store
        self.token_config = token_config or TokenConfig()
        self._clock = clock

        self._state = TokenState()
        self._lock = threading.Lock()
        self._refresh_lock = threading.Lock()

        self._stop_event: threading.Event | None = None
        self._threads: list[threading.Thread] = []

    # =========================================================================
    # State
    # =========================================================================

    def load(self) -> bool:
        """
        Restore state from the token store.

        Returns:
            True if a stored token pair was found.
        """
        if self.token_store is None:
            return False

        state = self.token_store.load()
        if state is None:
            return False

        self.restore_token_state(state)
        logger.debug("Restored Spotify tokens from disk")
        return True

    def get_token_state(self) -> TokenState:
        with self._lock:
            return self._state

    def restore_token_state(self, state: TokenState) -> None:
        with self._lock:
            self._state = state

    @property
    def is_authenticated(self) -> bool:
        """True if an access token or a refresh token is held."""
        with self._lock:
            return bool(self._state.access_token or self._state.refresh_token)

    def is_expired(self, now: float | None = None) -> bool:
        """
        Check whether the access token must be refreshed.

        Args:
            now: Epoch seconds to evaluate at. Defaults to the manager's clock.

        Returns:
            True if no expiry is recorded or now >= expires_at - 120.
        """
        with self._lock:
            expires_at = self._state.expires_at
        return self._expired_at(expires_at, self._clock() if now is None else now)

    @staticmethod
    def _expired_at(expires_at: float | None, now: float) -> bool:
        if expires_at is None:
            return True
        return now >= expires_at - EXPIRY_MARGIN_SECONDS

    def _needs_refresh(self) -> bool:
        with self._lock:
            state = self._state
        return not state.access_token or self._expired_at(state.expires_at, self._clock())

    # =========================================================================
    # Token Operations
    # =========================================================================

    def ensure_valid(self) -> str:
        """
        Return a usable access token, refreshing first if necessary.

        Calling this repeatedly while the token is valid performs no
        network requests.

        Returns:
            The current access token.

        Raises:
            AuthError: If no refresh token is held (re-authorization needed)
                       or the token endpoint rejected the refresh.
            RequestError: If the token endpoint could not be reached.
        """
        if self._needs_refresh():
            with self._refresh_lock:
                # Another thread may have refreshed while we waited
                if self._needs_refresh():
                    self._refresh_locked()

        with self._lock:
            return self._state.access_token

    def refresh(self) -> TokenState:
        """
        Exchange the refresh token for a new access token.

        On success the access token and expiry are replaced; the refresh
        token is replaced only if Spotify returns a new non-empty one. On
        any failure the held state is left unchanged.

        Returns:
            The new token state.

        Raises:
            AuthError: If there is no refresh token or Spotify answered non-2xx.
            RequestError: If the request failed at the transport level.
        """
        with self._refresh_lock:
            return self._refresh_locked()

    def _refresh_locked(self) -> TokenState:
        with self._lock:
            refresh_token = self._state.refresh_token

        if not refresh_token:
            raise AuthError(
                "No refresh token available; run 'tunebridge auth' to authorize",
                needs_reauthorization=True
            )

        payload = self._post_token_request({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })

        with self._lock:
            self._state = replace(
                self._state,
                access_token=payload["access_token"],
                refresh_token=payload.get("refresh_token") or self._state.refresh_token,
                expires_at=self._clock() + payload.get("expires_in", DEFAULT_EXPIRES_IN),
            )
            new_state = self._state

        logger.info(
            f"Spotify access token refreshed, expires in "
            f"{payload.get('expires_in', DEFAULT_EXPIRES_IN)} seconds"
        )
        self._persist(new_state)
        return new_state

    def exchange_code(self, code: str) -> TokenState:
        """
        Exchange an authorization code for a full token pair.

        Raises:
            AuthError: If Spotify rejected the code.
            RequestError: If the request failed at the transport level.
        """
        payload = self._post_token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        })

        new_state = TokenState(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token") or None,
            expires_at=self._clock() + payload.get("expires_in", DEFAULT_EXPIRES_IN),
        )
        with self._lock:
            self._state = new_state

        logger.info("Spotify authorization completed")
        self._persist(new_state)
        return new_state

    def build_authorization_url(self, state: str | None = None) -> str:
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "scope": SCOPES,
        }
        if state:
            params["state"] = state
        return f"{AUTHORIZE_URL}?{urllib.parse.urlencode(params)}"

    def _post_token_request(self, data: dict[str, str]) -> dict:
        """
        POST to the token endpoint with client credentials as basic auth.

        Returns:
            The decoded JSON body, guaranteed to contain "access_token".
        """
        try:
            response = requests.post(
                TOKEN_URL,
                data=data,
                auth=(self.client_id, self.client_secret),
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise RequestError(
                f"Token request failed: {e}",
                details={"grant_type": data["grant_type"], "original_error": str(e)},
                url=TOKEN_URL
            ) from e

        if not response.ok:
            raise AuthError(
                f"Token request rejected with HTTP {response.status_code}: {response.text}",
                details={"grant_type": data["grant_type"]},
                status_code=response.status_code,
                response_body=response.text
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise AuthError(
                "Token endpoint returned invalid JSON",
                status_code=response.status_code,
                response_body=response.text
            ) from e

        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise AuthError(
                "Token endpoint response has no access_token",
                status_code=response.status_code,
                response_body=response.text
            )

        expires_in = payload.get("expires_in", DEFAULT_EXPIRES_IN)
        if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
            raise AuthError(
                f"Token endpoint returned a non-numeric expires_in: {expires_in!r}",
                status_code=response.status_code,
                response_body=response.text
            )
        return payload

    def _persist(self, state: TokenState) -> None:
        if self.token_store is None:
            return
        try:
            self.token_store.save(state)
        except OSError as e:
            logger.error(f"Failed to save Spotify tokens: {e}")

    # =========================================================================
    # Background Loops
    # =========================================================================

    def run_refresh_loop(self, stop_event: threading.Event) -> None:
        """
        Keep the access token fresh until stop_event is set.

        Schedule:
            - Expiry known: wait until 120s before it, then refresh
            - Refresh failed: wait retry_interval (times retry_backoff for
              each further consecutive failure), then try again
            - No expiry: wait 3300s, then check again
            - Token lifetime inside the margin: wait at least 30s between
              successful refreshes

        With max_refresh_failures unset the loop retries forever;
        otherwise it gives up after that many consecutive failures.
        """
        failures = 0
        refreshed = False
        config = self.token_config

        while not stop_event.is_set():
            with self._lock:
                expires_at = self._state.expires_at

            if expires_at is None:
                if stop_event.wait(NO_EXPIRY_CHECK_INTERVAL):
                    return
                continue

            delay = expires_at - EXPIRY_MARGIN_SECONDS - self._clock()
            if refreshed:
                delay = max(delay, MIN_REFRESH_DELAY)
            if delay > 0 and stop_event.wait(delay):
                return

            try:
                self.refresh()
                failures = 0
                refreshed = True
                continue
            except (AuthError, RequestError) as e:
                failures += 1
                logger.error(f"Token refresh failed (attempt {failures}): {e}")
            except Exception:
                failures += 1
                logger.exception(f"Unexpected error during token refresh (attempt {failures})")

            refreshed = False
            if config.max_refresh_failures is not None and failures >= config.max_refresh_failures:
                logger.error(f"Giving up on background token refresh after {failures} failures")
                return

            retry_delay = config.retry_interval * (config.retry_backoff ** (failures - 1))
            if stop_event.wait(retry_delay):
                return

    def run_save_loop(self, stop_event: threading.Event) -> None:
        """Persist the current state every save_interval seconds."""
        while not stop_event.wait(self.token_config.save_interval):
            state = self.get_token_state()
            if state.access_token or state.refresh_token:
                self._persist(state)

    def start_background_tasks(self) -> None:
        """Start the refresh and save loops on daemon threads."""
        if self._threads:
            return

        self._stop_event = threading.Event()
        for name, target in (
            ("token-refresh", self.run_refresh_loop),
            ("token-save", self.run_save_loop),
        ):
            thread = threading.Thread(
                target=target, args=(self._stop_event,), name=name, daemon=True
            )
            thread.start()
            self._threads.append(thread)
        logger.debug("Token background tasks started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the background loops and save the final state."""
        if self._stop_event is not None:
            self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = []
        self._stop_event = None

        state = self.get_token_state()
        if state.access_token or state.refresh_token:
            self._persist(state)


# =============================================================================
# Interactive Authorization
# =============================================================================

class CallbackHandler(BaseHTTPRequestHandler):
    """
    HTTP request handler for the OAuth2 redirect.

    Stores the authorization code (or error) on the server instance and
    sets server.callback_received. Requests for other paths (favicon
    probes) get a 404 and are otherwise ignored.
    """

    def do_GET(self) -> None:
        parsed_url = urllib.parse.urlparse(self.path)
        query_params = urllib.parse.parse_qs(parsed_url.query)

        if parsed_url.path != self.server.callback_path:
            self.send_response(404)
            self.end_headers()
            return

        if "error" in query_params:
            self.server.authorization_error = query_params["error"][0]
            self._send_html(400, "Authorization Failed", "#E22134",
                            f"Error: {query_params['error'][0]}")
        elif "code" in query_params:
            self.server.authorization_code = query_params["code"][0]
            self.server.authorization_state = query_params.get("state", [None])[0]
            self._send_html(200, "Authorization Successful!", "#1DB954",
                            "You can now close this window and return to the terminal.")
        else:
            self._send_html(400, "Authorization Failed", "#E22134",
                            "The callback did not contain an authorization code.")
            return

        self.server.callback_received.set()

    def _send_html(self, status: int, title: str, color: str, message: str) -> None:
        self.send_response(status)
        self.send_header("Content-type", "text/html")
        self.end_headers()
        page = f"""
        <html>
        <head><title>{title}</title></head>
        <body style="font-family: Arial, sans-serif; text-align: center; margin-top: 50px;">
            <h1 style="color: {color};">{title}</h1>
            <p>{message}</p>
        </body>
        </html>
        """
        self.wfile.write(page.encode())

    def log_message(self, format, *args) -> None:
        """Keep the console clean; requests are not logged."""
        pass


def _wait_for_callback(redirect_uri: str, authorization_url: str, timeout: float) -> HTTPServer | None:
    """
    Serve the redirect URI locally until a callback arrives.

    Returns:
        The server with its authorization fields set, or None if the
        server could not start or no callback arrived within timeout.
    """
    parsed = urllib.parse.urlparse(redirect_uri)
    host = parsed.hostname or "localhost"
    port = parsed.port or 8080

    try:
        server = HTTPServer((host, port), CallbackHandler)
    except OSError as e:
        logger.warning(f"Could not start callback server on {host}:{port}: {e}")
        return None

    server.callback_path = parsed.path or "/callback"
    server.authorization_code = None
    server.authorization_error = None
    server.authorization_state = None
    server.callback_received = threading.Event()

    server_thread = threading.Thread(target=server.serve_forever, daemon=True)
    server_thread.start()

    try:
        print("Opening browser for Spotify authorization...")
        print(f"If the browser doesn't open, visit: {authorization_url}")
        webbrowser.open(authorization_url)

        if not server.callback_received.wait(timeout):
            logger.warning(f"No authorization callback within {timeout:.0f} seconds")
            return None
        return server
    finally:
        server.shutdown()
        server.server_close()


def authorize_interactively(token_manager: TokenManager, timeout: float = CALLBACK_TIMEOUT) -> bool:
    """
    Run the browser authorization flow if no usable tokens are held.

    Args:
        token_manager: Manager that receives the exchanged tokens.
        timeout: Seconds to wait for the browser callback before asking
                 for the code on the terminal.

    Returns:
        False if existing tokens were usable (nothing done), True if a new
        authorization was completed.

    Raises:
        AuthError: If the user denied access, the state did not match,
                   no code was entered, or the exchange was rejected.
    """
    if token_manager.is_authenticated:
        try:
            token_manager.ensure_valid()
            logger.info("Spotify tokens are valid, skipping authorization")
            return False
        except (AuthError, RequestError) as e:
            logger.warning(f"Stored tokens are unusable, re-authorizing: {e}")

    state = secrets.token_urlsafe(16)
    authorization_url = token_manager.build_authorization_url(state=state)

    server = _wait_for_callback(token_manager.redirect_uri, authorization_url, timeout)

    if server is not None:
        if server.authorization_error:
            raise AuthError(
                f"Authorization denied: {server.authorization_error}",
                details={"error": server.authorization_error}
            )
        if server.authorization_state != state:
            raise AuthError("Authorization state mismatch; possible stale callback")
        code = server.authorization_code
    else:
        print(f"Visit this URL to authorize: {authorization_url}")
        code = input("Paste the 'code' parameter from the redirect URL: ").strip()

    if not code:
        raise AuthError("No authorization code provided")

    token_manager.exchange_code(code)
    return True
