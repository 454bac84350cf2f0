"""
Core HTTP client for the netric API.

Handles authentication, request construction, response parsing, and error handling.
"""

import json
import logging
import os
import ssl
import threading
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# Configuration
API_VERSION = 2
DEFAULT_TIMEOUT = 60


class CLIError(Exception):
    """Base error class for CLI errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result: dict[str, Any] = {"error": self.message}
        if self.details:
            result["details"] = self.details
        return result


class APIError(CLIError):
    """API error with status code and message."""

    def __init__(self, message: str, status: int = 0, details: dict | None = None):
        super().__init__(message, details)
        self.status = status

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result = super().to_dict()
        if self.status:
            result["status"] = self.status
        return result


class AuthenticationError(APIError):
    """The server rejected the application credentials or returned no token."""


class RetrievalError(APIError):
    """The server answered a read with an explicit error payload."""


class TransportError(APIError):
    """Network or protocol failure before a usable response came back."""


class RequestTimeoutError(TransportError):
    """The request did not complete within the configured timeout."""


class ValidationError(CLIError):
    """Validation error for local input/data issues (not API errors)."""


class PreconditionError(ValidationError):
    """An operation was called on an object that cannot support it."""


# =============================================================================
# Auth state
# =============================================================================


@dataclass(frozen=True)
class Unauthenticated:
    """No session token held yet."""


@dataclass(frozen=True)
class Authenticated:
    """A session token obtained from the authentication endpoint."""

    token: str


AuthState = Unauthenticated | Authenticated


def encode_query(params: dict[str, Any]) -> str:
    """
    Encode a payload as a query string.

    List values become repeated ``name[]=value`` pairs in order, scalars
    become ``name=value``. ``None`` values are dropped.
    """
    pairs: list[str] = []
    for name, value in params.items():
        if value is None:
            continue
        key = urllib.parse.quote_plus(str(name))
        if isinstance(value, (list, tuple)):
            for item in value:
                pairs.append(f"{key}[]={_quote_value(item)}")
        else:
            pairs.append(f"{key}={_quote_value(value)}")
    return "&".join(pairs)


def _quote_value(value: Any) -> str:
    if isinstance(value, bool):
        value = "1" if value else "0"
    elif isinstance(value, dict):
        value = json.dumps(value)
    return urllib.parse.quote_plus(str(value))


class APIClient:
    """
    Low-level HTTP client for the netric API.

    Handles:
    - Session token acquisition from the application id/key pair
    - GET requests with query strings and POST requests with JSON bodies
    - Error handling and response parsing

    A token, once obtained, is reused until ``reset_auth()`` is called.
    The client never re-authenticates on its own after that.
    """

    def __init__(
        self,
        server: str | None = None,
        application_id: str | None = None,
        application_key: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        verify_ssl: bool = True,
    ):
        """
        Initialize the API client.

        Args:
            server: Server base URL such as https://test.netric.com (or NETRIC_SERVER env var)
            application_id: Application id approved for API access (or NETRIC_APP_ID env var)
            application_key: Private key of the application (or NETRIC_APP_KEY env var)
            timeout: Request timeout in seconds
            verify_ssl: Verify the server certificate

        """
        self.server = (server or os.environ.get("NETRIC_SERVER") or "").rstrip("/")
        self.application_id = application_id or os.environ.get("NETRIC_APP_ID")
        self.application_key = application_key or os.environ.get("NETRIC_APP_KEY")
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self._auth_state: AuthState = Unauthenticated()
        self._auth_lock = threading.Lock()

    @property
    def auth_state(self) -> AuthState:
        """Current authentication state."""
        return self._auth_state

    @property
    def is_authenticated(self) -> bool:
        """Check if a session token is held."""
        return isinstance(self._auth_state, Authenticated)

    def reset_auth(self) -> None:
        """
        Forget the session token so the next request authenticates again.

        The client never calls this itself; a token is kept until the caller resets it.
        """
        with self._auth_lock:
            self._auth_state = Unauthenticated()

    def _ensure_server(self) -> str:
        """Ensure the server URL is configured."""
        if not self.server:
            raise APIError("NETRIC_SERVER environment variable not set")
        return self.server

    def _build_url(self, controller: str, action: str) -> str:
        """Build full URL for a controller action."""
        return f"{self._ensure_server()}/api/{API_VERSION}/{controller}/{action}"

    def _ssl_context(self) -> ssl.SSLContext | None:
        if self.verify_ssl:
            return None
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    # =========================================================================
    # Authentication
    # =========================================================================

    def authenticate(self) -> str:
        """
        Exchange the application id/key for a session token.

        Returns:
            The session token

        Raises:
            AuthenticationError: If credentials are missing or rejected

        """
        if not self.application_id or not self.application_key:
            raise AuthenticationError("NETRIC_APP_ID and NETRIC_APP_KEY environment variables not set")

        query = encode_query({"username": self.application_id, "password": self.application_key})
        url = f"{self._build_url('authentication', 'authenticate')}?{query}"

        logger.info("Authenticating application %s against %s", self.application_id, self.server)
        result = self._send(urllib.request.Request(url, method="GET"))

        if not isinstance(result, dict):
            raise AuthenticationError("Auth failed: unexpected response from server")
        if result.get("result") != "SUCCESS":
            reason = result.get("reason") or "unknown reason"
            raise AuthenticationError(f"Auth failed: {reason}", details=result)

        token = result.get("session_token")
        if not token:
            raise AuthenticationError("Could not get auth token")
        return token

    def _ensure_token(self) -> str:
        """Return the session token, authenticating first if none is held."""
        with self._auth_lock:
            state = self._auth_state
            if isinstance(state, Authenticated):
                return state.token
            token = self.authenticate()
            self._auth_state = Authenticated(token)
            logger.debug("Session token stored")
            return token

    # =========================================================================
    # Requests
    # =========================================================================

    def _send(self, req: urllib.request.Request) -> Any:
        """
        Send a prepared request and decode the JSON response.

        Returns:
            Whatever the body decodes to, or None for an empty or non-JSON body

        Raises:
            TransportError: On connection failures or HTTP errors without a JSON body
            RequestTimeoutError: When the request exceeds the timeout

        """
        try:
            with urllib.request.urlopen(req, timeout=self.timeout, context=self._ssl_context()) as response:
                return _decode_body(response.read())

        except urllib.error.HTTPError as e:
            # Error bodies are JSON payloads like any other response
            try:
                error_body = e.read().decode("utf-8")
                return json.loads(error_body)
            except (json.JSONDecodeError, UnicodeDecodeError):
                raise TransportError(str(e), status=e.code)

        except urllib.error.URLError as e:
            if isinstance(e.reason, TimeoutError):
                raise RequestTimeoutError(f"Request timed out after {self.timeout} seconds")
            raise TransportError(f"Connection error: {e.reason}")

        except TimeoutError:
            raise RequestTimeoutError(f"Request timed out after {self.timeout} seconds")

    def send_request(
        self,
        controller: str,
        action: str,
        data: dict[str, Any] | None = None,
        method: str = "POST",
    ) -> Any:
        """
        Call a controller action, authenticating first if needed.

        Args:
            controller: Controller name (e.g. entity)
            action: Action within the controller (e.g. save)
            data: Payload; query string for GET, JSON body for POST
            method: GET or POST

        Returns:
            Parsed JSON response (any shape), or None if it did not parse

        Raises:
            AuthenticationError: If a token could not be obtained
            TransportError: On network failures

        """
        token = self._ensure_token()
        data = data or {}
        method = method.upper()

        url = self._build_url(controller, action)
        headers = {
            "Authentication": token,
            "Accept": "application/json",
        }
        body = None

        if method == "GET":
            query_string = encode_query(data)
            if query_string:
                url = f"{url}?{query_string}"
        else:
            body = json.dumps(data).encode("utf-8")
            headers["Content-Type"] = "application/json"

        logger.debug("%s %s/%s", method, controller, action)
        return self._send(urllib.request.Request(url, data=body, headers=headers, method=method))

    def get(self, controller: str, action: str, params: dict[str, Any] | None = None) -> Any:
        """Make a GET request."""
        return self.send_request(controller, action, params, method="GET")

    def post(self, controller: str, action: str, data: dict[str, Any] | None = None) -> Any:
        """Make a POST request."""
        return self.send_request(controller, action, data, method="POST")


def _decode_body(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Response body is not valid JSON (%d bytes)", len(raw))
        return None
