# ABOUTME: HTTP request executor and token-refreshing AuthClient for the Realm Admin API
# ABOUTME: Attaches bearer tokens, refreshes on 401, and converts error responses to RealmError

"""
Realm Admin API transport with transparent token refresh.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

Every Admin API call in realm-cli goes through two layers defined here:

1. RequestExecutor: issues ONE HTTP request through an httpx.AsyncClient.
   No retries, no auth; it only knows the base URL and the timeout.

2. AuthClient: wraps any executor and makes the request authenticated:
   - attaches "Authorization: Bearer <access token>"
   - if the API answers 401 Unauthorized, exchanges the refresh token for a
     new access token and replays the ORIGINAL request exactly once

Higher-level code (RealmClient in api.py, the hosting sync engine) never
deals with token lifetimes; an expired session simply costs one extra round
trip.

=============================================================================
THE REFRESH FLOW
=============================================================================

    worker                 AuthClient                     Admin API
      |  PUT /asset           |                               |
      |---------------------->|  PUT /asset (Bearer old)      |
      |                       |------------------------------>|
      |                       |<-------------- 401 -----------|
      |                       |  POST /auth/session           |
      |                       |  (Bearer <refresh token>)     |
      |                       |------------------------------>|
      |                       |<------- 201 {access_token} ---|
      |                       |  PUT /asset (Bearer new)      |
      |                       |------------------------------>|
      |<---------- 204 -------|<-------------- 204 -----------|

Only ONE refresh is attempted per request. If the replayed request fails or
comes back 401 again, that response is returned as-is; this is what stops
an endless refresh loop when the refresh token itself has been revoked.

=============================================================================
CONCURRENT REFRESHES
=============================================================================

The hosting sync engine runs several workers against one AuthClient. When
the access token expires, all of them may get a 401 at about the same time.
Refreshes are serialized with an asyncio.Lock, and a worker that waited on
the lock checks whether the token it was rejected with is still the current
one. If another worker already replaced it, the waiting worker skips its own
refresh and just replays with the new token (single-flight).

=============================================================================
WHY BUFFERED BODIES?
=============================================================================

A request has to be replayable after a refresh, so RequestOptions carries
the body as bytes rather than a stream. Hosting assets are read fully into
memory before upload for the same reason.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Protocol

import httpx
import structlog

from realm_cli import __version__
from realm_cli.auth import AuthResponse

if TYPE_CHECKING:
    from realm_cli.config import Profile

logger = structlog.get_logger(__name__)

AUTH_SESSION_ROUTE = "/auth/session"


# =============================================================================
# SECRET MASKING
# =============================================================================

# Error bodies are echoed back to the user and to the log; the API sometimes
# includes token or key material in them.
SECRET_PATTERNS = [
    (re.compile(r"(token[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.I), r"\1***MASKED***"),
    (re.compile(r"(password[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.I), r"\1***MASKED***"),
    (re.compile(r"(api[_-]?key[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.I), r"\1***MASKED***"),
    (re.compile(r"(bearer\s+)[^\s\"']+", re.I), r"\1***MASKED***"),
]


def mask_secrets(text: str) -> str:
    """Replace token, password, and API key values in free text."""
    for pattern, replacement in SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


# =============================================================================
# ERRORS
# =============================================================================


class RealmError(Exception):
    """
    Structured Admin API error.

    Keeps the HTTP status code so callers can branch on it (404 vs 500) and
    formats into a single readable line for the user.

    USAGE:
    ------
    try:
        await client.delete_asset(group_id, app_id, "/index.html")
    except RealmError as e:
        print(e.code, e.message)
    """

    def __init__(self, code: int, message: str, details: str | None = None) -> None:
        """
        Initialize a Realm error.

        Args:
            code: HTTP status code (0 when no response was involved)
            message: What the client was trying to do, or the API's message
            details: Error text extracted from the response body (optional)
        """
        self.code = code
        self.message = message
        self.details = details
        super().__init__(str(self))

    def __str__(self) -> str:
        base = f"Realm API error ({self.code}): {self.message}"
        if self.details:
            base += f" - {self.details}"
        return base


class RealmAuthError(RealmError):
    """Login or session refresh failed."""


def status_text(response: httpx.Response) -> str:
    """Format the status line like "401 Unauthorized"."""
    return f"{response.status_code} {response.reason_phrase}".strip()


def error_from_response(response: httpx.Response, message: str | None = None) -> RealmError:
    """
    Build a RealmError from an unexpected API response.

    The Admin API reports errors as {"error": "...", "error_code": "..."}.
    When the body is empty the status text is used; when it is not JSON the
    raw body is used.

    Args:
        response: The unexpected response (its body must already be read)
        message: What the client was trying to do, e.g. "failed to delete asset"

    Returns:
        RealmError carrying the status code and extracted details.
    """
    body = response.text
    if not body:
        details = status_text(response)
    else:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict) and payload.get("error"):
            details = str(payload["error"])
        else:
            details = body[:500]

    return RealmError(
        code=response.status_code,
        message=message or status_text(response),
        details=mask_secrets(details),
    )


def check_status(response: httpx.Response, expected: int, message: str) -> None:
    """Raise a RealmError unless the response has the expected status."""
    if response.status_code != expected:
        raise error_from_response(response, message)


# =============================================================================
# REQUEST EXECUTOR
# =============================================================================


@dataclass(frozen=True)
class RequestOptions:
    """
    Everything about a request except its method and path.

    Frozen so the AuthClient can derive per-attempt copies (with different
    Authorization headers) without touching the caller's options.
    """

    body: bytes | None = None
    headers: Mapping[str, str] | None = None
    params: Mapping[str, str] | None = None


class Executor(Protocol):
    """Anything that can issue a single HTTP request."""

    async def execute_request(
        self,
        method: str,
        path: str,
        options: RequestOptions | None = None,
    ) -> httpx.Response: ...


class RequestExecutor:
    """
    Issues single HTTP requests against the Admin API base URL.

    ALWAYS use the context manager pattern so the connection pool is closed:

        async with RequestExecutor(settings.base_url) as executor:
            response = await executor.execute_request("GET", "/auth/profile")
    """

    def __init__(self, base_url: str, timeout: float = 30.0) -> None:
        """
        Args:
            base_url: Admin API base URL, e.g. "https://realm.mongodb.com/api/admin/v3.0"
            timeout: Per-request timeout in seconds
        """
        self._base_url = base_url
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> RequestExecutor:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": f"realm-cli/{__version__}"},
            timeout=self._timeout,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def execute_request(
        self,
        method: str,
        path: str,
        options: RequestOptions | None = None,
    ) -> httpx.Response:
        """
        Make one HTTP request. No retries, no status interpretation.

        Args:
            method: HTTP method ("GET", "PUT", ...)
            path: API path relative to the base URL (e.g. "/auth/session")
            options: Body, headers, and query parameters

        Returns:
            The response, whatever its status code.

        Raises:
            httpx.HTTPError: On transport failures (connection, timeout)
            RuntimeError: If used outside 'async with'
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        options = options or RequestOptions()
        log = logger.bind(method=method, path=path)
        log.debug("Making Realm API request")

        response = await self._client.request(
            method,
            path,
            content=options.body,
            headers=dict(options.headers) if options.headers else None,
            params=dict(options.params) if options.params else None,
        )
        log.debug("Realm API response", status=response.status_code)
        return response


# =============================================================================
# AUTHENTICATING CLIENT
# =============================================================================


class AuthClient:
    """
    Executor decorator that authenticates every request.

    Holds the user's Profile (the credential state) and a callback used to
    persist it after a successful refresh. The Profile is only mutated after a
    refresh SUCCEEDS; a failed refresh leaves the stored tokens untouched.
    """

    def __init__(
        self,
        executor: Executor,
        profile: Profile,
        on_refresh: Callable[[Profile], None] | None = None,
    ) -> None:
        """
        Args:
            executor: The inner request executor
            profile: Credentials; access_token and refresh_token are read on
                every request and replaced after a refresh
            on_refresh: Called with the updated profile after each successful
                refresh, typically ProfileStore.write
        """
        self._executor = executor
        self._profile = profile
        self._on_refresh = on_refresh
        self._refresh_lock = asyncio.Lock()

    @property
    def profile(self) -> Profile:
        return self._profile

    async def refresh_auth(self) -> AuthResponse:
        """
        Exchange the refresh token for a new access token.

        POSTs /auth/session with the REFRESH token as the bearer. The caller
        decides what to do with the returned tokens.

        Returns:
            AuthResponse with the new access token (and possibly a new
            refresh token).

        Raises:
            RealmAuthError: If the API does not answer 201 Created
            pydantic.ValidationError: If the body is not a valid auth response
            httpx.HTTPError: On transport failures
        """
        response = await self._executor.execute_request(
            "POST",
            AUTH_SESSION_ROUTE,
            RequestOptions(headers={"Authorization": f"Bearer {self._profile.refresh_token}"}),
        )
        try:
            if response.status_code != httpx.codes.CREATED:
                raise RealmAuthError(
                    code=response.status_code,
                    message=f"{status_text(response)}: failed to refresh auth",
                )
            return AuthResponse.model_validate_json(response.content)
        finally:
            await response.aclose()

    async def execute_request(
        self,
        method: str,
        path: str,
        options: RequestOptions | None = None,
    ) -> httpx.Response:
        """
        Make an authenticated request, refreshing the session once on 401.

        Args:
            method: HTTP method
            path: API path relative to the base URL
            options: Body, headers, and query parameters. The caller's headers
                are copied, never modified.

        Returns:
            The response of the original request, or of its single replay
            after a refresh. Any status other than 401 is passed through.

        Raises:
            RealmAuthError: If the session refresh fails (the request is then
                not replayed)
            httpx.HTTPError: On transport failures
        """
        options = options or RequestOptions()

        if self._profile.access_token_expired():
            logger.debug("Access token expired, refreshing before request", path=path)
            await self._refresh_session(self._profile.access_token)

        sent_token = self._profile.access_token
        response = await self._executor.execute_request(
            method, path, self._authorized(options, sent_token)
        )
        if response.status_code != httpx.codes.UNAUTHORIZED:
            return response

        await response.aclose()
        logger.info("Access token rejected, refreshing session", method=method, path=path)
        await self._refresh_session(sent_token)

        return await self._executor.execute_request(
            method, path, self._authorized(options, self._profile.access_token)
        )

    async def _refresh_session(self, stale_token: str) -> None:
        """Refresh unless another caller already replaced stale_token."""
        async with self._refresh_lock:
            if self._profile.access_token != stale_token:
                logger.debug("Session already refreshed by a concurrent request")
                return

            auth = await self.refresh_auth()
            self._profile.access_token = auth.access_token
            if auth.refresh_token:
                self._profile.refresh_token = auth.refresh_token
            if self._on_refresh:
                self._on_refresh(self._profile)
            logger.info("Session refreshed")

    @staticmethod
    def _authorized(options: RequestOptions, token: str) -> RequestOptions:
        headers: dict[str, Any] = dict(options.headers or {})
        headers["Authorization"] = f"Bearer {token}"
        return replace(options, headers=headers)
