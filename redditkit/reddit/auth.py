"""
OAuth2 credential management for the Reddit API.

Supports three grant flows:

- ``ScriptAuth``: a "script" app acting as its developer's own account
  (password grant, confidential client).
- ``InstalledAppAuth``: a public "installed app" without a secret, limited
  to application-only access (installed_client grant).
- ``ClientCredentialsAuth``: a confidential app in read-only,
  application-only mode (client_credentials grant).

None of these grants hands out a refresh token, so refreshing a credential
means repeating the original exchange. ``CredentialManager`` does that
transparently, once, no matter how many callers notice the expiry at the
same time.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

import httpx
import pydantic
import structlog

from redditkit.models.things import TokenResponse

from .exceptions import (
    AuthenticationError,
    AuthNetworkError,
    DecodeError,
    InvalidCredentialsError,
)
from .rate_limiter import AdaptiveRateLimiter
from .retry import RetryPolicy

logger = structlog.get_logger(__name__)

DEFAULT_TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
DEFAULT_DEVICE_ID = "DO_NOT_TRACK_THIS_DEVICE"


class GrantType(str, Enum):
    """OAuth grant types understood by Reddit's token endpoint."""

    SCRIPT = "password"
    INSTALLED_APP = "https://oauth.reddit.com/grants/installed_client"
    CLIENT_CREDENTIALS = "client_credentials"


@dataclass(frozen=True)
class ScriptAuth:
    """Credentials of a script app logging in as a user."""

    client_id: str
    client_secret: str
    username: str
    password: str

    grant_type = GrantType.SCRIPT

    def basic_auth(self) -> tuple[str, str]:
        return (self.client_id, self.client_secret)

    def form(self) -> dict[str, str]:
        return {
            "grant_type": self.grant_type.value,
            "username": self.username,
            "password": self.password,
        }


@dataclass(frozen=True)
class InstalledAppAuth:
    """Credentials of an installed app; there is no client secret."""

    client_id: str
    device_id: str = DEFAULT_DEVICE_ID

    grant_type = GrantType.INSTALLED_APP

    def basic_auth(self) -> tuple[str, str]:
        return (self.client_id, "")

    def form(self) -> dict[str, str]:
        return {"grant_type": self.grant_type.value, "device_id": self.device_id}


@dataclass(frozen=True)
class ClientCredentialsAuth:
    """Credentials of a confidential app in application-only mode."""

    client_id: str
    client_secret: str

    grant_type = GrantType.CLIENT_CREDENTIALS

    def basic_auth(self) -> tuple[str, str]:
        return (self.client_id, self.client_secret)

    def form(self) -> dict[str, str]:
        return {"grant_type": self.grant_type.value}


AuthFlow = Union[ScriptAuth, InstalledAppAuth, ClientCredentialsAuth]


@dataclass(frozen=True)
class Credential:
    """
    An access token and the state needed to replace it.

    Credentials are immutable: a refresh produces a new instance.

    Attributes:
        access_token: Bearer token
        expires_at: Expiry as a UNIX timestamp
        grant_type: Flow that produced the token
        token_type: Token type reported by Reddit ("bearer")
        scope: Scopes granted
        refresh_token: Always None for the supported grants
        generation: 1 for the first token, incremented on every refresh
    """

    access_token: str
    expires_at: float
    grant_type: GrantType
    token_type: str = "bearer"
    scope: str = "*"
    refresh_token: Optional[str] = None
    generation: int = 1

    def expires_within(self, seconds: float, now: float) -> bool:
        return now + seconds >= self.expires_at

    @property
    def authorization(self) -> str:
        return f"bearer {self.access_token}"

    def __repr__(self) -> str:
        # Keep tokens out of tracebacks and log lines
        return (
            f"Credential(grant_type={self.grant_type.name}, "
            f"expires_at={self.expires_at:.0f}, generation={self.generation})"
        )


class CredentialManager:
    """
    Obtains access tokens and keeps one valid for every caller.

    Example:
        >>> manager = CredentialManager(http, user_agent="python:demo:1.0 (by /u/me)")
        >>> await manager.authorize(ScriptAuth("id", "secret", "me", "hunter2"))
        >>> credential = await manager.current_token()
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        user_agent: str,
        token_url: str = DEFAULT_TOKEN_URL,
        retry_policy: Optional[RetryPolicy] = None,
        rate_limiter: Optional[AdaptiveRateLimiter] = None,
        refresh_skew_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._http = http
        self._user_agent = user_agent
        self._token_url = token_url
        self._retry_policy = retry_policy or RetryPolicy()
        self._rate_limiter = rate_limiter
        self._clock = clock
        self.refresh_skew_seconds = refresh_skew_seconds

        self._flow: Optional[AuthFlow] = None
        self._credential: Optional[Credential] = None
        self._generation = 0
        self._last_expires_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def is_authorized(self) -> bool:
        """True once a flow has been configured with ``authorize``."""
        return self._flow is not None

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    @property
    def grant_type(self) -> Optional[GrantType]:
        return self._flow.grant_type if self._flow else None

    async def authorize(self, flow: AuthFlow) -> Credential:
        """
        Run a grant flow and keep the resulting credential.

        Raises:
            InvalidCredentialsError: Reddit rejected the credentials
            AuthNetworkError: Token endpoint unreachable after retries
            DecodeError: Token endpoint answered with a malformed payload
        """
        async with self._lock:
            logger.info(
                "authorizing",
                grant_type=flow.grant_type.name,
                client_id=f"{flow.client_id[:8]}...",
            )
            # The previous flow and credential stay in place if the exchange fails
            credential = await self._obtain(flow)
            self._flow = flow
            return credential

    async def current_token(self) -> Credential:
        """
        Return a credential valid for at least ``refresh_skew_seconds``.

        Only the first caller to notice an expiring token refreshes it; the
        others wait for the lock and reuse the new credential.

        Raises:
            AuthenticationError: ``authorize`` was never called
        """
        credential = self._credential
        if credential is not None and not self._needs_refresh(credential):
            return credential

        if self._flow is None:
            raise AuthenticationError("Client is not authorized; call authorize() first")

        async with self._lock:
            credential = self._credential
            if credential is not None and not self._needs_refresh(credential):
                return credential
            logger.info(
                "token_refresh_started",
                reason="missing" if credential is None else "expiring",
            )
            return await self._obtain(self._flow)

    def invalidate(self, credential: Credential) -> None:
        """
        Forget ``credential`` if it is still the current one.

        A credential that another caller already replaced is left alone so
        concurrent 401s do not discard a fresh token.
        """
        if self._credential is credential:
            logger.info("token_invalidated", generation=credential.generation)
            self._credential = None

    def _needs_refresh(self, credential: Credential) -> bool:
        return credential.expires_within(self.refresh_skew_seconds, self._clock())

    async def _obtain(self, flow: AuthFlow) -> Credential:
        async for attempt in self._retry_policy.retrying(AuthNetworkError):
            with attempt:
                token = await self._request_token(flow)

        expires_at = self._clock() + token.expires_in
        if expires_at <= self._last_expires_at:
            expires_at = self._last_expires_at + 1e-3
        self._last_expires_at = expires_at

        self._generation += 1
        credential = Credential(
            access_token=token.access_token,
            expires_at=expires_at,
            grant_type=flow.grant_type,
            token_type=token.token_type,
            scope=token.scope,
            generation=self._generation,
        )
        self._credential = credential

        logger.info(
            "token_acquired",
            grant_type=flow.grant_type.name,
            expires_in=token.expires_in,
            scope=token.scope,
            generation=credential.generation,
        )
        return credential

    async def _request_token(self, flow: AuthFlow) -> TokenResponse:
        if self._rate_limiter is not None:
            await self._rate_limiter.acquire_slot()

        try:
            response = await self._http.post(
                self._token_url,
                auth=flow.basic_auth(),
                data=flow.form(),
                headers={"User-Agent": self._user_agent},
            )
        except httpx.TransportError as e:
            logger.warning("token_request_transport_error", error=str(e))
            raise AuthNetworkError(f"Token request failed: {e}") from e

        if self._rate_limiter is not None:
            self._rate_limiter.update_from_headers(response.headers)

        status = response.status_code
        if status in (400, 401, 403):
            logger.error("token_request_rejected", status=status)
            raise InvalidCredentialsError(
                f"Token endpoint rejected credentials with status {status}"
            )
        if status == 429 or status >= 500:
            raise AuthNetworkError(
                f"Token endpoint returned status {status}", status_code=status
            )
        if not response.is_success:
            raise AuthenticationError(f"Unexpected token endpoint status {status}")

        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError("Token endpoint returned invalid JSON", response.text) from e

        if isinstance(payload, dict) and "error" in payload:
            logger.error("token_request_rejected", status=status, error=payload["error"])
            raise InvalidCredentialsError(f"Token endpoint error: {payload['error']}")

        try:
            return TokenResponse.model_validate(payload)
        except pydantic.ValidationError as e:
            raise DecodeError("Token endpoint returned an unexpected payload", response.text) from e
