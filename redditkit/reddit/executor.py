"""
Signed, rate-limited and retried dispatch of Reddit API requests.

Every request made by the client, listings, comment trees and streams goes
through ``RequestExecutor.execute``:

1. acquire a slot from the rate limiter
2. attach a bearer token when the client is authorized
3. send the request and feed the rate limit headers back to the limiter
4. classify the response and retry what can be retried
"""

import time
from typing import Any, Optional

import httpx
import structlog

from redditkit.utils.logger import log_request

from .auth import Credential, CredentialManager
from .exceptions import (
    AuthenticationError,
    DecodeError,
    RateLimitError,
    ServerError,
    TokenExpiredError,
    TransientError,
    rejected_for_status,
)
from .rate_limiter import RESET_HEADER, AdaptiveRateLimiter
from .retry import RetryPolicy

logger = structlog.get_logger(__name__)

DEFAULT_OAUTH_BASE_URL = "https://oauth.reddit.com"
DEFAULT_PUBLIC_BASE_URL = "https://www.reddit.com"

# Keep rejected bodies short in exceptions and logs
_BODY_PREVIEW = 500


class RequestExecutor:
    """
    Dispatches API requests on behalf of one client.

    Authorized requests go to the OAuth host. Anonymous requests go to the
    public host with ``.json`` appended to the path.

    Example:
        >>> executor = RequestExecutor(http, limiter, credentials, user_agent=ua)
        >>> me = await executor.execute_json("GET", "/api/v1/me")
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        rate_limiter: AdaptiveRateLimiter,
        credentials: Optional[CredentialManager] = None,
        *,
        user_agent: str,
        retry_policy: Optional[RetryPolicy] = None,
        oauth_base_url: str = DEFAULT_OAUTH_BASE_URL,
        public_base_url: str = DEFAULT_PUBLIC_BASE_URL,
    ) -> None:
        self.http = http
        self.rate_limiter = rate_limiter
        self.credentials = credentials
        self.user_agent = user_agent
        self.retry_policy = retry_policy or RetryPolicy()
        self.oauth_base_url = oauth_base_url.rstrip("/")
        self.public_base_url = public_base_url.rstrip("/")

    async def execute(
        self,
        method: str,
        path: str,
        *,
        auth_required: bool = True,
        params: Optional[dict[str, Any]] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Send a request and return the successful response.

        A 401 on a request that carried a token invalidates the token and
        retries once with a fresh one. Throttling, server errors and
        transport failures are retried under the retry policy.

        Args:
            method: HTTP method
            path: API path starting with ``/``
            auth_required: Fail instead of going anonymous when the client
                is not authorized
            params: Query parameters
            data: Form body

        Raises:
            AuthenticationError: Not authorized, or the token was rejected twice
            RateLimitError: Still throttled after the last attempt
            ServerError: Still failing after the last attempt
            TransientError: Transport still failing after the last attempt
            RejectedError: Reddit rejected the request (4xx)
        """
        refreshed = False
        async for attempt in self.retry_policy.retrying(RateLimitError, ServerError, TransientError):
            with attempt:
                while True:
                    try:
                        return await self._dispatch(
                            method,
                            path,
                            auth_required=auth_required,
                            params=params,
                            data=data,
                            attempt=attempt.retry_state.attempt_number,
                        )
                    except TokenExpiredError as e:
                        if refreshed or self.credentials is None:
                            raise AuthenticationError(
                                "Access token rejected after refresh"
                            ) from e
                        refreshed = True
                        self.credentials.invalidate(e.credential)
                        logger.info("token_rejected_refreshing", path=path)
        raise AssertionError("unreachable")  # pragma: no cover

    async def execute_json(
        self,
        method: str,
        path: str,
        *,
        auth_required: bool = True,
        params: Optional[dict[str, Any]] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Like ``execute`` but returns the decoded JSON body.

        Raises:
            DecodeError: The body is not JSON
        """
        response = await self.execute(
            method, path, auth_required=auth_required, params=params, data=data
        )
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"{method} {path} returned invalid JSON", response.text) from e

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.execute_json("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.execute_json("POST", path, **kwargs)

    def _build_url(self, path: str, authorized: bool) -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        if authorized:
            return f"{self.oauth_base_url}{path}"
        return f"{self.public_base_url}{path.rstrip('/')}.json"

    async def _dispatch(
        self,
        method: str,
        path: str,
        *,
        auth_required: bool,
        params: Optional[dict[str, Any]],
        data: Optional[dict[str, Any]],
        attempt: int,
    ) -> httpx.Response:
        credential: Optional[Credential] = None
        authorized = self.credentials is not None and self.credentials.is_authorized
        if auth_required and not authorized:
            raise AuthenticationError(f"{method} {path} requires an authorized client")

        await self.rate_limiter.acquire_slot()

        headers = {"User-Agent": self.user_agent}
        if authorized:
            credential = await self.credentials.current_token()
            headers["Authorization"] = credential.authorization

        url = self._build_url(path, authorized=credential is not None)
        start = time.perf_counter()
        try:
            response = await self.http.request(
                method, url, params=params, data=data, headers=headers
            )
        except httpx.TransportError as e:
            duration_ms = (time.perf_counter() - start) * 1000
            log_request(method, path, None, duration_ms, attempt=attempt, error=type(e).__name__)
            raise TransientError(f"{method} {path} failed: {type(e).__name__}: {e}") from e

        duration_ms = (time.perf_counter() - start) * 1000
        self.rate_limiter.update_from_headers(response.headers)

        status = response.status_code
        log_request(
            method,
            path,
            status,
            duration_ms,
            attempt=attempt,
            error=None if response.is_success else f"HTTP {status}",
            remaining=self.rate_limiter.budget.steady_remaining,
        )

        if response.is_success:
            return response

        if status == 401:
            if credential is not None:
                raise TokenExpiredError(credential)
            raise AuthenticationError(f"{method} {path} was rejected as unauthorized")

        if status == 429:
            retry_after = min(_retry_after(response), self.retry_policy.max_retry_after)
            self.rate_limiter.note_throttled(retry_after)
            raise RateLimitError(
                retry_after=retry_after,
                calls_made=self.rate_limiter.used,
            )

        if status >= 500:
            raise ServerError(f"Reddit API returned {status} for {path}", status_code=status)

        raise rejected_for_status(status, path, body=response.text[:_BODY_PREVIEW])


def _retry_after(response: httpx.Response) -> float:
    for header in ("retry-after", RESET_HEADER):
        value = response.headers.get(header)
        if value is None:
            continue
        try:
            return max(float(value), 0.0)
        except ValueError:
            logger.warning("retry_after_invalid", header=header, value=value)
    return 1.0
