"""
Custom exceptions for Reddit API integration.

This module defines the hierarchy of exceptions raised by the client.
Every exception carries a ``retryable`` flag so callers can tell a
failure that may succeed on a later attempt (network trouble, server
overload, throttling) apart from one that needs different input or
credentials.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .auth import Credential


class RedditAPIError(Exception):
    """
    Base exception for all Reddit API related errors.

    This is the parent class for all Reddit-specific exceptions.
    Use this for catching any Reddit-related error.
    """

    retryable: bool = False

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        """
        Initialize RedditAPIError.

        Args:
            message: Error description
            status_code: Optional HTTP status code from Reddit API
        """
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class AuthenticationError(RedditAPIError):
    """
    Raised when Reddit API authentication fails.

    This occurs when:
    - The client has not been authorized but the endpoint needs a user
    - An access token keeps being rejected after a refresh
    - Credentials are missing

    Example:
        >>> raise AuthenticationError("REDDIT_CLIENT_ID is required")
    """

    def __init__(self, message: str = "Reddit authentication failed") -> None:
        """
        Initialize AuthenticationError.

        Args:
            message: Error description (default: "Reddit authentication failed")
        """
        super().__init__(message, status_code=401)


class InvalidCredentialsError(AuthenticationError):
    """
    Raised when the token endpoint rejects the supplied credentials.

    Retrying with the same credentials cannot succeed.

    Example:
        >>> raise InvalidCredentialsError("invalid_grant")
    """

    def __init__(self, message: str = "Reddit rejected the supplied credentials") -> None:
        super().__init__(message)


class TokenExpiredError(AuthenticationError):
    """
    Raised when the API answers 401 to a request that carried a token.

    The request executor catches it, invalidates ``credential`` and
    retries once with a fresh token.
    """

    def __init__(
        self,
        credential: "Credential",
        message: str = "Access token expired or was revoked",
    ) -> None:
        self.credential = credential
        super().__init__(message)


class AuthNetworkError(AuthenticationError):
    """
    Raised when the token endpoint cannot be reached or is failing.

    This covers transport errors, throttling and 5xx responses from the
    token endpoint. It is retried with backoff by the credential manager.
    """

    retryable = True

    def __init__(
        self,
        message: str = "Could not reach the Reddit token endpoint",
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(RedditAPIError):
    """
    Raised when Reddit API rate limit is exceeded.

    Reddit answers 429 when a client exceeds its quota. This exception
    includes retry information taken from the response headers.

    Attributes:
        retry_after: Number of seconds to wait before retrying
        calls_made: Number of calls made in current window

    Example:
        >>> raise RateLimitError(retry_after=15, calls_made=600)
    """

    retryable = True

    def __init__(
        self,
        retry_after: float,
        calls_made: int = 0,
        message: str = "Reddit API rate limit exceeded"
    ) -> None:
        """
        Initialize RateLimitError.

        Args:
            retry_after: Seconds to wait before retrying
            calls_made: Number of calls made in current window
            message: Error description
        """
        self.retry_after = retry_after
        self.calls_made = calls_made
        super().__init__(message, status_code=429)

    def __str__(self) -> str:
        """Return formatted error message with retry information."""
        return f"{self.message} (retry after {self.retry_after}s, calls: {self.calls_made})"


class RejectedError(RedditAPIError):
    """
    Raised when Reddit rejects a request with a 4xx status.

    This is a client-side problem (bad parameters, missing resource,
    insufficient permissions) and is never retried.

    Attributes:
        body: Response body returned by Reddit (possibly truncated)

    Example:
        >>> raise RejectedError(400, body='{"error": "BAD_SR_NAME"}')
    """

    def __init__(
        self,
        status_code: int,
        body: str = "",
        message: Optional[str] = None,
    ) -> None:
        self.body = body
        if message is None:
            message = f"Reddit rejected the request with status {status_code}"
        super().__init__(message, status_code=status_code)


class NotFoundError(RejectedError):
    """
    Raised when requested Reddit resource is not found.

    This occurs when:
    - Subreddit doesn't exist or is banned
    - Post has been deleted or removed
    - User account is suspended or deleted

    Example:
        >>> raise NotFoundError("/r/invalidname/hot")
    """

    def __init__(self, resource: str, body: str = "") -> None:
        """
        Initialize NotFoundError.

        Args:
            resource: Path of the resource that was requested
            body: Response body returned by Reddit
        """
        self.resource = resource
        super().__init__(404, body=body, message=f"Resource '{resource}' not found")


class ForbiddenError(RejectedError):
    """
    Raised when access to Reddit resource is forbidden.

    This occurs when:
    - Subreddit is private and client lacks access
    - The token lacks the scope the endpoint needs
    - User is banned from subreddit

    Example:
        >>> raise ForbiddenError("/r/secret/about")
    """

    def __init__(self, resource: str, body: str = "") -> None:
        self.resource = resource
        super().__init__(403, body=body, message=f"Access to '{resource}' forbidden")


class ServerError(RedditAPIError):
    """
    Raised when Reddit API returns a server error.

    This occurs when Reddit's servers are:
    - Experiencing high load (503)
    - Encountering internal errors (500)
    - Temporarily unavailable (502)

    These errors are typically transient and are retried
    with exponential backoff.

    Example:
        >>> raise ServerError("Reddit API returned 503", status_code=503)
    """

    retryable = True

    def __init__(self, message: str, status_code: int = 500) -> None:
        """
        Initialize ServerError.

        Args:
            message: Error description
            status_code: HTTP status code (500, 502, or 503)
        """
        super().__init__(message, status_code=status_code)


class TransientError(RedditAPIError):
    """
    Raised when a request fails below HTTP (timeout, reset connection).

    Example:
        >>> raise TransientError("GET /r/python/new failed: ReadTimeout")
    """

    retryable = True

    def __init__(self, message: str = "Reddit API request failed in transport") -> None:
        super().__init__(message)


class DecodeError(RedditAPIError):
    """
    Raised when Reddit returns a payload that cannot be decoded.

    Attributes:
        payload: Offending payload (truncated for readability)
    """

    def __init__(self, message: str, payload: str = "") -> None:
        self.payload = payload[:500]
        super().__init__(message)


class ValidationError(RedditAPIError):
    """
    Raised when request parameters are invalid.

    This occurs when:
    - Required parameters are missing
    - Parameters have invalid values
    - Parameters violate Reddit API constraints

    This is a client-side error and should not be retried.

    Example:
        >>> raise ValidationError("must be 1 or 2", field="slot")
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        """
        Initialize ValidationError.

        Args:
            message: Error description
            field: Optional field name that failed validation
        """
        self.field = field

        if field:
            message = f"{field}: {message}"

        super().__init__(message, status_code=422)


def rejected_for_status(status_code: int, resource: str, body: str = "") -> RejectedError:
    """Build the most specific RejectedError for a 4xx status."""
    if status_code == 404:
        return NotFoundError(resource, body=body)
    if status_code == 403:
        return ForbiddenError(resource, body=body)
    return RejectedError(
        status_code,
        body=body,
        message=f"Reddit rejected '{resource}' with status {status_code}",
    )
