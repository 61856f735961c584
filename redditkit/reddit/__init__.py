"""
Reddit API integration layer.

This package provides the complete Reddit API client including:
- RedditClient: Facade wiring one limiter, credential manager and executor
- CredentialManager: OAuth grant flows with single-flight token refresh
- AdaptiveRateLimiter: Header-reconciled steady budget plus a burst budget
- Listing, CommentTree, ListingStream: Lazy pagination, comment forests
  and polling streams
- Custom exception hierarchy for error handling

Example:
    >>> from redditkit.reddit import RedditClient, ScriptAuth
    >>> async with RedditClient(user_agent="python:demo:1.0 (by /u/me)") as client:
    ...     await client.authorize(ScriptAuth("id", "secret", "me", "hunter2"))
    ...     tree = await client.comment_tree("abc123")
"""

from redditkit.reddit.auth import (
    AuthFlow,
    ClientCredentialsAuth,
    Credential,
    CredentialManager,
    GrantType,
    InstalledAppAuth,
    ScriptAuth,
)
from redditkit.reddit.client import RedditClient, build_user_agent
from redditkit.reddit.comments import (
    Comment,
    CommentTree,
    LoadedComment,
    MoreComments,
    RemovedComment,
)
from redditkit.reddit.exceptions import (
    AuthenticationError,
    AuthNetworkError,
    DecodeError,
    ForbiddenError,
    InvalidCredentialsError,
    NotFoundError,
    RateLimitError,
    RedditAPIError,
    RejectedError,
    ServerError,
    TokenExpiredError,
    TransientError,
    ValidationError,
)
from redditkit.reddit.executor import RequestExecutor
from redditkit.reddit.listing import Listing, fetch_page
from redditkit.reddit.normalizer import (
    ResponseNormalizer,
    parse_message,
    parse_post,
    parse_subreddit,
    parse_thing,
    parse_user,
)
from redditkit.reddit.rate_limiter import AdaptiveRateLimiter, RateBudget, SlotPermit
from redditkit.reddit.retry import RetryPolicy
from redditkit.reddit.stream import ListingStream, StreamCursor

__all__ = [
    # Client
    "RedditClient",
    "build_user_agent",
    # Auth
    "AuthFlow",
    "ClientCredentialsAuth",
    "Credential",
    "CredentialManager",
    "GrantType",
    "InstalledAppAuth",
    "ScriptAuth",
    # Requests
    "RequestExecutor",
    "RetryPolicy",
    # Rate limiting
    "AdaptiveRateLimiter",
    "RateBudget",
    "SlotPermit",
    # Listings, comments and streams
    "Listing",
    "fetch_page",
    "Comment",
    "CommentTree",
    "LoadedComment",
    "MoreComments",
    "RemovedComment",
    "ListingStream",
    "StreamCursor",
    # Normalizers
    "ResponseNormalizer",
    "parse_message",
    "parse_post",
    "parse_subreddit",
    "parse_thing",
    "parse_user",
    # Exceptions
    "RedditAPIError",
    "AuthenticationError",
    "AuthNetworkError",
    "DecodeError",
    "ForbiddenError",
    "InvalidCredentialsError",
    "NotFoundError",
    "RateLimitError",
    "RejectedError",
    "ServerError",
    "TokenExpiredError",
    "TransientError",
    "ValidationError",
]
