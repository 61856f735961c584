"""
redditkit: an async client for the Reddit API.

Example:
    >>> from redditkit import RedditClient
    >>> client = RedditClient.from_settings()
"""

from redditkit.reddit import (
    CommentTree,
    Listing,
    ListingStream,
    RedditAPIError,
    RedditClient,
    build_user_agent,
)

__version__ = "0.1.0"

__all__ = [
    "CommentTree",
    "Listing",
    "ListingStream",
    "RedditAPIError",
    "RedditClient",
    "build_user_agent",
    "__version__",
]
