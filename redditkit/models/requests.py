"""
Input models for client operations.

Each public ``RedditClient`` operation validates its arguments with one of
these models before any request is made, so bad input fails fast and
without spending rate limit budget.
"""

import re
from typing import Any, Literal, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = structlog.get_logger(__name__)

TimeFilter = Literal["hour", "day", "week", "month", "year", "all"]
PostSort = Literal["hot", "new", "rising", "top", "controversial"]
SearchSort = Literal["relevance", "hot", "top", "new", "comments"]
CommentSort = Literal["confidence", "top", "new", "controversial", "old", "qa"]
HistoryKind = Literal["overview", "submitted", "comments"]
HistorySort = Literal["hot", "new", "top", "controversial"]

# Sorts that take a ``t`` time window
TIMED_SORTS = frozenset({"top", "controversial"})
DEFAULT_TIME_FILTER = "day"

# Reddit stops paginating listings after roughly 1000 items
MAX_LISTING_ITEMS = 1000

SUBREDDIT_PATTERN = r"^[A-Za-z0-9_]+$"
USERNAME_PATTERN = r"^[A-Za-z0-9_-]{3,20}$"
BASE36_PATTERN = r"^[a-z0-9]{1,13}$"


def extract_post_id(post_id_or_url: str) -> str:
    """
    Extract a Reddit post id from the forms users paste.

    Handles:
    - Plain ID: "abc123"
    - With t3_ prefix: "t3_abc123"
    - Full URL: "https://reddit.com/r/python/comments/abc123/title/"
    - Short URL: "https://redd.it/abc123"

    Raises:
        ValueError: If the input is none of these

    Example:
        >>> extract_post_id("https://www.reddit.com/r/python/comments/xyz789/title/")
        'xyz789'
    """
    value = post_id_or_url.strip()

    if value.startswith("t3_"):
        value = value[3:]

    if "reddit.com" in value or "redd.it" in value:
        for pattern in (r"/comments/([a-z0-9]+)", r"redd\.it/([a-z0-9]+)"):
            match = re.search(pattern, value)
            if match:
                return match.group(1)
        raise ValueError(f"Could not extract post ID from URL: {post_id_or_url}")

    if not re.match(BASE36_PATTERN, value):
        raise ValueError(
            f"Invalid post ID format: {post_id_or_url}. "
            "Expected format: 'abc123', 't3_abc123', or full Reddit URL"
        )
    return value


def _strip_subreddit_prefix(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        for prefix in ("/r/", "r/"):
            if value.startswith(prefix):
                return value[len(prefix):]
    return value


def _settle_time_filter(model: Any) -> Any:
    """Fill in or drop ``time_filter`` depending on the sort."""
    sort = model.sort
    if sort in TIMED_SORTS and model.time_filter is None:
        model.time_filter = DEFAULT_TIME_FILTER
    elif sort not in TIMED_SORTS and model.time_filter is not None:
        logger.warning("time_filter_ignored", sort=sort, time_filter=model.time_filter)
        model.time_filter = None
    return model


class SubredditPostsInput(BaseModel):
    """
    Parameters for listing a subreddit's posts.

    ``time_filter`` only applies to top and controversial; it defaults to
    "day" for those, like Reddit's own listings.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"subreddit": "python", "sort": "top", "time_filter": "week", "limit": 50}
        },
    )

    subreddit: str = Field(
        ...,
        pattern=SUBREDDIT_PATTERN,
        description="Target subreddit name (without r/ prefix)",
    )
    sort: PostSort = Field("hot", description="Sort order for posts")
    time_filter: Optional[TimeFilter] = Field(
        None, description="Time range for top/controversial sorts"
    )
    limit: Optional[int] = Field(
        25, ge=1, le=MAX_LISTING_ITEMS, description="Maximum number of posts to return"
    )

    @field_validator("subreddit", mode="before")
    @classmethod
    def strip_prefix(cls, v: Any) -> Any:
        return _strip_subreddit_prefix(v)

    @model_validator(mode="after")
    def check_time_filter(self) -> "SubredditPostsInput":
        return _settle_time_filter(self)


class SearchInput(BaseModel):
    """Parameters for a site-wide or subreddit-restricted search."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "query": "machine learning",
                "subreddit": "MachineLearning",
                "time_filter": "week",
                "sort": "top",
                "limit": 50,
            }
        },
    )

    query: str = Field(..., min_length=1, max_length=500, description="Search query")
    subreddit: Optional[str] = Field(
        None,
        pattern=SUBREDDIT_PATTERN,
        description="Limit search to specific subreddit (optional)",
    )
    time_filter: TimeFilter = Field("all", description="Time range for search results")
    sort: SearchSort = Field("relevance", description="Sort order for results")
    limit: Optional[int] = Field(25, ge=1, le=MAX_LISTING_ITEMS)

    @field_validator("query")
    @classmethod
    def sanitize_query(cls, v: str) -> str:
        """Strip whitespace and null bytes; reject what is left empty."""
        sanitized = v.replace("\x00", "").strip()
        if not sanitized:
            raise ValueError("Query cannot be empty")
        return sanitized

    @field_validator("subreddit", mode="before")
    @classmethod
    def strip_prefix(cls, v: Any) -> Any:
        return _strip_subreddit_prefix(v)


class UserHistoryInput(BaseModel):
    """Parameters for a user's overview, submissions or comments."""

    username: str = Field(..., pattern=USERNAME_PATTERN)
    kind: HistoryKind = "overview"
    sort: HistorySort = "new"
    time_filter: Optional[TimeFilter] = None
    limit: Optional[int] = Field(25, ge=1, le=MAX_LISTING_ITEMS)

    @field_validator("username", mode="before")
    @classmethod
    def strip_prefix(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            for prefix in ("/u/", "u/"):
                if v.startswith(prefix):
                    return v[len(prefix):]
        return v

    @model_validator(mode="after")
    def check_time_filter(self) -> "UserHistoryInput":
        return _settle_time_filter(self)


class CommentTreeInput(BaseModel):
    """Parameters for loading a post's comments."""

    post_id: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Reddit post ID (with or without t3_ prefix) or full URL",
    )
    sort: CommentSort = Field("confidence", description="Comment sort order")
    depth: Optional[int] = Field(None, ge=1, le=10, description="Maximum reply depth")
    limit: Optional[int] = Field(None, ge=1, le=500, description="Maximum comments to load")

    @field_validator("post_id")
    @classmethod
    def clean_post_id(cls, v: str) -> str:
        return extract_post_id(v)

    @field_validator("sort", mode="before")
    @classmethod
    def map_best(cls, v: Any) -> Any:
        # The site calls it "best"; the API calls it "confidence"
        return "confidence" if v == "best" else v


class SelfPostInput(BaseModel):
    """A text post to submit."""

    subreddit: str = Field(..., pattern=SUBREDDIT_PATTERN)
    title: str = Field(..., min_length=1, max_length=300)
    text: str = Field("", max_length=40000)
    send_replies: bool = True

    @field_validator("subreddit", mode="before")
    @classmethod
    def strip_prefix(cls, v: Any) -> Any:
        return _strip_subreddit_prefix(v)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Title cannot be blank")
        return v


class CommentReplyInput(BaseModel):
    """A reply to a post (``t3_``) or a comment (``t1_``)."""

    parent_fullname: str = Field(..., pattern=r"^t[13]_[a-z0-9]+$")
    text: str = Field(..., min_length=1, max_length=10000)


class MessageInput(BaseModel):
    """A private message."""

    to: str = Field(..., pattern=USERNAME_PATTERN)
    subject: str = Field(..., min_length=1, max_length=100)
    text: str = Field(..., min_length=1, max_length=10000)


class StickyInput(BaseModel):
    """Pin or unpin a post in one of the subreddit's two sticky slots."""

    post_fullname: str = Field(..., pattern=r"^t3_[a-z0-9]+$")
    state: bool = True
    slot: Literal[1, 2] = 1
