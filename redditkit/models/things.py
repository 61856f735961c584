"""
Pydantic models for Reddit "things" and auth payloads.

Reddit wraps every object in ``{"kind": "t3", "data": {...}}``. These
models describe the ``data`` part of the kinds the client decodes. Unknown
fields are ignored and optional fields fall back to defaults, since Reddit
omits many of them for deleted or partially visible content.
"""
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DELETED_AUTHOR = "[deleted]"


class RedditThing(BaseModel):
    """Common base for things identified by ``<kind>_<id>`` fullnames."""

    model_config = ConfigDict(extra="ignore")

    KIND: ClassVar[str] = ""

    id: str = Field(..., min_length=1, description="Base36 identifier")
    name: str = Field("", description="Fullname, e.g. t3_abc123")

    @property
    def fullname(self) -> str:
        return self.name or f"{self.KIND}_{self.id}"


class TokenResponse(BaseModel):
    """
    Body returned by the OAuth token endpoint.

    Example:
        >>> TokenResponse.model_validate(
        ...     {"access_token": "abc", "expires_in": 3600, "token_type": "bearer"}
        ... ).expires_in
        3600
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(..., min_length=1)
    expires_in: int = Field(..., gt=0, description="Token lifetime in seconds")
    token_type: str = Field("bearer")
    scope: str = Field("*")


class Post(RedditThing):
    """
    A link or self post (kind ``t3``).

    Mirrors the fields the client exposes for posts; ``selftext`` is kept
    whole rather than truncated.
    """

    KIND: ClassVar[str] = "t3"

    title: str = ""
    author: str = DELETED_AUTHOR
    subreddit: str = ""
    created_utc: float = 0.0
    score: int = 0
    upvote_ratio: Optional[float] = None
    num_comments: int = 0
    url: str = ""
    permalink: str = ""
    selftext: str = ""
    link_flair_text: Optional[str] = None
    is_self: bool = False
    is_video: bool = False
    over_18: bool = False
    spoiler: bool = False
    stickied: bool = False
    locked: bool = False
    archived: bool = False

    @field_validator("author", mode="before")
    @classmethod
    def default_author(cls, v: Any) -> str:
        """Deleted accounts come back as null or "[deleted]"."""
        return v or DELETED_AUTHOR

    @property
    def permalink_url(self) -> str:
        return f"https://reddit.com{self.permalink}" if self.permalink else ""


class User(RedditThing):
    """
    A Reddit account (kind ``t2``), public or the authorized user.
    """

    KIND: ClassVar[str] = "t2"

    created_utc: float = 0.0
    link_karma: int = 0
    comment_karma: int = 0
    is_gold: bool = False
    is_mod: bool = False
    is_employee: bool = False
    has_verified_email: bool = False
    icon_img: Optional[str] = None

    @property
    def username(self) -> str:
        # /api/v1/me and /user/<name>/about both carry the name in "name"
        return self.name

    @property
    def fullname(self) -> str:
        return f"t2_{self.id}"


class Subreddit(RedditThing):
    """A community (kind ``t5``)."""

    KIND: ClassVar[str] = "t5"

    display_name: str = ""
    title: str = ""
    public_description: str = ""
    subscribers: Optional[int] = None
    active_user_count: Optional[int] = None
    created_utc: float = 0.0
    over18: bool = False
    url: str = ""
    submission_type: str = "any"


class Message(RedditThing):
    """A private message (kind ``t4``)."""

    KIND: ClassVar[str] = "t4"

    author: str = DELETED_AUTHOR
    dest: str = ""
    subject: str = ""
    body: str = ""
    created_utc: float = 0.0
    new: bool = False
    parent_id: Optional[str] = None

    @field_validator("author", mode="before")
    @classmethod
    def default_author(cls, v: Any) -> str:
        return v or DELETED_AUTHOR


class SubmissionResult(BaseModel):
    """Data block returned by /api/submit."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    url: str = ""
