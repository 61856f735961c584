"""Pydantic models for Reddit things and operation inputs."""

from redditkit.models.things import (
    Message,
    Post,
    RedditThing,
    SubmissionResult,
    Subreddit,
    TokenResponse,
    User,
)

__all__ = [
    "Message",
    "Post",
    "RedditThing",
    "SubmissionResult",
    "Subreddit",
    "TokenResponse",
    "User",
]
