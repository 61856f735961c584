"""
Decoding of Reddit "things" into typed objects.

Every object Reddit returns is wrapped as ``{"kind": ..., "data": ...}``.
This module maps each kind to its model:

- ``t1`` / ``more``: comment variants (see ``redditkit.reddit.comments``)
- ``t2``: ``User``
- ``t3``: ``Post``
- ``t4``: ``Message``
- ``t5``: ``Subreddit``

Listings hold whatever kinds the endpoint returns (a user's overview mixes
posts and comments), so ``parse_thing`` is the default parser for listings.
"""

from typing import Any, Callable, Type, TypeVar, Union

import pydantic

from redditkit.models.things import Message, Post, Subreddit, User

from .comments import Comment, parse_comment
from .exceptions import DecodeError

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)

Thing = Union[Post, User, Subreddit, Message, Comment]


class ResponseNormalizer:
    """
    Decoder for Reddit API payloads.

    All methods are static and can be called without instantiation.

    Example:
        >>> post = ResponseNormalizer.parse_thing({"kind": "t3", "data": {"id": "abc"}})
        >>> post.fullname
        't3_abc'
    """

    @staticmethod
    def split_thing(child: Any) -> tuple[str, dict[str, Any]]:
        """
        Split a ``{"kind", "data"}`` wrapper.

        Raises:
            DecodeError: ``child`` is not a thing wrapper
        """
        if not isinstance(child, dict):
            raise DecodeError("Expected a thing object", repr(child))
        kind = child.get("kind")
        data = child.get("data")
        if not isinstance(kind, str) or not isinstance(data, dict):
            raise DecodeError("Thing is missing kind or data", repr(child))
        return kind, data

    @staticmethod
    def validate_model(model: Type[ModelT], data: Any) -> ModelT:
        """Validate ``data`` against ``model``, raising DecodeError on failure."""
        try:
            return model.model_validate(data)
        except pydantic.ValidationError as e:
            raise DecodeError(
                f"Could not decode {model.__name__}: {e.error_count()} invalid field(s)",
                repr(data),
            ) from e

    @staticmethod
    def parse_post(child: dict[str, Any]) -> Post:
        """
        Decode a ``t3`` thing.

        Example:
            >>> post = ResponseNormalizer.parse_post(
            ...     {"kind": "t3", "data": {"id": "abc", "title": "Hello", "author": None}}
            ... )
            >>> post.author
            '[deleted]'
        """
        return ResponseNormalizer._parse_kind(child, "t3", Post)

    @staticmethod
    def parse_user(child: dict[str, Any]) -> User:
        """Decode a ``t2`` thing."""
        return ResponseNormalizer._parse_kind(child, "t2", User)

    @staticmethod
    def parse_subreddit(child: dict[str, Any]) -> Subreddit:
        """Decode a ``t5`` thing."""
        return ResponseNormalizer._parse_kind(child, "t5", Subreddit)

    @staticmethod
    def parse_message(child: dict[str, Any]) -> Message:
        """Decode a ``t4`` thing."""
        return ResponseNormalizer._parse_kind(child, "t4", Message)

    @staticmethod
    def parse_thing(child: dict[str, Any]) -> Thing:
        """
        Decode any supported thing by its kind.

        Raises:
            DecodeError: Unknown kind or invalid data
        """
        kind, _ = ResponseNormalizer.split_thing(child)
        if kind in ("t1", "more"):
            return parse_comment(child)
        parser = _PARSERS.get(kind)
        if parser is None:
            raise DecodeError(f"Unsupported thing kind {kind!r}", repr(child))
        return parser(child)

    @staticmethod
    def _parse_kind(child: dict[str, Any], expected: str, model: Type[ModelT]) -> ModelT:
        kind, data = ResponseNormalizer.split_thing(child)
        if kind != expected:
            raise DecodeError(f"Expected kind {expected!r}, got {kind!r}", repr(child))
        return ResponseNormalizer.validate_model(model, data)


_PARSERS: dict[str, Callable[[dict[str, Any]], Any]] = {
    "t2": ResponseNormalizer.parse_user,
    "t3": ResponseNormalizer.parse_post,
    "t4": ResponseNormalizer.parse_message,
    "t5": ResponseNormalizer.parse_subreddit,
}


# Convenience functions for direct import
def parse_thing(child: dict[str, Any]) -> Thing:
    """
    Decode any supported thing.

    Convenience function that calls ResponseNormalizer.parse_thing().
    """
    return ResponseNormalizer.parse_thing(child)


def parse_post(child: dict[str, Any]) -> Post:
    """Convenience function that calls ResponseNormalizer.parse_post()."""
    return ResponseNormalizer.parse_post(child)


def parse_user(child: dict[str, Any]) -> User:
    """Convenience function that calls ResponseNormalizer.parse_user()."""
    return ResponseNormalizer.parse_user(child)


def parse_subreddit(child: dict[str, Any]) -> Subreddit:
    """Convenience function that calls ResponseNormalizer.parse_subreddit()."""
    return ResponseNormalizer.parse_subreddit(child)


def parse_message(child: dict[str, Any]) -> Message:
    """Convenience function that calls ResponseNormalizer.parse_message()."""
    return ResponseNormalizer.parse_message(child)
