"""
Comment trees with lazily expandable "more comments" placeholders.

A thread's comments come back as a forest in which every node is one of:

- ``LoadedComment``: a comment with its body and replies
- ``MoreComments``: a placeholder for replies Reddit did not inline, either
  a list of ids to fetch through ``/api/morechildren`` or, when the list is
  empty, a "continue this thread" link to the parent's own page
- ``RemovedComment``: a deleted or removed comment, kept so reply counts
  and positions stay stable

``CommentTree`` never fetches on its own. Placeholders are expanded only
through ``expand``, ``replace_more`` or ``walk(expand_more=...)``.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterator,
    Callable,
    Iterator,
    Optional,
    Union,
)

import structlog

from redditkit.models.things import DELETED_AUTHOR, Post

from .exceptions import DecodeError, RejectedError
from .listing import Listing, unwrap_listing

if TYPE_CHECKING:
    from .executor import RequestExecutor

logger = structlog.get_logger(__name__)

# /api/morechildren accepts at most 100 ids per call
MORE_CHILDREN_BATCH = 100

REMOVED_BODIES = frozenset({"[removed]", "[deleted]"})


def _empty_replies() -> "Listing[Comment]":
    return Listing.from_items([])


@dataclass
class LoadedComment:
    """A visible comment (kind ``t1``)."""

    id: str
    name: str
    author: str
    body: str
    created_utc: float
    score: int
    parent_id: str
    link_id: str
    subreddit: str = ""
    depth: int = 0
    permalink: str = ""
    is_submitter: bool = False
    stickied: bool = False
    distinguished: Optional[str] = None
    edited: Union[bool, float] = False
    replies: "Listing[Comment]" = field(default_factory=_empty_replies, repr=False)

    @property
    def fullname(self) -> str:
        return self.name


@dataclass
class MoreComments:
    """Placeholder for replies that have not been loaded."""

    id: str
    name: str
    parent_id: str
    count: int = 0
    depth: int = 0
    children: list[str] = field(default_factory=list)

    @property
    def fullname(self) -> str:
        return self.name

    @property
    def is_continue_thread(self) -> bool:
        """True for "continue this thread" links, which carry no ids."""
        return not self.children


@dataclass
class RemovedComment:
    """A deleted or removed comment. Its replies are not kept."""

    id: str
    name: str
    parent_id: str
    created_utc: Optional[float] = None

    @property
    def fullname(self) -> str:
        return self.name


Comment = Union[LoadedComment, MoreComments, RemovedComment]


def parse_comment(child: dict[str, Any]) -> Comment:
    """
    Decode one ``{"kind", "data"}`` child of a comment listing.

    Raises:
        DecodeError: The child is not a comment or a placeholder
    """
    kind = child.get("kind") if isinstance(child, dict) else None
    data = child.get("data") if isinstance(child, dict) else None
    if not isinstance(data, dict):
        raise DecodeError("Comment child has no data", repr(child))

    try:
        if kind == "more":
            return MoreComments(
                id=data["id"],
                name=data.get("name") or f"t1_{data['id']}",
                parent_id=data.get("parent_id", ""),
                count=int(data.get("count") or 0),
                depth=int(data.get("depth") or 0),
                children=list(data.get("children") or []),
            )

        if kind != "t1":
            raise DecodeError(f"Unexpected thing kind {kind!r} in a comment listing", repr(child))

        if _is_removed(data):
            return RemovedComment(
                id=data["id"],
                name=data.get("name") or f"t1_{data['id']}",
                parent_id=data.get("parent_id", ""),
                created_utc=data.get("created_utc"),
            )

        return LoadedComment(
            id=data["id"],
            name=data.get("name") or f"t1_{data['id']}",
            author=data.get("author") or DELETED_AUTHOR,
            body=data.get("body") or "",
            created_utc=float(data.get("created_utc") or 0.0),
            score=int(data.get("score") or 0),
            parent_id=data.get("parent_id", ""),
            link_id=data.get("link_id", ""),
            subreddit=data.get("subreddit", ""),
            depth=int(data.get("depth") or 0),
            permalink=data.get("permalink", ""),
            is_submitter=bool(data.get("is_submitter", False)),
            stickied=bool(data.get("stickied", False)),
            distinguished=data.get("distinguished"),
            edited=data.get("edited") or False,
            replies=Listing.from_items(_parse_replies(data.get("replies"))),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise DecodeError(f"Malformed comment: {e}", repr(child)) from e


def _is_removed(data: dict[str, Any]) -> bool:
    author = data.get("author") or DELETED_AUTHOR
    return author == DELETED_AUTHOR and data.get("body") in REMOVED_BODIES


def _parse_replies(replies: Any) -> list[Comment]:
    # Reddit sends "" instead of an empty listing
    if not replies:
        return []
    return parse_comment_children(replies)


def parse_comment_children(payload: Any) -> list[Comment]:
    """Decode every child of a comment Listing envelope."""
    return [parse_comment(child) for child in unwrap_listing(payload).get("children") or []]


def nest_comments(flat: list[Comment]) -> list[Comment]:
    """
    Rebuild the hierarchy of a flat list of comments by ``parent_id``.

    Nodes whose parent is not in ``flat`` become roots. Order within each
    level follows ``flat``. Removed comments are leaves: anything below one
    is dropped.
    """
    by_name: dict[str, LoadedComment] = {}
    pruned: set[str] = set()
    roots: list[Comment] = []
    for node in flat:
        if node.parent_id in pruned:
            pruned.add(node.fullname)
            continue
        if isinstance(node, RemovedComment):
            pruned.add(node.fullname)
        parent = by_name.get(node.parent_id)
        if parent is not None:
            parent.replies.items.append(node)
        else:
            roots.append(node)
        if isinstance(node, LoadedComment):
            by_name[node.name] = node
    return roots


class CommentTree:
    """
    The comment forest of one post.

    Attributes:
        link_id: Fullname of the post (``t3_...``)
        comments: Top-level comments, fully materialized
        sort: Comment sort used for expansions
        post: The post itself, when loaded with the comments

    Example:
        >>> tree = await client.comment_tree("abc123")
        >>> async for node in tree.walk(expand_more=True):
        ...     if isinstance(node, LoadedComment):
        ...         print(node.depth, node.body)
    """

    def __init__(
        self,
        executor: "RequestExecutor",
        link_id: str,
        comments: Listing[Comment],
        sort: str = "confidence",
        post: Optional[Post] = None,
    ) -> None:
        self._executor = executor
        self.link_id = link_id
        self.comments = comments
        self.sort = sort
        self.post = post

    def __repr__(self) -> str:
        return f"CommentTree(link_id={self.link_id!r}, top_level={len(self.comments)})"

    async def expand(self, more: MoreComments) -> Listing[Comment]:
        """
        Load the comments behind ``more`` and splice them into the tree.

        Returns:
            Materialized listing of the nodes that replaced ``more``

        Raises:
            ValueError: ``more`` is not part of this tree
        """
        container, index = self._locate(more)

        if more.is_continue_thread:
            nodes = await self._fetch_thread(more)
        else:
            nodes = await self._fetch_more_children(more)

        container.items[index:index + 1] = nodes
        logger.debug(
            "more_comments_expanded",
            link_id=self.link_id,
            parent_id=more.parent_id,
            requested=len(more.children),
            loaded=len(nodes),
        )
        return Listing.from_items(nodes)

    async def replace_more(self, limit: Optional[int] = None) -> int:
        """
        Expand placeholders breadth-first, at most ``limit`` of them.

        Returns:
            Number of placeholders expanded
        """
        expanded = 0
        while limit is None or expanded < limit:
            pending = [node for node in self._breadth_first() if isinstance(node, MoreComments)]
            if not pending:
                break
            for more in pending:
                if limit is not None and expanded >= limit:
                    break
                await self.expand(more)
                expanded += 1
        return expanded

    async def walk(
        self,
        expand_more: Union[bool, Callable[[MoreComments], bool]] = False,
    ) -> AsyncIterator[Comment]:
        """
        Depth-first traversal yielding every node.

        Args:
            expand_more: True to expand every placeholder reached, or a
                predicate choosing which ones. Unexpanded placeholders are
                yielded as they are.
        """
        if callable(expand_more):
            should_expand = expand_more
        else:
            should_expand = lambda _more: bool(expand_more)  # noqa: E731

        async for node in self._walk_listing(self.comments, should_expand):
            yield node

    def iter_comments(self) -> Iterator[Comment]:
        """Depth-first traversal of what is loaded, without network calls."""
        stack = list(reversed(self.comments.items))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(_children_of(node)))

    async def _walk_listing(
        self,
        listing: Listing[Comment],
        should_expand: Callable[[MoreComments], bool],
    ) -> AsyncIterator[Comment]:
        index = 0
        while index < len(listing.items):
            node = listing.items[index]
            if isinstance(node, MoreComments):
                if should_expand(node):
                    # The expanded nodes now sit at ``index``
                    await self.expand(node)
                    continue
                yield node
            elif isinstance(node, LoadedComment):
                yield node
                async for child in self._walk_listing(node.replies, should_expand):
                    yield child
            elif isinstance(node, RemovedComment):
                yield node
            else:
                raise TypeError(f"Unexpected comment node {type(node).__name__}")
            index += 1

    def _breadth_first(self) -> Iterator[Comment]:
        queue = deque(self.comments.items)
        while queue:
            node = queue.popleft()
            yield node
            queue.extend(_children_of(node))

    def _locate(self, target: MoreComments) -> tuple[Listing[Comment], int]:
        stack = [self.comments]
        while stack:
            listing = stack.pop()
            for index, node in enumerate(listing.items):
                if node is target:
                    return listing, index
                if isinstance(node, LoadedComment):
                    stack.append(node.replies)
        raise ValueError(f"{target.name} is not part of the comment tree of {self.link_id}")

    async def _fetch_more_children(self, more: MoreComments) -> list[Comment]:
        flat: list[Comment] = []
        for start in range(0, len(more.children), MORE_CHILDREN_BATCH):
            batch = more.children[start:start + MORE_CHILDREN_BATCH]
            payload = await self._executor.execute_json(
                "GET",
                "/api/morechildren",
                params={
                    "api_type": "json",
                    "link_id": self.link_id,
                    "children": ",".join(batch),
                    "sort": self.sort,
                    "raw_json": 1,
                },
                auth_required=False,
            )
            flat.extend(parse_comment(thing) for thing in _more_children_things(payload))
        return nest_comments(flat)

    async def _fetch_thread(self, more: MoreComments) -> list[Comment]:
        link = self.link_id.split("_", 1)[-1]
        parent = more.parent_id.split("_", 1)[-1]
        payload = await self._executor.execute_json(
            "GET",
            f"/comments/{link}/_/{parent}",
            params={"sort": self.sort, "raw_json": 1},
            auth_required=False,
        )
        if not isinstance(payload, list) or len(payload) < 2:
            raise DecodeError("Unexpected thread payload", repr(payload))

        roots = parse_comment_children(payload[1])
        for node in roots:
            if isinstance(node, LoadedComment) and node.name == more.parent_id:
                return list(node.replies.items)
        return []


def _children_of(node: Comment) -> list[Comment]:
    if isinstance(node, LoadedComment):
        return node.replies.items
    if isinstance(node, (MoreComments, RemovedComment)):
        return []
    raise TypeError(f"Unexpected comment node {type(node).__name__}")


def _more_children_things(payload: Any) -> list[dict[str, Any]]:
    block = payload.get("json") if isinstance(payload, dict) else None
    if not isinstance(block, dict):
        raise DecodeError("Unexpected /api/morechildren payload", repr(payload))
    errors = block.get("errors") or []
    if errors:
        raise RejectedError(200, body=repr(errors), message=f"morechildren failed: {errors}")
    things = (block.get("data") or {}).get("things") or []
    if not isinstance(things, list):
        raise DecodeError("Unexpected /api/morechildren payload", repr(payload))
    return things
