"""
Cursor-paginated listings.

Reddit returns collections as a ``Listing`` envelope::

    {"kind": "Listing",
     "data": {"after": "t3_x", "before": null, "children": [{"kind": ..., "data": ...}]}}

``Listing`` wraps one endpoint and fetches pages on demand as the caller
advances through it. Every page goes through the request executor, so it is
rate limited and signed like any other request.
"""

from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Generic,
    Iterable,
    Optional,
    TypeVar,
)

import structlog

from .exceptions import DecodeError

if TYPE_CHECKING:
    from .executor import RequestExecutor

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Reddit caps listing pages at 100 items
MAX_PAGE_SIZE = 100


def unwrap_listing(payload: Any) -> dict[str, Any]:
    """
    Return the ``data`` block of a Listing envelope.

    Raises:
        DecodeError: ``payload`` is not a Listing
    """
    if not isinstance(payload, dict) or payload.get("kind") != "Listing":
        raise DecodeError("Expected a Listing envelope", repr(payload))
    data = payload.get("data")
    if not isinstance(data, dict) or not isinstance(data.get("children", []), list):
        raise DecodeError("Listing envelope has no children", repr(payload))
    return data


def _identity(item: Any) -> Optional[str]:
    return getattr(item, "fullname", None)


class Listing(Generic[T]):
    """
    Lazy, forward-only sequence over a paginated endpoint.

    Attributes:
        items: Every item fetched so far, in service order
        after_cursor: Cursor of the next page, None once exhausted
        before_cursor: ``before`` cursor reported by the last page
        exhausted: True once no further page will be fetched
        fetch_count: Number of pages fetched

    Example:
        >>> listing = await fetch_page(executor, "/r/python/new", parse=parse_thing)
        >>> async for post in listing:
        ...     print(post.title)
    """

    def __init__(
        self,
        executor: Optional["RequestExecutor"],
        path: Optional[str],
        *,
        parse: Optional[Callable[[dict[str, Any]], T]] = None,
        params: Optional[dict[str, Any]] = None,
        auth_required: bool = False,
        page_size: int = MAX_PAGE_SIZE,
        limit: Optional[int] = None,
    ) -> None:
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
        if limit is not None and limit < 0:
            raise ValueError("limit must be non-negative")

        self.path = path
        self.page_size = page_size
        self.limit = limit
        self._executor = executor
        self._parse = parse
        self._params = dict(params or {})
        self._auth_required = auth_required

        self.items: list[T] = []
        self.after_cursor: Optional[str] = None
        self.before_cursor: Optional[str] = None
        self.exhausted = limit == 0
        self.fetch_count = 0

        self._position = 0
        self._seen: set[str] = set()
        self._cursors: set[str] = set()

    @classmethod
    def from_items(cls, items: Iterable[T]) -> "Listing[T]":
        """Build a fully materialized listing that never fetches."""
        listing: Listing[T] = cls(None, None)
        listing.items = list(items)
        listing.exhausted = True
        return listing

    def __len__(self) -> int:
        return len(self.items)

    def __repr__(self) -> str:
        return (
            f"Listing(path={self.path!r}, items={len(self.items)}, "
            f"after={self.after_cursor!r}, exhausted={self.exhausted})"
        )

    async def advance(self) -> Optional[T]:
        """
        Return the next item, fetching a page when the buffer is empty.

        Returns:
            The next item, or None once the listing is exhausted
        """
        while self._position >= len(self.items):
            if self.exhausted:
                return None
            await self._fetch(after=self.after_cursor)

        item = self.items[self._position]
        self._position += 1
        return item

    def __aiter__(self) -> "Listing[T]":
        return self

    async def __anext__(self) -> T:
        item = await self.advance()
        if item is None:
            raise StopAsyncIteration
        return item

    async def _fetch(self, after: Optional[str] = None, before: Optional[str] = None) -> None:
        if self._executor is None or self.path is None or self._parse is None:
            self.exhausted = True
            return

        page_size = self.page_size
        if self.limit is not None:
            page_size = min(page_size, self.limit - len(self.items))

        params = dict(self._params)
        params.update({"limit": page_size, "count": len(self.items), "raw_json": 1})
        if after:
            params["after"] = after
        if before:
            params["before"] = before

        payload = await self._executor.execute_json(
            "GET", self.path, params=params, auth_required=self._auth_required
        )
        data = unwrap_listing(payload)
        self.fetch_count += 1

        added = 0
        for child in data.get("children") or []:
            item = self._parse(child)
            key = _identity(item)
            if key is not None:
                if key in self._seen:
                    continue
                self._seen.add(key)
            self.items.append(item)
            added += 1
            if self.limit is not None and len(self.items) >= self.limit:
                break

        next_after = data.get("after")
        self.before_cursor = data.get("before")

        if self.limit is not None and len(self.items) >= self.limit:
            self.exhausted = True
        elif not next_after or next_after in self._cursors:
            self.exhausted = True
        else:
            self._cursors.add(next_after)

        if not self.exhausted:
            self.after_cursor = next_after
        elif not next_after:
            self.after_cursor = None

        logger.debug(
            "listing_page_fetched",
            path=self.path,
            page=self.fetch_count,
            added=added,
            after=self.after_cursor,
            exhausted=self.exhausted,
        )


async def fetch_page(
    executor: "RequestExecutor",
    path: str,
    *,
    parse: Callable[[dict[str, Any]], T],
    after: Optional[str] = None,
    before: Optional[str] = None,
    params: Optional[dict[str, Any]] = None,
    auth_required: bool = False,
    page_size: int = MAX_PAGE_SIZE,
    limit: Optional[int] = None,
) -> Listing[T]:
    """
    Fetch the first page of ``path`` and return a listing positioned on it.

    Args:
        executor: Request executor used for every page
        path: API path, e.g. ``/r/python/new``
        parse: Turns one ``{"kind", "data"}`` child into an item
        after: Start after this fullname
        before: Start before this fullname (first page only)
        params: Extra query parameters sent with every page
        auth_required: Whether the endpoint needs an authorized client
        page_size: Items requested per page (at most 100)
        limit: Total items to return across pages (None for no limit)

    Returns:
        Listing with the first page buffered
    """
    listing = Listing(
        executor,
        path,
        parse=parse,
        params=params,
        auth_required=auth_required,
        page_size=page_size,
        limit=limit,
    )
    if after:
        listing._cursors.add(after)
    if not listing.exhausted:
        await listing._fetch(after=after, before=before)
    return listing
