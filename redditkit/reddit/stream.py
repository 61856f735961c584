"""
Polling streams over listing endpoints.

Reddit has no push API, so a stream polls the newest page of an endpoint
such as ``/r/python/comments`` and emits what it has not seen yet. Each
item is emitted at most once during the stream's lifetime. A stream that
is restarted without its cursor may skip or repeat items.
"""

import asyncio
from collections import deque
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Generic,
    Optional,
    TypeVar,
)

import structlog

from .listing import MAX_PAGE_SIZE, fetch_page

if TYPE_CHECKING:
    from .executor import RequestExecutor

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_POLL_INTERVAL = 5.0


class StreamCursor:
    """
    What a stream has already emitted.

    Holds a bounded rolling window of ids plus the creation time of the
    newest emitted item. An item is new when its id is outside the window
    and it is newer than the watermark.
    """

    def __init__(self, seen_limit: int = MAX_PAGE_SIZE) -> None:
        if seen_limit < 1:
            raise ValueError("seen_limit must be positive")
        self.seen_limit = seen_limit
        self.last_seen_created_at: Optional[float] = None
        self._order: deque[str] = deque()
        self._seen: set[str] = set()

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._seen

    def __len__(self) -> int:
        return len(self._order)

    def is_new(self, item_id: str, created_at: Optional[float]) -> bool:
        if item_id in self._seen:
            return False
        watermark = self.last_seen_created_at
        if watermark is not None and created_at is not None and created_at <= watermark:
            return False
        return True

    def record(self, item_id: str, created_at: Optional[float]) -> None:
        self._seen.add(item_id)
        self._order.append(item_id)
        while len(self._order) > self.seen_limit:
            self._seen.discard(self._order.popleft())
        if created_at is not None and (
            self.last_seen_created_at is None or created_at > self.last_seen_created_at
        ):
            self.last_seen_created_at = created_at


def _item_id(item: Any) -> str:
    return getattr(item, "fullname", None) or str(getattr(item, "id"))


def _created_at(item: Any) -> Optional[float]:
    return getattr(item, "created_utc", None)


class ListingStream(Generic[T]):
    """
    Repeatedly polls the newest page of a listing endpoint.

    Example:
        >>> stream = ListingStream(executor, "/r/python/comments", parse=parse_thing)
        >>> async for comment in stream:
        ...     print(comment.author, comment.body)
    """

    def __init__(
        self,
        executor: "RequestExecutor",
        path: str,
        *,
        parse: Callable[[dict[str, Any]], T],
        params: Optional[dict[str, Any]] = None,
        auth_required: bool = False,
        page_size: int = MAX_PAGE_SIZE,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        wait_for_items: bool = False,
        skip_existing: bool = False,
        seen_limit: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if poll_interval < 0:
            raise ValueError("poll_interval must be non-negative")
        self._executor = executor
        self.path = path
        self._parse = parse
        self._params = dict(params or {})
        self._auth_required = auth_required
        self.page_size = page_size
        self.poll_interval = poll_interval
        self.wait_for_items = wait_for_items
        self.skip_existing = skip_existing
        self._sleep = sleep

        self.cursor = StreamCursor(seen_limit or page_size)
        self.polls = 0
        self._primed = False

    async def next_batch(self) -> list[T]:
        """
        Poll once (or until something new arrives with ``wait_for_items``).

        The first call polls immediately; later calls wait
        ``poll_interval`` first.

        Returns:
            New items, oldest first
        """
        while True:
            if self.polls > 0:
                await self._sleep(self.poll_interval)

            fresh = await self._poll()
            if not self._primed:
                self._primed = True
                if self.skip_existing:
                    logger.debug("stream_primed", path=self.path, skipped=len(fresh))
                    fresh = []

            if fresh or not self.wait_for_items:
                return fresh

    async def _poll(self) -> list[T]:
        page = await fetch_page(
            self._executor,
            self.path,
            parse=self._parse,
            params=self._params,
            auth_required=self._auth_required,
            page_size=self.page_size,
            limit=self.page_size,
        )
        self.polls += 1

        # Pages are newest first
        fresh: list[T] = []
        for item in reversed(page.items):
            item_id = _item_id(item)
            created_at = _created_at(item)
            if not self.cursor.is_new(item_id, created_at):
                continue
            fresh.append(item)

        for item in fresh:
            self.cursor.record(_item_id(item), _created_at(item))

        logger.debug(
            "stream_polled",
            path=self.path,
            poll=self.polls,
            fetched=len(page.items),
            new=len(fresh),
        )
        return fresh

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            for item in await self.next_batch():
                yield item
