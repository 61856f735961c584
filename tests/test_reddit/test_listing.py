"""
Tests for cursor-paginated listings.
"""

from unittest.mock import AsyncMock

import pytest

from redditkit.reddit.exceptions import DecodeError
from redditkit.reddit.listing import Listing, fetch_page, unwrap_listing
from redditkit.reddit.normalizer import parse_post


def post(post_id: str) -> dict:
    return {"kind": "t3", "data": {"id": post_id, "name": f"t3_{post_id}", "title": post_id}}


def page(ids, after=None, before=None) -> dict:
    return {
        "kind": "Listing",
        "data": {"after": after, "before": before, "children": [post(i) for i in ids]},
    }


def make_executor(*pages):
    executor = AsyncMock()
    executor.execute_json = AsyncMock(side_effect=list(pages))
    return executor


async def drain(listing):
    return [item.id async for item in listing]


class TestUnwrapListing:
    """Test envelope validation."""

    def test_returns_data(self):
        assert unwrap_listing(page(["a"], after="t3_a"))["after"] == "t3_a"

    @pytest.mark.parametrize("payload", [[], {"kind": "t3", "data": {}}, {"kind": "Listing"}])
    def test_rejects_other_payloads(self, payload):
        with pytest.raises(DecodeError):
            unwrap_listing(payload)


class TestListing:
    """Test pagination behaviour."""

    @pytest.mark.asyncio
    async def test_three_pages_then_exhausted(self):
        """Pages of 2, 2 and 1 yield 5 items then None, with exactly 3 fetches."""
        executor = make_executor(
            page(["p1", "p2"], after="B"),
            page(["p3", "p4"], after="C"),
            page(["p5"], after=None),
        )

        listing = await fetch_page(executor, "/r/python/new", parse=parse_post, after="A")
        items = [await listing.advance() for _ in range(5)]

        assert [i.id for i in items] == ["p1", "p2", "p3", "p4", "p5"]
        assert await listing.advance() is None
        assert await listing.advance() is None
        assert listing.fetch_count == 3
        assert executor.execute_json.await_count == 3
        assert listing.exhausted is True

        afters = [c.kwargs["params"].get("after") for c in executor.execute_json.await_args_list]
        assert afters == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_empty_page_without_cursor_exhausts(self):
        """An empty page with no cursor ends the listing with no further calls."""
        executor = make_executor(page([], after=None))

        listing = await fetch_page(executor, "/r/empty/new", parse=parse_post)

        assert listing.exhausted is True
        assert await listing.advance() is None
        assert executor.execute_json.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_page_with_cursor_keeps_going(self):
        """An empty page that still carries a cursor is not the end."""
        executor = make_executor(page([], after="B"), page(["p1"], after=None))

        listing = await fetch_page(executor, "/r/python/new", parse=parse_post)

        assert await drain(listing) == ["p1"]
        assert listing.fetch_count == 2

    @pytest.mark.asyncio
    async def test_repeated_cursor_exhausts(self):
        """A cursor that does not advance is treated as the end."""
        executor = make_executor(page(["p1"], after="B"), page(["p2"], after="B"))

        listing = await fetch_page(executor, "/r/python/new", parse=parse_post)

        assert await drain(listing) == ["p1", "p2"]
        assert executor.execute_json.await_count == 2

    @pytest.mark.asyncio
    async def test_duplicates_are_skipped(self):
        """Items already emitted are not emitted again."""
        executor = make_executor(page(["p1", "p2"], after="B"), page(["p2", "p3"], after=None))

        listing = await fetch_page(executor, "/r/python/new", parse=parse_post)

        assert await drain(listing) == ["p1", "p2", "p3"]

    @pytest.mark.asyncio
    async def test_limit_stops_fetching(self):
        """The caller's limit caps items and page sizes."""
        executor = make_executor(page(["p1", "p2"], after="B"), page(["p3"], after="C"))

        listing = await fetch_page(
            executor, "/r/python/new", parse=parse_post, page_size=2, limit=3
        )

        assert await drain(listing) == ["p1", "p2", "p3"]
        assert listing.exhausted is True
        sizes = [c.kwargs["params"]["limit"] for c in executor.execute_json.await_args_list]
        assert sizes == [2, 1]

    @pytest.mark.asyncio
    async def test_page_params(self):
        """Pages send limit, count, raw_json and the caller's parameters."""
        executor = make_executor(page(["p1"], after="B"), page(["p2"], after=None))

        listing = await fetch_page(
            executor, "/r/python/top", parse=parse_post, params={"t": "week"}, page_size=1
        )
        await drain(listing)

        first, second = executor.execute_json.await_args_list
        assert first.args == ("GET", "/r/python/top")
        assert first.kwargs["params"] == {"t": "week", "limit": 1, "count": 0, "raw_json": 1}
        assert second.kwargs["params"]["count"] == 1
        assert second.kwargs["auth_required"] is False

    @pytest.mark.asyncio
    async def test_from_items_never_fetches(self):
        """Materialized listings iterate their items only."""
        listing = Listing.from_items(["a", "b"])

        assert listing.exhausted is True
        assert [x async for x in listing] == ["a", "b"]

    def test_invalid_page_size(self):
        with pytest.raises(ValueError):
            Listing(None, None, page_size=101)
