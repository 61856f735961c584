"""
Tests for operation input models.

Tests cover:
- Post ID extraction from ids, fullnames and URLs
- Subreddit and username prefix stripping
- Time filter defaulting for timed sorts
- Field constraints
"""

import pytest
from pydantic import ValidationError

from redditkit.models.requests import (
    CommentReplyInput,
    CommentTreeInput,
    MessageInput,
    SearchInput,
    SelfPostInput,
    StickyInput,
    SubredditPostsInput,
    UserHistoryInput,
    extract_post_id,
)


class TestExtractPostId:
    """Test suite for extract_post_id."""

    def test_plain_id(self):
        assert extract_post_id("abc123") == "abc123"

    def test_fullname(self):
        assert extract_post_id("t3_xyz789") == "xyz789"

    def test_full_url(self):
        url = "https://www.reddit.com/r/technology/comments/xyz789/title/"
        assert extract_post_id(url) == "xyz789"

    def test_short_url(self):
        assert extract_post_id("https://redd.it/abc123") == "abc123"

    def test_whitespace(self):
        assert extract_post_id("\t t3_xyz789 \n") == "xyz789"

    def test_invalid_id(self):
        with pytest.raises(ValueError, match="Invalid post ID format"):
            extract_post_id("invalid!")

    def test_url_without_post(self):
        with pytest.raises(ValueError, match="Could not extract post ID from URL"):
            extract_post_id("https://reddit.com/r/python/")


class TestSubredditPostsInput:
    """Test subreddit listing parameters."""

    def test_defaults(self):
        params = SubredditPostsInput(subreddit="python")

        assert params.sort == "hot"
        assert params.time_filter is None
        assert params.limit == 25

    @pytest.mark.parametrize("name", ["r/python", "/r/python", "  python "])
    def test_prefix_stripped(self, name):
        assert SubredditPostsInput(subreddit=name).subreddit == "python"

    @pytest.mark.parametrize("sort", ["top", "controversial"])
    def test_timed_sorts_default_to_day(self, sort):
        assert SubredditPostsInput(subreddit="python", sort=sort).time_filter == "day"

    def test_time_filter_dropped_for_untimed_sort(self):
        params = SubredditPostsInput(subreddit="python", sort="new", time_filter="week")
        assert params.time_filter is None

    def test_explicit_time_filter_kept(self):
        params = SubredditPostsInput(subreddit="python", sort="top", time_filter="year")
        assert params.time_filter == "year"

    def test_invalid_name(self):
        with pytest.raises(ValidationError):
            SubredditPostsInput(subreddit="python-3!")

    def test_limit_bounds(self):
        with pytest.raises(ValidationError):
            SubredditPostsInput(subreddit="python", limit=1001)
        with pytest.raises(ValidationError):
            SubredditPostsInput(subreddit="python", limit=0)

    def test_no_limit(self):
        assert SubredditPostsInput(subreddit="python", limit=None).limit is None


class TestSearchInput:
    """Test search parameters."""

    def test_query_sanitized(self):
        assert SearchInput(query="  async\x00io ").query == "asyncio"

    def test_blank_query(self):
        with pytest.raises(ValidationError, match="Query cannot be empty"):
            SearchInput(query="   ")

    def test_subreddit_optional(self):
        params = SearchInput(query="python")

        assert params.subreddit is None
        assert params.time_filter == "all"
        assert params.sort == "relevance"

    def test_invalid_sort(self):
        with pytest.raises(ValidationError):
            SearchInput(query="python", sort="rising")


class TestUserHistoryInput:
    """Test user history parameters."""

    @pytest.mark.parametrize("name", ["spez", "u/spez", "/u/spez"])
    def test_prefix_stripped(self, name):
        assert UserHistoryInput(username=name).username == "spez"

    def test_too_short(self):
        with pytest.raises(ValidationError):
            UserHistoryInput(username="ab")

    def test_top_defaults_to_day(self):
        assert UserHistoryInput(username="spez", sort="top").time_filter == "day"

    def test_invalid_kind(self):
        with pytest.raises(ValidationError):
            UserHistoryInput(username="spez", kind="saved")


class TestCommentTreeInput:
    """Test comment tree parameters."""

    def test_url_reduced_to_id(self):
        params = CommentTreeInput(post_id="https://reddit.com/r/python/comments/abc123/x/")
        assert params.post_id == "abc123"

    def test_best_maps_to_confidence(self):
        assert CommentTreeInput(post_id="abc123", sort="best").sort == "confidence"

    def test_depth_bounds(self):
        with pytest.raises(ValidationError):
            CommentTreeInput(post_id="abc123", depth=11)

    def test_invalid_post_id(self):
        with pytest.raises(ValidationError):
            CommentTreeInput(post_id="not a post")


class TestSubmissionInputs:
    """Test models for submitting content."""

    def test_blank_title(self):
        with pytest.raises(ValidationError, match="Title cannot be blank"):
            SelfPostInput(subreddit="python", title="   ")

    def test_title_length(self):
        with pytest.raises(ValidationError):
            SelfPostInput(subreddit="python", title="x" * 301)

    def test_self_post_defaults(self):
        params = SelfPostInput(subreddit="r/python", title="Hello")

        assert params.subreddit == "python"
        assert params.text == ""
        assert params.send_replies is True

    @pytest.mark.parametrize("parent", ["t1_abc", "t3_abc"])
    def test_reply_parents(self, parent):
        assert CommentReplyInput(parent_fullname=parent, text="hi").parent_fullname == parent

    def test_reply_to_user_rejected(self):
        with pytest.raises(ValidationError):
            CommentReplyInput(parent_fullname="t2_abc", text="hi")

    def test_message_subject_length(self):
        with pytest.raises(ValidationError):
            MessageInput(to="spez", subject="x" * 101, text="hi")

    @pytest.mark.parametrize("slot", [1, 2])
    def test_sticky_slots(self, slot):
        assert StickyInput(post_fullname="t3_abc", slot=slot).slot == slot

    def test_sticky_slot_three(self):
        with pytest.raises(ValidationError):
            StickyInput(post_fullname="t3_abc", slot=3)

    def test_sticky_requires_post(self):
        with pytest.raises(ValidationError):
            StickyInput(post_fullname="t1_abc")
