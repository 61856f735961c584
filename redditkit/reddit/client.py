"""
Reddit API client.

``RedditClient`` owns the pieces every request shares (one HTTP client, one
rate limiter, one credential manager and one request executor) and exposes
the endpoint operations on top of them. There is no global client: create
one per application and pass it where it is needed.
"""

from typing import TYPE_CHECKING, Any, Optional, TypeVar

import httpx
import pydantic
import structlog

from redditkit.models.requests import (
    CommentReplyInput,
    CommentTreeInput,
    MessageInput,
    SearchInput,
    SelfPostInput,
    StickyInput,
    SubredditPostsInput,
    UserHistoryInput,
)
from redditkit.models.things import Post, SubmissionResult, Subreddit, User

from .auth import DEFAULT_TOKEN_URL, AuthFlow, Credential, CredentialManager
from .comments import Comment, CommentTree, LoadedComment, parse_comment, parse_comment_children
from .exceptions import AuthenticationError, DecodeError, NotFoundError, RejectedError, ValidationError
from .executor import DEFAULT_OAUTH_BASE_URL, DEFAULT_PUBLIC_BASE_URL, RequestExecutor
from .listing import MAX_PAGE_SIZE, Listing, fetch_page, unwrap_listing
from .normalizer import ResponseNormalizer, Thing, parse_post, parse_subreddit, parse_thing, parse_user
from .rate_limiter import AdaptiveRateLimiter
from .retry import RetryPolicy
from .stream import ListingStream

if TYPE_CHECKING:
    from redditkit.config import RedditSettings

logger = structlog.get_logger(__name__)

InputT = TypeVar("InputT", bound=pydantic.BaseModel)


def build_user_agent(app: str, version: str, author: str, platform: str = "python") -> str:
    """
    Build a user agent in the form Reddit asks API clients to use.

    Example:
        >>> build_user_agent("redditkit", "0.1.0", "spez")
        'python:redditkit:0.1.0 (by /u/spez)'
    """
    for name, value in (("app", app), ("version", version), ("author", author)):
        if not value or not value.strip():
            raise ValidationError("must not be empty", field=name)
    author = author.strip()
    if author.startswith("/u/"):
        author = author[3:]
    elif author.startswith("u/"):
        author = author[2:]
    return f"{platform}:{app.strip()}:{version.strip()} (by /u/{author})"


def _validate(model: type[InputT], **values: Any) -> InputT:
    try:
        return model(**values)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(first.get("msg", str(e)), field=field) from e


def _api_data(payload: Any, operation: str) -> dict[str, Any]:
    """
    Unwrap an ``api_type=json`` response, raising on reported errors.

    Raises:
        RejectedError: Reddit listed errors in ``json.errors``
        DecodeError: The payload has no ``json`` block
    """
    block = payload.get("json") if isinstance(payload, dict) else None
    if not isinstance(block, dict):
        raise DecodeError(f"Unexpected {operation} response", repr(payload))
    errors = block.get("errors") or []
    if errors:
        logger.warning("api_errors_returned", operation=operation, errors=errors)
        raise RejectedError(
            200,
            body=repr(errors),
            message=f"{operation} failed: {errors}",
        )
    return block.get("data") or {}


class RedditClient:
    """
    Async client for the Reddit API.

    Example:
        >>> async with RedditClient(user_agent=build_user_agent("demo", "1.0", "me")) as client:
        ...     await client.authorize(ScriptAuth("id", "secret", "me", "hunter2"))
        ...     listing = await client.subreddit_posts("python", sort="new", limit=10)
        ...     async for post in listing:
        ...         print(post.title)
    """

    def __init__(
        self,
        user_agent: str,
        *,
        http: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[AdaptiveRateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        token_url: str = DEFAULT_TOKEN_URL,
        oauth_base_url: str = DEFAULT_OAUTH_BASE_URL,
        public_base_url: str = DEFAULT_PUBLIC_BASE_URL,
        refresh_skew_seconds: float = 60.0,
        timeout_seconds: float = 30.0,
        default_flow: Optional[AuthFlow] = None,
    ) -> None:
        if not user_agent or not user_agent.strip():
            raise ValidationError("must not be empty", field="user_agent")

        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(timeout=timeout_seconds)
        self.rate_limiter = rate_limiter or AdaptiveRateLimiter()
        self.retry_policy = retry_policy or RetryPolicy()
        self.default_flow = default_flow

        self.credentials = CredentialManager(
            self.http,
            user_agent=user_agent,
            token_url=token_url,
            retry_policy=self.retry_policy,
            rate_limiter=self.rate_limiter,
            refresh_skew_seconds=refresh_skew_seconds,
        )
        self.executor = RequestExecutor(
            self.http,
            self.rate_limiter,
            self.credentials,
            user_agent=user_agent,
            retry_policy=self.retry_policy,
            oauth_base_url=oauth_base_url,
            public_base_url=public_base_url,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional["RedditSettings"] = None,
        *,
        http: Optional[httpx.AsyncClient] = None,
    ) -> "RedditClient":
        """
        Build a client from ``RedditSettings`` (the environment by default).

        The grant flow the settings allow becomes the default for
        ``authorize()``. Without a client id the client stays anonymous.
        """
        from redditkit.config import get_settings

        settings = settings or get_settings()
        limiter = AdaptiveRateLimiter(
            steady_limit=settings.steady_limit,
            steady_period_seconds=settings.steady_period_seconds,
            burst_limit=settings.burst_limit,
            burst_period_seconds=settings.burst_period_seconds,
        )
        return cls(
            settings.user_agent,
            http=http,
            rate_limiter=limiter,
            retry_policy=settings.retry_policy(),
            token_url=settings.token_url,
            oauth_base_url=settings.oauth_base_url,
            public_base_url=settings.public_base_url,
            refresh_skew_seconds=settings.refresh_skew_seconds,
            timeout_seconds=settings.timeout_seconds,
            default_flow=settings.auth_flow() if settings.client_id else None,
        )

    async def __aenter__(self) -> "RedditClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this client created it."""
        if self._owns_http:
            await self.http.aclose()

    @property
    def is_authorized(self) -> bool:
        return self.credentials.is_authorized

    def get_stats(self) -> dict[str, Any]:
        """Rate limiter statistics plus the current token generation."""
        stats = self.rate_limiter.get_stats()
        credential = self.credentials.credential
        stats["token_generation"] = credential.generation if credential else 0
        return stats

    # Auth

    async def authorize(self, flow: Optional[AuthFlow] = None) -> Credential:
        """
        Obtain a token with ``flow`` (or the configured default flow).

        Raises:
            AuthenticationError: No flow given and none configured
            InvalidCredentialsError: Reddit rejected the credentials
        """
        flow = flow or self.default_flow
        if flow is None:
            raise AuthenticationError("REDDIT_CLIENT_ID is required")
        return await self.credentials.authorize(flow)

    # Listings

    async def subreddit_posts(
        self,
        name: str,
        sort: str = "hot",
        time_filter: Optional[str] = None,
        limit: Optional[int] = 25,
    ) -> Listing[Post]:
        """
        List a subreddit's posts.

        Args:
            name: Subreddit name, with or without ``r/``
            sort: hot, new, rising, top or controversial
            time_filter: hour, day, week, month, year or all (top and
                controversial only, "day" when omitted)
            limit: Maximum posts to return across pages (None for all)
        """
        params = _validate(
            SubredditPostsInput, subreddit=name, sort=sort, time_filter=time_filter, limit=limit
        )
        query = {"t": params.time_filter} if params.time_filter else None
        return await self._listing(
            f"/r/{params.subreddit}/{params.sort}", parse_post, params=query, limit=params.limit
        )

    async def search(
        self,
        query: str,
        subreddit: Optional[str] = None,
        sort: str = "relevance",
        time_filter: str = "all",
        limit: Optional[int] = 25,
    ) -> Listing[Post]:
        """Search posts site-wide, or within one subreddit."""
        params = _validate(
            SearchInput,
            query=query,
            subreddit=subreddit,
            sort=sort,
            time_filter=time_filter,
            limit=limit,
        )
        request = {"q": params.query, "sort": params.sort, "t": params.time_filter, "type": "link"}
        if params.subreddit:
            path = f"/r/{params.subreddit}/search"
            request["restrict_sr"] = 1
        else:
            path = "/search"
        return await self._listing(path, parse_post, params=request, limit=params.limit)

    async def user_history(
        self,
        name: str,
        kind: str = "overview",
        sort: str = "new",
        time_filter: Optional[str] = None,
        limit: Optional[int] = 25,
    ) -> Listing[Thing]:
        """
        List a user's posts and comments.

        Args:
            name: Username, with or without ``u/``
            kind: overview (both), submitted (posts) or comments
            sort: hot, new, top or controversial
        """
        params = _validate(
            UserHistoryInput,
            username=name,
            kind=kind,
            sort=sort,
            time_filter=time_filter,
            limit=limit,
        )
        request = {"sort": params.sort}
        if params.time_filter:
            request["t"] = params.time_filter
        return await self._listing(
            f"/user/{params.username}/{params.kind}", parse_thing, params=request, limit=params.limit
        )

    async def recent_comments(
        self,
        subreddit: str,
        limit: Optional[int] = 25,
        before: Optional[str] = None,
    ) -> Listing[Comment]:
        """Newest comments in a subreddit, optionally only those newer than ``before``."""
        params = _validate(SubredditPostsInput, subreddit=subreddit, sort="new", limit=limit)
        return await self._listing(
            f"/r/{params.subreddit}/comments", parse_comment, limit=params.limit, before=before
        )

    async def _listing(
        self,
        path: str,
        parse: Any,
        *,
        params: Optional[dict[str, Any]] = None,
        limit: Optional[int] = None,
        before: Optional[str] = None,
    ) -> Listing[Any]:
        page_size = min(limit, MAX_PAGE_SIZE) if limit else MAX_PAGE_SIZE
        return await fetch_page(
            self.executor,
            path,
            parse=parse,
            params=params,
            before=before,
            page_size=page_size,
            limit=limit,
        )

    # Posts and comments

    async def load_post(self, post: str) -> Post:
        """
        Fetch one post by id, ``t3_`` fullname or URL.

        Raises:
            NotFoundError: No such post
        """
        post_id = _validate(CommentTreeInput, post_id=post).post_id
        path = f"/by_id/t3_{post_id}"
        children = unwrap_listing(await self.executor.get(path, auth_required=False)).get(
            "children"
        )
        if not children:
            raise NotFoundError(path)
        return parse_post(children[0])

    async def comment_tree(
        self,
        post: str,
        sort: str = "confidence",
        depth: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> CommentTree:
        """
        Load a post and its comment forest.

        Placeholders for comments Reddit did not inline stay in the tree
        until expanded with ``CommentTree.expand`` or ``replace_more``.

        Args:
            post: Post id, ``t3_`` fullname or URL
            sort: confidence (best), top, new, controversial, old or qa
            depth: Maximum reply depth to load
            limit: Maximum comments to load
        """
        params = _validate(CommentTreeInput, post_id=post, sort=sort, depth=depth, limit=limit)
        request: dict[str, Any] = {"sort": params.sort, "raw_json": 1}
        if params.depth is not None:
            request["depth"] = params.depth
        if params.limit is not None:
            request["limit"] = params.limit

        payload = await self.executor.get(
            f"/comments/{params.post_id}", params=request, auth_required=False
        )
        if not isinstance(payload, list) or len(payload) < 2:
            raise DecodeError("Unexpected comments payload", repr(payload))

        post_children = unwrap_listing(payload[0]).get("children") or []
        if not post_children:
            raise NotFoundError(f"/comments/{params.post_id}")
        submission = parse_post(post_children[0])

        return CommentTree(
            self.executor,
            submission.fullname,
            Listing.from_items(parse_comment_children(payload[1])),
            sort=params.sort,
            post=submission,
        )

    # Streams

    def stream_comments(self, subreddit: str, **options: Any) -> ListingStream[Comment]:
        """
        Stream new comments in a subreddit.

        ``options`` are passed to ``ListingStream`` (``poll_interval``,
        ``skip_existing``, ``wait_for_items``, ...).
        """
        name = _validate(SubredditPostsInput, subreddit=subreddit).subreddit
        return ListingStream(self.executor, f"/r/{name}/comments", parse=parse_comment, **options)

    def stream_submissions(self, subreddit: str, **options: Any) -> ListingStream[Post]:
        """Stream new posts in a subreddit."""
        name = _validate(SubredditPostsInput, subreddit=subreddit).subreddit
        return ListingStream(self.executor, f"/r/{name}/new", parse=parse_post, **options)

    # Submission and interaction

    async def submit_self(
        self,
        subreddit: str,
        title: str,
        text: str = "",
        send_replies: bool = True,
    ) -> SubmissionResult:
        """
        Submit a text post.

        Raises:
            AuthenticationError: Client is not authorized
            RejectedError: Reddit refused the submission
        """
        params = _validate(
            SelfPostInput, subreddit=subreddit, title=title, text=text, send_replies=send_replies
        )
        payload = await self.executor.post(
            "/api/submit",
            data={
                "api_type": "json",
                "kind": "self",
                "sr": params.subreddit,
                "title": params.title,
                "text": params.text,
                "sendreplies": str(params.send_replies).lower(),
            },
        )
        result = ResponseNormalizer.validate_model(SubmissionResult, _api_data(payload, "submit"))
        logger.info("post_submitted", subreddit=params.subreddit, fullname=result.name)
        return result

    async def comment(self, parent_fullname: str, text: str) -> LoadedComment:
        """
        Reply to a post (``t3_``) or a comment (``t1_``).

        Returns:
            The created comment
        """
        params = _validate(CommentReplyInput, parent_fullname=parent_fullname, text=text)
        payload = await self.executor.post(
            "/api/comment",
            data={"api_type": "json", "thing_id": params.parent_fullname, "text": params.text},
        )
        things = _api_data(payload, "comment").get("things") or []
        if not things:
            raise DecodeError("Comment response carries no comment", repr(payload))
        created = parse_comment(things[0])
        if not isinstance(created, LoadedComment):
            raise DecodeError("Comment response carries no comment", repr(payload))
        logger.info("comment_submitted", parent=params.parent_fullname, fullname=created.name)
        return created

    async def message(self, to: str, subject: str, text: str) -> None:
        """Send a private message."""
        params = _validate(MessageInput, to=to, subject=subject, text=text)
        payload = await self.executor.post(
            "/api/compose",
            data={
                "api_type": "json",
                "to": params.to,
                "subject": params.subject,
                "text": params.text,
            },
        )
        _api_data(payload, "compose")
        logger.info("message_sent", to=params.to)

    async def set_sticky(self, post_fullname: str, state: bool = True, slot: int = 1) -> None:
        """
        Pin (``state=True``) or unpin a post in sticky slot 1 or 2.

        Raises:
            ValidationError: ``slot`` is not 1 or 2
        """
        params = _validate(StickyInput, post_fullname=post_fullname, state=state, slot=slot)
        payload = await self.executor.post(
            "/api/set_subreddit_sticky",
            data={
                "api_type": "json",
                "id": params.post_fullname,
                "state": str(params.state).lower(),
                "num": params.slot,
            },
        )
        _api_data(payload, "set_subreddit_sticky")
        logger.info("sticky_updated", fullname=params.post_fullname, state=params.state, slot=params.slot)

    # Users and subreddits

    async def me(self) -> User:
        """The authorized account. Needs a user-context grant."""
        data = await self.executor.get("/api/v1/me")
        return ResponseNormalizer.validate_model(User, data)

    async def user(self, name: str) -> User:
        """Public profile of ``name``."""
        username = _validate(UserHistoryInput, username=name).username
        return parse_user(await self.executor.get(f"/user/{username}/about", auth_required=False))

    async def subreddit(self, name: str) -> Subreddit:
        """About page of a subreddit."""
        name = _validate(SubredditPostsInput, subreddit=name).subreddit
        return parse_subreddit(await self.executor.get(f"/r/{name}/about", auth_required=False))
