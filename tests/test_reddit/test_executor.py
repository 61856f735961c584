"""
Tests for RequestExecutor.

Tests cover URL selection, request signing, the one-time refresh after a
401, and how throttling, server errors and rejections are handled.
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from redditkit.reddit.auth import CredentialManager, ScriptAuth
from redditkit.reddit.exceptions import (
    AuthenticationError,
    DecodeError,
    InvalidCredentialsError,
    NotFoundError,
    RateLimitError,
    RejectedError,
    ServerError,
    TransientError,
)
from redditkit.reddit.executor import RequestExecutor
from redditkit.reddit.rate_limiter import AdaptiveRateLimiter
from redditkit.reddit.retry import RetryPolicy

USER_AGENT = "python:tests:1.0 (by /u/tester)"
SCRIPT = ScriptAuth("client-id", "client-secret", "tester", "hunter2")


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += max(seconds, 0.0)


class FakeReddit:
    """Routes token requests and queues API responses."""

    def __init__(self, *responses, token_status=200):
        self.responses = list(responses)
        self.token_status = token_status
        self.api_requests = []
        self.token_requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v1/access_token":
            self.token_requests.append(request)
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"message": "Unauthorized"})
            return httpx.Response(
                200,
                json={"access_token": f"token-{len(self.token_requests)}", "expires_in": 3600},
            )
        self.api_requests.append(request)
        response = self.responses.pop(0) if self.responses else httpx.Response(200, json={})
        if isinstance(response, Exception):
            raise response
        return response


def make_executor(reddit: FakeReddit):
    clock = FakeClock()
    limiter = AdaptiveRateLimiter(clock=clock, sleep=clock.sleep)
    http = httpx.AsyncClient(transport=httpx.MockTransport(reddit))
    sleep = AsyncMock()
    policy = RetryPolicy(max_attempts=3, initial_backoff=1.0, sleep=sleep)
    credentials = CredentialManager(http, user_agent=USER_AGENT, retry_policy=policy)
    executor = RequestExecutor(
        http, limiter, credentials, user_agent=USER_AGENT, retry_policy=policy
    )
    return executor, sleep


class TestRouting:
    """Test URL selection and headers."""

    @pytest.mark.asyncio
    async def test_anonymous_request_uses_public_json_endpoint(self):
        """Unauthorized clients hit www.reddit.com with .json appended."""
        reddit = FakeReddit(httpx.Response(200, json={"ok": True}))
        executor, _ = make_executor(reddit)

        data = await executor.execute_json(
            "GET", "/r/python/new", auth_required=False, params={"limit": 5}
        )

        request = reddit.api_requests[0]
        assert data == {"ok": True}
        assert str(request.url) == "https://www.reddit.com/r/python/new.json?limit=5"
        assert request.headers["user-agent"] == USER_AGENT
        assert "authorization" not in request.headers

    @pytest.mark.asyncio
    async def test_authorized_request_is_signed(self):
        """Authorized clients hit oauth.reddit.com with a bearer token."""
        reddit = FakeReddit(httpx.Response(200, json={"name": "tester"}))
        executor, _ = make_executor(reddit)
        await executor.credentials.authorize(SCRIPT)

        await executor.get("/api/v1/me")

        request = reddit.api_requests[0]
        assert str(request.url) == "https://oauth.reddit.com/api/v1/me"
        assert request.headers["authorization"] == "bearer token-1"

    @pytest.mark.asyncio
    async def test_auth_required_without_authorization(self):
        """Endpoints needing a user fail before any request is sent."""
        reddit = FakeReddit()
        executor, _ = make_executor(reddit)

        with pytest.raises(AuthenticationError):
            await executor.get("/api/v1/me")
        assert reddit.api_requests == []

    @pytest.mark.asyncio
    async def test_post_sends_form_body(self):
        """POST data is form encoded."""
        reddit = FakeReddit(httpx.Response(200, json={"json": {"errors": []}}))
        executor, _ = make_executor(reddit)
        await executor.credentials.authorize(SCRIPT)

        await executor.post("/api/compose", data={"api_type": "json", "to": "spez"})

        request = reddit.api_requests[0]
        assert request.method == "POST"
        assert request.content == b"api_type=json&to=spez"

    @pytest.mark.asyncio
    async def test_headers_update_rate_limiter(self):
        """Every response reconciles the limiter."""
        reddit = FakeReddit(
            httpx.Response(
                200,
                json={},
                headers={
                    "x-ratelimit-remaining": "42.0",
                    "x-ratelimit-used": "558",
                    "x-ratelimit-reset": "120",
                },
            )
        )
        executor, _ = make_executor(reddit)

        await executor.get("/r/python/about", auth_required=False)

        assert executor.rate_limiter.budget.steady_remaining == 42
        assert executor.rate_limiter.used == 558


class TestUnauthorized:
    """Test the refresh-once behaviour after a 401."""

    @pytest.mark.asyncio
    async def test_refreshes_and_retries_once(self):
        """A rejected token is replaced and the call retried."""
        reddit = FakeReddit(httpx.Response(401), httpx.Response(200, json={"name": "tester"}))
        executor, sleep = make_executor(reddit)
        await executor.credentials.authorize(SCRIPT)

        data = await executor.get("/api/v1/me")

        assert data == {"name": "tester"}
        assert len(reddit.token_requests) == 2
        assert [r.headers["authorization"] for r in reddit.api_requests] == [
            "bearer token-1",
            "bearer token-2",
        ]
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_401_is_an_authentication_error(self):
        """A freshly obtained token that is rejected again surfaces."""
        reddit = FakeReddit(httpx.Response(401), httpx.Response(401))
        executor, _ = make_executor(reddit)
        await executor.credentials.authorize(SCRIPT)

        with pytest.raises(AuthenticationError):
            await executor.get("/api/v1/me")
        assert len(reddit.api_requests) == 2
        assert len(reddit.token_requests) == 2

    @pytest.mark.asyncio
    async def test_401_without_token(self):
        """Anonymous requests rejected as unauthorized are not retried."""
        reddit = FakeReddit(httpx.Response(401))
        executor, _ = make_executor(reddit)

        with pytest.raises(AuthenticationError):
            await executor.get("/r/private/about", auth_required=False)
        assert len(reddit.api_requests) == 1

    @pytest.mark.asyncio
    async def test_failed_authorize_keeps_anonymous_reads(self):
        """A rejected authorize leaves the client anonymous rather than half-authorized."""
        reddit = FakeReddit(httpx.Response(200, json={"ok": True}), token_status=401)
        executor, _ = make_executor(reddit)

        with pytest.raises(InvalidCredentialsError):
            await executor.credentials.authorize(SCRIPT)
        data = await executor.get("/r/python/about", auth_required=False)

        assert executor.credentials.is_authorized is False
        assert data == {"ok": True}
        assert len(reddit.token_requests) == 1
        assert str(reddit.api_requests[0].url) == "https://www.reddit.com/r/python/about.json"


class TestRetries:
    """Test retry classification."""

    @pytest.mark.asyncio
    async def test_429_waits_for_retry_after(self):
        """Throttled requests are retried after Retry-After seconds."""
        reddit = FakeReddit(
            httpx.Response(429, headers={"retry-after": "5"}),
            httpx.Response(200, json={"ok": True}),
        )
        executor, sleep = make_executor(reddit)

        data = await executor.get("/r/python/new", auth_required=False)

        assert data == {"ok": True}
        sleep.assert_awaited_once_with(5.0)
        assert len(reddit.api_requests) == 2

    @pytest.mark.asyncio
    async def test_429_wait_is_capped(self):
        """An oversized Retry-After is capped for the retry and the limiter alike."""
        reddit = FakeReddit(
            httpx.Response(429, headers={"retry-after": "5000"}),
            httpx.Response(200, json={"ok": True}),
        )
        executor, sleep = make_executor(reddit)

        await executor.get("/r/python/new", auth_required=False)

        sleep.assert_awaited_once_with(600.0)
        # The limiter held the retry until 1000 + 600 on the fake clock
        assert executor.rate_limiter._clock() == 1600.0

    @pytest.mark.asyncio
    async def test_persistent_429(self):
        """Throttling that outlasts the policy surfaces as RateLimitError."""
        reddit = FakeReddit(*(httpx.Response(429, headers={"retry-after": "1"}) for _ in range(3)))
        executor, _ = make_executor(reddit)

        with pytest.raises(RateLimitError) as exc_info:
            await executor.get("/r/python/new", auth_required=False)
        assert exc_info.value.retry_after == 1.0

    @pytest.mark.asyncio
    async def test_server_error_backs_off(self):
        """5xx responses are retried with exponential backoff."""
        reddit = FakeReddit(
            httpx.Response(503),
            httpx.Response(502),
            httpx.Response(200, json={"ok": True}),
        )
        executor, sleep = make_executor(reddit)

        assert await executor.get("/r/python/new", auth_required=False) == {"ok": True}
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_server_error_gives_up(self):
        """5xx beyond max attempts surfaces as ServerError."""
        reddit = FakeReddit(*(httpx.Response(500) for _ in range(3)))
        executor, _ = make_executor(reddit)

        with pytest.raises(ServerError):
            await executor.get("/r/python/new", auth_required=False)
        assert len(reddit.api_requests) == 3

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self):
        """Timeouts become TransientError once retries run out."""
        reddit = FakeReddit(*(httpx.ReadTimeout("slow") for _ in range(3)))
        executor, _ = make_executor(reddit)

        with pytest.raises(TransientError):
            await executor.get("/r/python/new", auth_required=False)
        assert len(reddit.api_requests) == 3

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self):
        """4xx responses are rejected immediately."""
        reddit = FakeReddit(httpx.Response(404, text='{"error": 404}'))
        executor, sleep = make_executor(reddit)

        with pytest.raises(NotFoundError) as exc_info:
            await executor.get("/r/doesnotexist/about", auth_required=False)
        assert exc_info.value.resource == "/r/doesnotexist/about"
        assert len(reddit.api_requests) == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bad_request_keeps_body(self):
        """Other 4xx statuses carry the response body."""
        reddit = FakeReddit(httpx.Response(400, text="BAD_SR_NAME"))
        executor, _ = make_executor(reddit)

        with pytest.raises(RejectedError) as exc_info:
            await executor.get("/r/x/about", auth_required=False)
        assert exc_info.value.status_code == 400
        assert exc_info.value.body == "BAD_SR_NAME"

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        """Bodies that are not JSON raise DecodeError."""
        reddit = FakeReddit(httpx.Response(200, text="<html>"))
        executor, _ = make_executor(reddit)

        with pytest.raises(DecodeError):
            await executor.get("/r/python/about", auth_required=False)
