"""
Tests for environment-driven settings.
"""

import pytest

from redditkit.config import DEFAULT_USER_AGENT, RedditSettings, get_settings
from redditkit.reddit.auth import ClientCredentialsAuth, InstalledAppAuth, ScriptAuth
from redditkit.reddit.exceptions import AuthenticationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the test process's REDDIT_* variables out of the settings."""
    for name in (
        "REDDIT_CLIENT_ID",
        "REDDIT_CLIENT_SECRET",
        "REDDIT_USERNAME",
        "REDDIT_PASSWORD",
        "REDDIT_USER_AGENT",
        "REDDIT_STEADY_LIMIT",
        "REDDIT_MAX_RETRIES",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def settings(**values) -> RedditSettings:
    return RedditSettings(_env_file=None, **values)


class TestRedditSettings:
    """Test defaults and environment loading."""

    def test_defaults(self):
        config = settings()

        assert config.client_id is None
        assert config.user_agent == DEFAULT_USER_AGENT
        assert config.steady_limit == 600
        assert config.burst_limit == 10
        assert config.token_url == "https://www.reddit.com/api/v1/access_token"

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("REDDIT_CLIENT_ID", "from-env")
        monkeypatch.setenv("REDDIT_STEADY_LIMIT", "100")

        config = settings()

        assert config.client_id == "from-env"
        assert config.steady_limit == 100

    def test_get_settings_is_cached(self, monkeypatch):
        monkeypatch.setenv("REDDIT_CLIENT_ID", "first")
        first = get_settings()
        monkeypatch.setenv("REDDIT_CLIENT_ID", "second")

        assert get_settings() is first


class TestAuthFlow:
    """Test picking a grant flow from credentials."""

    def test_script(self):
        flow = settings(
            client_id="id", client_secret="secret", username="me", password="pw"
        ).auth_flow()
        assert isinstance(flow, ScriptAuth)
        assert flow.username == "me"

    def test_client_credentials(self):
        flow = settings(client_id="id", client_secret="secret").auth_flow()
        assert isinstance(flow, ClientCredentialsAuth)

    def test_installed_app(self):
        flow = settings(client_id="id").auth_flow()
        assert isinstance(flow, InstalledAppAuth)

    def test_password_without_secret(self):
        """A script grant needs the secret too."""
        flow = settings(client_id="id", username="me", password="pw").auth_flow()
        assert isinstance(flow, InstalledAppAuth)

    def test_missing_client_id(self):
        with pytest.raises(AuthenticationError, match="REDDIT_CLIENT_ID is required"):
            settings().auth_flow()


class TestRetryPolicy:
    def test_built_from_settings(self):
        policy = settings(max_retries=5, backoff_initial_seconds=0.5).retry_policy()

        assert policy.max_attempts == 5
        assert policy.initial_backoff == 0.5
        assert policy.max_backoff == 30.0
