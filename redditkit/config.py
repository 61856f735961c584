"""
Configuration settings for redditkit.

Settings are read from ``REDDIT_*`` environment variables (and an optional
``.env`` file) using pydantic-settings, validated once and cached.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from redditkit.reddit.auth import (
    DEFAULT_DEVICE_ID,
    DEFAULT_TOKEN_URL,
    AuthFlow,
    ClientCredentialsAuth,
    InstalledAppAuth,
    ScriptAuth,
)
from redditkit.reddit.exceptions import AuthenticationError
from redditkit.reddit.executor import DEFAULT_OAUTH_BASE_URL, DEFAULT_PUBLIC_BASE_URL
from redditkit.reddit.retry import RetryPolicy

DEFAULT_USER_AGENT = "python:redditkit:0.1.0 (by /u/redditkit)"


class RedditSettings(BaseSettings):
    """
    redditkit configuration settings.

    All settings can be overridden via environment variables prefixed with
    ``REDDIT_`` (``REDDIT_CLIENT_ID``, ``REDDIT_STEADY_LIMIT``, ...).
    """

    model_config = SettingsConfigDict(
        env_prefix="REDDIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OAuth application
    client_id: Optional[str] = Field(default=None, description="OAuth client id")
    client_secret: Optional[str] = Field(
        default=None, description="OAuth client secret (script and web apps)"
    )
    username: Optional[str] = Field(default=None, description="Account for script apps")
    password: Optional[str] = Field(default=None, description="Password for script apps")
    device_id: str = Field(
        default=DEFAULT_DEVICE_ID, description="Device id for installed apps"
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User agent, <platform>:<app>:<version> (by /u/<author>)",
    )

    # Endpoints
    token_url: str = Field(default=DEFAULT_TOKEN_URL)
    oauth_base_url: str = Field(default=DEFAULT_OAUTH_BASE_URL)
    public_base_url: str = Field(default=DEFAULT_PUBLIC_BASE_URL)
    timeout_seconds: float = Field(default=30.0, gt=0, description="HTTP timeout")

    # Rate limiting
    steady_limit: int = Field(default=600, ge=1, description="Requests per steady window")
    steady_period_seconds: float = Field(default=600.0, gt=0)
    burst_limit: int = Field(default=10, ge=0, description="Unpaced requests per burst window")
    burst_period_seconds: float = Field(default=10.0, gt=0)

    # Credentials and retries
    refresh_skew_seconds: float = Field(
        default=60.0, ge=0, description="Refresh tokens this long before expiry"
    )
    max_retries: int = Field(default=3, ge=1, description="Attempts per request")
    backoff_initial_seconds: float = Field(default=1.0, ge=0)
    backoff_max_seconds: float = Field(default=30.0, ge=0)

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    environment: str = Field(
        default="production", description="'development' switches to console logs"
    )

    def auth_flow(self) -> AuthFlow:
        """
        Pick the grant flow the configured credentials allow.

        Script (username and password set) wins over client credentials
        (secret set), which wins over the installed-app flow.

        Raises:
            AuthenticationError: ``client_id`` is missing
        """
        if not self.client_id:
            raise AuthenticationError("REDDIT_CLIENT_ID is required")

        if self.client_secret and self.username and self.password:
            return ScriptAuth(
                client_id=self.client_id,
                client_secret=self.client_secret,
                username=self.username,
                password=self.password,
            )
        if self.client_secret:
            return ClientCredentialsAuth(
                client_id=self.client_id, client_secret=self.client_secret
            )
        return InstalledAppAuth(client_id=self.client_id, device_id=self.device_id)

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_retries,
            initial_backoff=self.backoff_initial_seconds,
            max_backoff=self.backoff_max_seconds,
        )


@lru_cache()
def get_settings() -> RedditSettings:
    """
    Get cached settings instance.

    Returns:
        RedditSettings: Configured settings instance
    """
    return RedditSettings()
