"""
Structured logging configuration using structlog.

Provides JSON-formatted logging with context processors for
request tracking, timestamps, and log levels.
"""
import logging
import os
import sys
from typing import Any

import structlog

# Event keys whose values must never reach a log sink
SECRET_KEYS = frozenset({
    "access_token",
    "authorization",
    "client_secret",
    "password",
    "refresh_token",
})


def redact_secrets(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor masking credential values in an event."""
    for key in SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def setup_logging(level: str = "INFO", environment: str | None = None) -> None:
    """
    Configure structured logging with structlog.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: "development" for console output; falls back to the
            ENVIRONMENT variable, then "production"

    Sets up:
        - JSON output format for production
        - Console output with colors for development
        - Context processors for timestamps and metadata
        - Redaction of credential fields
        - Integration with standard library logging (httpx logs through it)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    # httpx logs every request line at INFO, including query strings
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))

    if environment is None:
        environment = os.getenv("ENVIRONMENT", "production")
    is_dev = environment == "development"

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if is_dev:
        # Development: Human-readable console output with colors
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        # Production: JSON output
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of calling module)

    Returns:
        Configured structlog logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("token_acquired", grant_type="password", expires_in=3600)
    """
    return structlog.get_logger(name)


def log_request(
    method: str,
    path: str,
    status: int | None,
    duration_ms: float,
    attempt: int = 1,
    error: str | None = None,
    **extra: Any,
) -> None:
    """
    Log one dispatched API request in structured format.

    Args:
        method: HTTP method
        path: API path (never the full URL, which may carry a token host)
        status: HTTP status, or None when the transport failed
        duration_ms: Round-trip time in milliseconds
        attempt: Attempt number within the retry policy
        error: Error message if the request failed
        **extra: Additional context to log

    Example:
        >>> log_request("GET", "/r/python/new", 200, 84.2, remaining=598)
    """
    logger = get_logger("redditkit.request")

    log_data = {
        "method": method,
        "path": path,
        "status": status,
        "duration_ms": round(duration_ms, 2),
        "attempt": attempt,
        "error": error,
        **extra,
    }

    if error:
        logger.warning("request_failed", **log_data)
    else:
        logger.debug("request_completed", **log_data)
