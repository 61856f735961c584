#!/usr/bin/env python3
"""
Print a subreddit's new comments as they arrive.

Reads credentials from REDDIT_* environment variables (see
redditkit.config), authorizes when a client id is configured, and polls
until interrupted.

Usage:
    python scripts/stream_comments.py python
"""
import asyncio
import signal
import sys

from redditkit.config import get_settings
from redditkit.reddit import LoadedComment, RedditAPIError, RedditClient
from redditkit.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


async def main(subreddit: str) -> None:
    """Stream comments from ``subreddit`` until SIGINT or SIGTERM."""
    settings = get_settings()
    setup_logging(level=settings.log_level, environment=settings.environment)

    logger.info("stream_starting", subreddit=subreddit, environment=settings.environment)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with RedditClient.from_settings(settings) as client:
        if client.default_flow is not None:
            await client.authorize()

        stream = client.stream_comments(subreddit, skip_existing=True, wait_for_items=True)
        try:
            while not stop.is_set():
                batch_task = asyncio.ensure_future(stream.next_batch())
                stop_task = asyncio.ensure_future(stop.wait())
                done, _ = await asyncio.wait(
                    {batch_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
                )
                if batch_task not in done:
                    batch_task.cancel()
                    break
                stop_task.cancel()
                for comment in batch_task.result():
                    if isinstance(comment, LoadedComment):
                        print(f"u/{comment.author}: {comment.body[:200]}")
        except RedditAPIError as e:
            logger.error("stream_failed", error=str(e), exc_info=True)
            raise
        finally:
            logger.info("stream_shutdown_complete", polls=stream.polls)


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(2)
    asyncio.run(main(sys.argv[1]))
