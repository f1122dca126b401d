"""Redis connection pool and best-effort pub/sub publishing."""

import json
import logging

import redis.asyncio as redis

logger = logging.getLogger(__name__)

_pool: redis.Redis | None = None


async def init_redis(url: str) -> None:
    """Initialize the Redis connection pool."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis_optional() -> redis.Redis | None:
    """Get the Redis client, or None when Redis was never initialized."""
    return _pool


async def publish_event(redis_client: object, channel: str, payload: dict) -> None:
    """Publish a JSON payload on a pub/sub channel. Failures are logged, never raised."""
    if redis_client is None:
        return
    try:
        await redis_client.publish(channel, json.dumps(payload))  # type: ignore[attr-defined]
    except Exception:
        logger.warning("Failed to publish %s", channel, exc_info=True)
