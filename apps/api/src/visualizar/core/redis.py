"""
Redis Client

Process-wide async Redis connection used by the OTP rate limiter.

Redis is optional outside production: when it cannot be reached the
limiter falls back to per-process memory, and `get_redis()` returns None.
"""

import logging

from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from visualizar.core.config import settings

logger = logging.getLogger(__name__)

_client: Redis | None = None


async def init_redis(url: str | None = None) -> Redis:
    """
    Connect and verify the connection with a PING.

    The client is only published for `get_redis()` once the PING succeeds.

    Raises:
        RedisError: If the server cannot be reached
    """
    global _client
    client = from_url(url or settings.redis_url, encoding="utf-8", decode_responses=True)
    try:
        await client.ping()
    except RedisError:
        await client.aclose()
        raise
    _client = client
    logger.info("Redis connection established")
    return client


def get_redis() -> Redis | None:
    return _client


async def redis_ready() -> bool:
    """True when a connected client answers PING."""
    if _client is None:
        return False
    try:
        return bool(await _client.ping())
    except RedisError as e:
        logger.warning(f"Redis PING failed: {e}")
        return False


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
