"""
Tests for the shared Redis client.
"""

from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from visualizar.core import redis as redis_module


@pytest.fixture(autouse=True)
def reset_client():
    redis_module._client = None
    yield
    redis_module._client = None


@pytest.mark.asyncio
async def test_not_ready_without_client():
    assert redis_module.get_redis() is None
    assert await redis_module.redis_ready() is False


@pytest.mark.asyncio
async def test_init_publishes_client_after_ping():
    client = AsyncMock()
    client.ping = AsyncMock(return_value=True)

    with patch("visualizar.core.redis.from_url", return_value=client):
        await redis_module.init_redis("redis://localhost:6379/0")

    assert redis_module.get_redis() is client
    assert await redis_module.redis_ready() is True


@pytest.mark.asyncio
async def test_init_failure_leaves_no_client():
    client = AsyncMock()
    client.ping = AsyncMock(side_effect=RedisConnectionError("refused"))

    with patch("visualizar.core.redis.from_url", return_value=client):
        with pytest.raises(RedisConnectionError):
            await redis_module.init_redis("redis://localhost:6379/0")

    assert redis_module.get_redis() is None
    client.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_close_resets_client():
    client = AsyncMock()
    redis_module._client = client

    await redis_module.close_redis()

    client.aclose.assert_awaited_once()
    assert redis_module.get_redis() is None
