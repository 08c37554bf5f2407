"""Async Redis client and the cache store built on it.

Provides connection pooling and lifecycle management for Redis.
"""

from __future__ import annotations

from typing import Any

import redis.asyncio as redis
import structlog

logger = structlog.get_logger()


class RedisClient:
    """Async Redis client wrapper with connection pooling."""

    def __init__(self, redis_url: str, max_connections: int = 20) -> None:
        """Initialize Redis client.

        Args:
            redis_url: Redis connection URL (e.g., redis://localhost:6379/0)
            max_connections: Maximum pool connections
        """
        self.redis_url = redis_url
        self.max_connections = max_connections
        self._pool: redis.ConnectionPool | None = None
        self._client: redis.Redis | None = None

    async def connect(self) -> None:
        """Establish connection to Redis."""
        if self._client is not None:
            return

        self._pool = redis.ConnectionPool.from_url(
            self.redis_url,
            decode_responses=True,
            max_connections=self.max_connections,
        )
        self._client = redis.Redis(connection_pool=self._pool)

        await self._client.ping()
        logger.info("redis_connected", url=mask_url(self.redis_url))

    async def close(self) -> None:
        """Close Redis connection and pool."""
        if self._client:
            await self._client.aclose()
            self._client = None
        if self._pool:
            await self._pool.disconnect()
            self._pool = None
        logger.info("redis_disconnected")

    @property
    def client(self) -> redis.Redis:
        """Get Redis client.

        Raises:
            RuntimeError: If not connected
        """
        if self._client is None:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._client is not None


def mask_url(url: str) -> str:
    """Mask credentials in a Redis URL for logging."""
    if "@" in url:
        scheme = url.split("://", 1)[0] if "://" in url else "redis"
        return f"{scheme}://***@{url.rsplit('@', 1)[-1]}"
    return url


class RedisCacheStore:
    """Key/value cache store with TTL over Redis."""

    def __init__(self, redis_client: RedisClient) -> None:
        """Initialize cache store.

        Args:
            redis_client: Connected Redis client
        """
        self._redis = redis_client

    @property
    def client(self) -> Any:
        return self._redis.client

    async def get(self, key: str) -> str | None:
        value = await self.client.get(key)
        return value if value is None else str(value)

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        await self.client.setex(key, ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self.client.delete(key)
