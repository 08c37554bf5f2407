"""Volatile cache tier and the two-tier session cache."""

from .redis_client import RedisCacheStore, RedisClient
from .session_cache import SessionCache

__all__ = ["RedisCacheStore", "RedisClient", "SessionCache"]
