"""
Redis implementation of the key-value store protocol.

Values are stored as JSON. Read-modify-write sequences run as MULTI/EXEC
pipelines so concurrent evaluations for one user cannot lose updates.
"""

import json
from typing import Any, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..utils.error_handling import CollaboratorUnavailable
from ..utils.logging import get_logger

logger = get_logger("store.redis")


def _decode(raw: str, key: str) -> Optional[Any]:
    """JSON-decode one stored value; undecodable values read as None."""
    try:
        return json.loads(raw)
    except ValueError as e:
        logger.warning(f"Discarding undecodable value: {e}", extra={"key": key})
        return None


class RedisStore:
    """Key-value store backed by ``redis.asyncio``."""

    def __init__(self, url: Optional[str] = None, client: Optional[redis.Redis] = None):
        """
        Initialize the store.

        Args:
            url: Redis connection URL, used when no client is given
            client: Pre-built client (shared pools, tests)
        """
        if client is None and not url:
            raise ValueError("Either a Redis URL or a client is required")
        self._url = url
        self._pool: Optional[redis.ConnectionPool] = None
        self._client = client

    async def connect(self) -> None:
        """Create the connection pool and check the server answers."""
        if self._client is None:
            self._pool = redis.ConnectionPool.from_url(
                self._url, decode_responses=True, max_connections=50
            )
            self._client = redis.Redis(connection_pool=self._pool)
        try:
            await self._client.ping()
        except (RedisError, OSError) as e:
            raise CollaboratorUnavailable("redis", str(e)) from e
        logger.info("Redis connected", extra={"url": self._url})

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise CollaboratorUnavailable("redis", "store is not connected")
        return self._client

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.client.get(key)
        except (RedisError, OSError) as e:
            raise CollaboratorUnavailable("redis", str(e)) from e
        return _decode(raw, key) if raw is not None else None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        try:
            await self.client.set(key, json.dumps(value), ex=ttl_seconds or None)
        except (RedisError, OSError) as e:
            raise CollaboratorUnavailable("redis", str(e)) from e

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except (RedisError, OSError) as e:
            raise CollaboratorUnavailable("redis", str(e)) from e

    async def incr(self, key: str, ttl_seconds: Optional[int] = None) -> int:
        """Atomic increment; the TTL is only applied to a fresh counter."""
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                if ttl_seconds:
                    pipe.expire(key, ttl_seconds, nx=True)
                results = await pipe.execute()
        except (RedisError, OSError) as e:
            raise CollaboratorUnavailable("redis", str(e)) from e
        return int(results[0])

    async def append(
        self,
        key: str,
        value: Any,
        ttl_seconds: Optional[int] = None,
        max_length: Optional[int] = None,
    ) -> int:
        """Atomic append, trim to the newest ``max_length`` and TTL refresh."""
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.rpush(key, json.dumps(value))
                if max_length is not None:
                    pipe.ltrim(key, -max_length, -1)
                if ttl_seconds:
                    pipe.expire(key, ttl_seconds)
                results = await pipe.execute()
        except (RedisError, OSError) as e:
            raise CollaboratorUnavailable("redis", str(e)) from e

        length = int(results[0])
        return min(length, max_length) if max_length is not None else length

    async def list_range(self, key: str) -> List[Any]:
        """All items, oldest first; an undecodable item keeps its slot as None."""
        try:
            raw_items = await self.client.lrange(key, 0, -1)
        except (RedisError, OSError) as e:
            raise CollaboratorUnavailable("redis", str(e)) from e
        return [_decode(item, key) for item in raw_items]

    async def trim_front(self, key: str, count: int) -> None:
        """Drop the oldest ``count`` items; items appended since are kept."""
        try:
            await self.client.ltrim(key, count, -1)
        except (RedisError, OSError) as e:
            raise CollaboratorUnavailable("redis", str(e)) from e
