"""Async key-value store client (Redis / Upstash)"""
import json
from typing import Any, List, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.utils.exceptions import StoreUnavailableError
from app.utils.logger import get_logger

logger = get_logger("redis")


class RedisStore:
    """
    Thin wrapper over ``redis.asyncio`` used by the key and usage services.

    Values are always JSON: ``set`` writes ``json.dumps(value)`` and ``get``
    reads ``json.loads``. A Python string is therefore stored as a JSON string,
    so ``"123"`` and ``123`` come back as what was written. A stored value that
    is not valid JSON is reported as ``StoreUnavailableError`` rather than
    returned as a raw string.

    Every transport failure is re-raised as ``StoreUnavailableError``.
    """

    def __init__(self, url: Optional[str] = None, client: Optional[aioredis.Redis] = None):
        self.url = url
        self._client = client
        self.is_connected = False

    async def connect(self) -> None:
        """Create the client (unless injected) and ping it"""
        if self._client is None:
            if not self.url:
                raise StoreUnavailableError("REDIS_URL is not configured")
            self._client = aioredis.from_url(self.url, decode_responses=True)

        try:
            await self._client.ping()
        except (RedisError, OSError) as e:
            self.is_connected = False
            logger.error(f"Failed to connect to Redis: {str(e)}")
            raise StoreUnavailableError(f"Redis connection failed: {str(e)}") from e

        self.is_connected = True
        logger.info("Redis connected successfully")

    async def close(self) -> None:
        if self._client is not None and self.is_connected:
            await self._client.aclose()
            logger.info("Redis disconnected")
        self.is_connected = False

    def _require_client(self) -> aioredis.Redis:
        if not self.is_connected or self._client is None:
            raise StoreUnavailableError("Redis not connected")
        return self._client

    async def get(self, key: str) -> Optional[Any]:
        client = self._require_client()
        try:
            raw = await client.get(key)
        except (RedisError, OSError) as e:
            logger.error(f"Redis GET error for {key}: {str(e)}")
            raise StoreUnavailableError(f"Redis GET failed: {str(e)}") from e

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error(f"Undecodable value stored under {key}")
            raise StoreUnavailableError(f"Value under {key} is not valid JSON") from e

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        client = self._require_client()
        payload = json.dumps(value)
        try:
            if ttl:
                await client.setex(key, ttl, payload)
            else:
                await client.set(key, payload)
        except (RedisError, OSError) as e:
            logger.error(f"Redis SET error for {key}: {str(e)}")
            raise StoreUnavailableError(f"Redis SET failed: {str(e)}") from e

        logger.debug(f"Redis SET {key} (ttl={ttl})")

    async def delete(self, key: str) -> int:
        client = self._require_client()
        try:
            deleted = await client.delete(key)
        except (RedisError, OSError) as e:
            logger.error(f"Redis DEL error for {key}: {str(e)}")
            raise StoreUnavailableError(f"Redis DEL failed: {str(e)}") from e

        logger.debug(f"Redis DEL {key} (deleted={deleted})")
        return deleted

    async def push_capped(self, key: str, value: Any, max_length: int) -> None:
        """Prepend a value to a list, keeping only the newest ``max_length`` entries"""
        client = self._require_client()
        try:
            await client.lpush(key, json.dumps(value))
            await client.ltrim(key, 0, max_length - 1)
        except (RedisError, OSError) as e:
            logger.error(f"Redis LPUSH error for {key}: {str(e)}")
            raise StoreUnavailableError(f"Redis LPUSH failed: {str(e)}") from e

    async def get_list(self, key: str, start: int = 0, end: int = -1) -> List[Any]:
        """Decoded list items from ``start`` to ``end`` inclusive, newest first"""
        client = self._require_client()
        try:
            raw_items = await client.lrange(key, start, end)
        except (RedisError, OSError) as e:
            logger.error(f"Redis LRANGE error for {key}: {str(e)}")
            raise StoreUnavailableError(f"Redis LRANGE failed: {str(e)}") from e

        try:
            return [json.loads(raw) for raw in raw_items]
        except (TypeError, ValueError) as e:
            logger.error(f"Undecodable list item stored under {key}")
            raise StoreUnavailableError(f"List under {key} holds invalid JSON") from e
