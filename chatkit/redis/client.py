from typing import Optional, Any
import json
import logging

from redis.exceptions import RedisError
import redis.asyncio as aioredis

from chatkit.storage.kv_store import KeyValueStore


class RedisClient(KeyValueStore):
    """
    Redis-backed key-value store with a lazily created async connection pool.
    Keys are namespaced with `prefix`; values are stored JSON-encoded.
    """

    def __init__(
        self,
        logger: logging.Logger,
        host: str = "localhost",
        port: int = 6379,
        password: Optional[str] = None,
        prefix: str = "",
        client: Optional[aioredis.Redis] = None,
    ):
        self.logger = logger
        self.host = host
        self.port = port
        self.password = password
        self.prefix = prefix

        self._async_redis: Optional[aioredis.Redis] = client
        self._async_pool: Optional[aioredis.ConnectionPool] = None

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def _get_async_redis(self) -> aioredis.Redis:
        """Get or create async Redis client"""
        if self._async_redis is None:
            self._async_pool = aioredis.ConnectionPool(
                host=self.host,
                port=self.port,
                password=self.password,
                decode_responses=True,
                max_connections=20,
                socket_connect_timeout=5.0,
            )
            self._async_redis = aioredis.Redis(connection_pool=self._async_pool)
            self.logger.info(f"Redis pool created for {self.host}:{self.port}")
        return self._async_redis

    async def ping(self) -> bool:
        try:
            redis = await self._get_async_redis()
            return bool(await redis.ping())
        except RedisError as e:
            self.logger.error(f"Redis ping failed: {str(e)}")
            return False

    async def get(self, key: str, default: Any = None) -> Any:
        """
        Get value for a key from Redis.

        Returns:
            The JSON-decoded value if found, otherwise `default`
        """
        try:
            redis = await self._get_async_redis()
            value: Optional[str] = await redis.get(self._key(key))
            if value is None:
                return default
            try:
                return json.loads(value)
            except (TypeError, json.JSONDecodeError):
                return value
        except RedisError as e:
            self.logger.error(f"Error getting key {key}: {str(e)}")
            raise

    async def set(self, key: str, value: Any) -> bool:
        """Set a key to the JSON encoding of `value`."""
        try:
            redis = await self._get_async_redis()
            return bool(await redis.set(self._key(key), json.dumps(value)))
        except RedisError as e:
            self.logger.error(f"Error setting key {key}: {str(e)}")
            raise

    async def delete(self, key: str) -> int:
        try:
            redis = await self._get_async_redis()
            return await redis.delete(self._key(key))
        except RedisError as e:
            self.logger.error(f"Error deleting key {key}: {str(e)}")
            raise

    async def close(self) -> None:
        """Close async Redis connection pool"""
        if self._async_redis is not None:
            await self._async_redis.aclose()
            self._async_redis = None
        if self._async_pool is not None:
            await self._async_pool.disconnect()
            self._async_pool = None
            self.logger.info("Async Redis connection pool closed")
