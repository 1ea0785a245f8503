from typing import Optional, Any, Union
from redis.exceptions import RedisError
import json
import logging
from datetime import timedelta
import redis.asyncio as aioredis


class RedisClient:
    """
    Async Redis client with connection pooling. Values that are not plain
    scalars are stored as JSON and decoded again on read.
    """

    def __init__(
        self,
        logger: logging.Logger,
        host: str = "localhost",
        port: int = 6379,
        password: Optional[str] = None,
        ssl: bool = False,
    ):
        self.logger = logger
        self.host = host
        self.port = port
        self.password = password
        self.ssl = ssl

        self._async_redis: Optional[aioredis.Redis] = None
        self._async_pool: Optional[aioredis.ConnectionPool] = None

    async def _get_async_redis(self) -> aioredis.Redis:
        """Get or create async Redis client"""
        if self._async_redis is None:
            pool_kwargs = dict(
                host=self.host,
                port=self.port,
                password=self.password,
                decode_responses=True,
                max_connections=20,
                socket_timeout=5.0,
                socket_connect_timeout=5.0,
            )
            if self.ssl:
                pool_kwargs["connection_class"] = aioredis.SSLConnection
            self._async_pool = aioredis.ConnectionPool(**pool_kwargs)
            self._async_redis = aioredis.Redis(connection_pool=self._async_pool)
        return self._async_redis

    async def ping(self) -> bool:
        """Test connection"""
        try:
            redis = await self._get_async_redis()
            ok = await redis.ping()
            self.logger.info(f"Successfully connected to Redis at {self.host}:{self.port}")
            return bool(ok)
        except RedisError as e:
            self.logger.error(f"Failed to connect to Redis: {str(e)}")
            raise

    async def async_close(self) -> None:
        """Close async Redis connection pool"""
        if self._async_redis is not None:
            await self._async_redis.aclose()
            self._async_redis = None
        if self._async_pool is not None:
            await self._async_pool.disconnect()
            self._async_pool = None
            self.logger.info("Async Redis connection pool closed")

    # Basic Operations
    async def async_get_value(self, key: str, default: Any = None) -> Any:
        """
        Async get value for a key from Redis.

        Returns the value, deserialized from JSON if it looks like an object
        or array, otherwise `default` when the key does not exist.
        """
        try:
            redis = await self._get_async_redis()
            value: Optional[str] = await redis.get(key)
            if value is None:
                return default

            try:
                if isinstance(value, str) and (value.startswith('{') or value.startswith('[')):
                    return json.loads(value)
                return value
            except (TypeError, json.JSONDecodeError):
                return value
        except RedisError as e:
            self.logger.error(f"Error async getting key {key}: {str(e)}")
            raise

    async def async_set_value(self, key: str, value: Any, expiry: Optional[Union[int, timedelta]] = None) -> bool:
        """
        Async set a key-value pair, optionally with expiry.

        Args:
            key: Key to set
            value: Value to set (will be JSON serialized if not string)
            expiry: Expiry time in seconds or timedelta

        Returns:
            True if successful
        """
        try:
            redis = await self._get_async_redis()
            if not isinstance(value, (str, int, float, bool)):
                value = json.dumps(value, ensure_ascii=False)
            if isinstance(expiry, timedelta):
                expiry = int(expiry.total_seconds())

            if expiry:
                return bool(await redis.setex(key, expiry, value))
            return bool(await redis.set(key, value))
        except RedisError as e:
            self.logger.error(f"Error async setting key {key}: {str(e)}")
            raise
