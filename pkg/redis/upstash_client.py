import httpx
from typing import Optional, Any, Union
import json
import logging
from datetime import timedelta


class UpstashRedisClient:
    """Upstash Redis REST API client (async)"""

    def __init__(
        self,
        logger: logging.Logger,
        url: str,
        token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.logger = logger
        self.url = url.rstrip('/')
        self.async_client = httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json"
            },
            timeout=10.0,
            transport=transport,
        )
        self.logger.info(f"Upstash Redis client initialized for {self.url}")

    async def _execute(self, command: list) -> Any:
        """Execute a Redis command via REST API"""
        try:
            response = await self.async_client.post(self.url, json=command)
            response.raise_for_status()
            data = response.json()
        except Exception as e:
            self.logger.error(f"Redis command {command[0]} failed: {e}")
            raise
        if "error" in data:
            self.logger.error(f"Redis command {command[0]} failed: {data['error']}")
            raise RuntimeError(f"Upstash error: {data['error']}")
        return data.get("result")

    async def ping(self) -> bool:
        """Test connection"""
        result = await self._execute(["PING"])
        return result == "PONG"

    async def async_close(self) -> None:
        """Close the HTTP client"""
        await self.async_client.aclose()
        self.logger.info("Upstash Redis client closed.")

    async def async_get_value(self, key: str, default: Any = None) -> Any:
        """
        Async get value for a key.

        Returns the value, deserialized from JSON if it looks like an object
        or array, otherwise `default` when the key does not exist.
        """
        value = await self._execute(["GET", key])
        if value is None:
            return default

        if isinstance(value, str):
            try:
                if value.startswith('{') or value.startswith('['):
                    return json.loads(value)
            except json.JSONDecodeError:
                pass
        return value

    async def async_set_value(self, key: str, value: Any, expiry: Optional[Union[int, timedelta]] = None) -> bool:
        """
        Async set a key-value pair, optionally with expiry.

        Args:
            key: Key to set
            value: Value to set (will be JSON serialized if not string)
            expiry: Expiry time in seconds or timedelta
        """
        if not isinstance(value, (str, int, float, bool)):
            value = json.dumps(value, ensure_ascii=False)

        if isinstance(expiry, timedelta):
            expiry = int(expiry.total_seconds())

        if expiry:
            command = ["SET", key, str(value), "EX", str(expiry)]
        else:
            command = ["SET", key, str(value)]

        return await self._execute(command) == "OK"
