from typing import Any, List, Optional, Protocol

from pydantic import ValidationError

from app.chat.entity.chat import ChatMessage
from app.core.logger import get_logger

logger = get_logger("MemoryRepository")


class PersistenceError(Exception):
    """A durable read or write did not complete."""


class KeyValueStore(Protocol):
    """Async key-value surface shared by RedisClient and UpstashRedisClient."""

    async def async_get_value(self, key: str, default: Any = None) -> Any: ...

    async def async_set_value(self, key: str, value: Any, expiry: Optional[int] = None) -> bool: ...


class MemoryRepository:
    """
    Durable record of one room's memory: a JSON list of ChatMessage stored
    under a single fixed key. No other durable state exists.
    """

    def __init__(self, store: KeyValueStore, storage_key: str):
        self.store = store
        self.storage_key = storage_key

    async def load(self) -> List[ChatMessage]:
        try:
            stored = await self.store.async_get_value(self.storage_key, default=[])
        except Exception as e:
            raise PersistenceError(f"Failed to load {self.storage_key}: {e}") from e

        if not stored:
            return []
        if not isinstance(stored, list):
            raise PersistenceError(f"Stored record {self.storage_key} is not a list")

        messages = []
        for raw in stored:
            try:
                messages.append(ChatMessage.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable history entry in {self.storage_key}: {e}")
        return messages

    async def save(self, messages: List[ChatMessage]) -> None:
        payload = [m.model_dump(mode="json", exclude_none=True) for m in messages]
        try:
            ok = await self.store.async_set_value(self.storage_key, payload)
        except Exception as e:
            raise PersistenceError(f"Failed to save {self.storage_key}: {e}") from e
        if not ok:
            raise PersistenceError(f"Store refused write of {self.storage_key}")
