import asyncio
from typing import List

from app.chat.entity.chat import ChatMessage
from app.chat.repository.memory_repository import MemoryRepository
from app.core.logger import get_logger

logger = get_logger("Memory")


class ConversationMemory:
    """
    Bounded, ordered conversation log with write-through persistence.

    - Insertion order is the only ordering; oldest entries are evicted first.
    - Every mutation completes only after the durable write does. If the write
      fails the in-memory log is rolled back and the error is re-raised.
    - `context_view()` drops ephemeral entries; `full_view()` does not.
    """

    DEFAULT_MAX_SIZE = 100

    def __init__(self, repository: MemoryRepository, max_size: int = DEFAULT_MAX_SIZE):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.repository = repository
        self.max_size = max_size
        self._history: List[ChatMessage] = []
        self._loaded = False
        # one load or durable write in flight at a time
        self._lock = asyncio.Lock()

    async def load(self) -> None:
        """Hydrate from durable storage, keeping the newest `max_size` entries."""
        async with self._lock:
            await self._load()

    async def _load(self) -> None:
        history = await self.repository.load()
        self._history = history[-self.max_size:]
        self._loaded = True
        logger.info(f"Loaded {len(self._history)} history entries")

    async def ensure_loaded(self) -> None:
        async with self._lock:
            await self._ensure_loaded()

    async def _ensure_loaded(self) -> None:
        if not self._loaded:
            await self._load()

    async def append(self, message: ChatMessage) -> None:
        async with self._lock:
            await self._ensure_loaded()
            await self._append(message)

    async def _append(self, message: ChatMessage) -> None:
        previous = self._history
        updated = previous + [message]
        if len(updated) > self.max_size:
            updated = updated[-self.max_size:]
        self._history = updated
        try:
            await self.repository.save(self._history)
        except Exception:
            self._history = previous
            raise

    async def clear(self) -> None:
        async with self._lock:
            await self._clear()

    async def _clear(self) -> None:
        previous = self._history
        self._history = []
        try:
            await self.repository.save(self._history)
        except Exception:
            self._history = previous
            raise
        self._loaded = True

    def full_view(self) -> List[ChatMessage]:
        return list(self._history)

    def context_view(self) -> List[ChatMessage]:
        return [m for m in self._history if not m.ephemeral]

    def __len__(self) -> int:
        return len(self._history)
