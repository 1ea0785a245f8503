import asyncio
import json

import pytest

from app.agents.brain import Brain
from app.auth.service.auth_service import AuthService
from app.chat.repository.memory_repository import MemoryRepository
from app.chat.service.memory import ConversationMemory
from app.chat.service.session_service import ChatRoom
from app.core.logger import get_logger
from app.llm.models.llm_model import ProviderResponse
from app.tools.builtins.current_time import current_time_tool
from app.tools.entity.tool import ToolContext
from app.tools.service.registry import ToolRegistry

USER_SECRETS = json.dumps({"alice": "a-secret", "bob": "b-secret", "carol": "c-secret"})
STORAGE_KEY = "room:test:chat_history"


class FakeStore:
    """In-memory stand-in for RedisClient / UpstashRedisClient."""

    def __init__(self):
        self.data = {}
        self.writes = 0
        self.fail_writes = False
        self.refuse_writes = False

    async def async_get_value(self, key, default=None):
        if key not in self.data:
            return default
        # round-trip through JSON like the real clients do
        return json.loads(self.data[key])

    async def async_set_value(self, key, value, expiry=None):
        if self.fail_writes:
            raise ConnectionError("store unavailable")
        if self.refuse_writes:
            return False
        self.data[key] = json.dumps(value)
        self.writes += 1
        return True


class FakeConnection:
    def __init__(self):
        self.sent = []
        self.closed = None
        self.fail_send = False

    async def send_text(self, data):
        if self.fail_send:
            raise RuntimeError("socket is closed")
        self.sent.append(data)

    async def close(self, code=1000, reason=None):
        self.closed = (code, reason)


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class ScriptedLLM:
    """
    Stands in for LLMService. Each call pops the next scripted item: a
    ProviderResponse, an exception to raise, or a (delay, item) pair.
    """

    def __init__(self, items=None):
        self.items = list(items or [])
        self.calls = []

    def push(self, *items):
        self.items.extend(items)

    async def call(self, messages, tools=None):
        self.calls.append((list(messages), tools))
        item = self.items.pop(0) if self.items else ProviderResponse(text="ok")
        if isinstance(item, tuple):
            delay, item = item
            await asyncio.sleep(delay)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def memory(store):
    return ConversationMemory(MemoryRepository(store, STORAGE_KEY), max_size=100)


@pytest.fixture
def auth():
    return AuthService(USER_SECRETS, get_logger("AuthService"))


@pytest.fixture
def registry():
    registry = ToolRegistry()
    registry.register(current_time_tool)
    return registry


@pytest.fixture
def llm():
    return ScriptedLLM()


@pytest.fixture
def brain(llm, registry):
    return Brain(llm, registry, robot_name="EMO", tool_context=ToolContext(default_timezone="UTC"))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_room(memory, auth, brain, clock):
    def _make(mode="single", **kwargs):
        options = dict(robot_name="EMO", mode=mode, max_message_length=50, rate_limit_ms=1000, clock=clock)
        options.update(kwargs)
        return ChatRoom(memory, auth, brain, **options)

    return _make


@pytest.fixture
def room(make_room):
    return make_room()


@pytest.fixture
def new_connection():
    return FakeConnection
