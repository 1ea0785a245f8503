# app/llm/service/provider/base_provider.py
from abc import ABC, abstractmethod
from typing import List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from app.llm.models.llm_model import FunctionSpec, LLMMessage, ProviderResponse
from pkg.util.text import truncate

T = TypeVar("T", bound=BaseModel)


class ProviderError(Exception):
    """Single typed failure for every backend: non-success status, transport error, bad body."""

    def __init__(self, provider: str, status, body: str = ""):
        self.provider = provider
        self.status = status
        self.body = body or ""
        super().__init__(f"{provider} API error: {status} {truncate(self.body)}")


class ProviderDisabledError(ProviderError):
    def __init__(self, provider: str, missing: str):
        super().__init__(provider, "disabled", f"missing {missing}")


class BaseProvider(ABC):
    """Abstract base provider for all LLM integrations."""

    name: str = "base"

    def __init__(self, model: str, tool_model: Optional[str] = None, temperature: float = 0.6, max_tokens: int = 256):
        self.model = model
        self.tool_model = tool_model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @abstractmethod
    async def call(self, messages: List[LLMMessage], tools: Optional[List[FunctionSpec]] = None) -> ProviderResponse:
        """Send one request and normalize the reply."""
        pass

    def is_enabled(self) -> bool:
        """Whether this provider is enabled/usable (e.g., API key present)."""
        return True

    def select_model(self, tools: Optional[List[FunctionSpec]]) -> str:
        """Use the tool model, if one is configured, whenever tools are offered."""
        if tools and self.tool_model:
            return self.tool_model
        return self.model

    def ensure_enabled(self, missing: str) -> None:
        if not self.is_enabled():
            raise ProviderDisabledError(self.name, missing)

    async def aclose(self) -> None:
        return None


def flatten_tool_message(message: LLMMessage) -> LLMMessage:
    """
    Render a tool-role message as plain user text.

    None of the chat APIs accept a tool message without the assistant turn
    that requested it, and that turn is never stored.
    """
    if message.role != "tool":
        return message
    return LLMMessage(role="user", content=f"[tool result: {message.name or 'tool'}] {message.content}")


def flatten_tool_messages(messages: List[LLMMessage]) -> List[LLMMessage]:
    return [flatten_tool_message(m) for m in messages]


def parse_http_response(provider: str, response: httpx.Response, dto: Type[T]) -> T:
    """Raise ProviderError for a non-2xx status or a body that does not fit `dto`."""
    if not response.is_success:
        raise ProviderError(provider, response.status_code, response.text)
    try:
        return dto.model_validate(response.json())
    except (ValueError, ValidationError) as e:
        raise ProviderError(provider, response.status_code, f"malformed response: {e}") from e
