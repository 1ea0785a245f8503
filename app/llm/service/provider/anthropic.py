# app/llm/service/provider/anthropic.py
from typing import List, Optional

import httpx
from anthropic import APIConnectionError, APIStatusError, AnthropicError, AsyncAnthropic

from .base_provider import BaseProvider, ProviderError, flatten_tool_messages
from app.core.logger import get_logger
from app.llm.models.llm_model import FunctionSpec, LLMMessage, ProviderResponse, ToolCall


class AnthropicProvider(BaseProvider):
    """Handles Claude (Anthropic) models."""

    name = "anthropic"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "claude-3-5-haiku-latest",
        temperature: float = 0.6,
        max_tokens: int = 256,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(model, None, temperature, max_tokens)
        self.api_key = api_key
        self.client = (
            AsyncAnthropic(api_key=self.api_key, max_retries=0, http_client=http_client)
            if self.api_key
            else None
        )
        self._enabled = bool(self.api_key)
        self._logger = get_logger("AnthropicProvider")

    def is_enabled(self) -> bool:
        return self._enabled

    @staticmethod
    def _to_messages(messages: List[LLMMessage]) -> List[dict]:
        """Drop system entries and merge runs of one role; the API wants user/assistant alternation."""
        merged: List[dict] = []
        for m in flatten_tool_messages(messages):
            if m.role == "system":
                continue
            if merged and merged[-1]["role"] == m.role:
                merged[-1]["content"] += "\n\n" + m.content
            else:
                merged.append({"role": m.role, "content": m.content})
        # eviction can leave an assistant turn at the head
        if merged and merged[0]["role"] == "assistant":
            merged.insert(0, {"role": "user", "content": "(earlier conversation omitted)"})
        return merged

    async def call(self, messages: List[LLMMessage], tools: Optional[List[FunctionSpec]] = None) -> ProviderResponse:
        self.ensure_enabled("ANTHROPIC_API_KEY")

        kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": self._to_messages(messages),
        }
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = [
                {"name": t.name, "description": t.description, "input_schema": t.parameters}
                for t in tools
            ]
        self._logger.debug(f"Using model {self.model} with {len(tools or [])} tools")

        try:
            msg = await self.client.messages.create(**kwargs)
        except APIStatusError as e:
            raise ProviderError(self.name, e.status_code, e.response.text) from e
        except APIConnectionError as e:
            raise ProviderError(self.name, "transport", str(e)) from e
        except AnthropicError as e:
            raise ProviderError(self.name, "error", str(e)) from e

        tool_calls = [
            ToolCall(id=block.id, name=block.name, arguments=dict(block.input or {}))
            for block in msg.content
            if block.type == "tool_use"
        ]
        if tool_calls:
            return ProviderResponse(text="", tool_calls=tool_calls)
        return ProviderResponse(text="".join(block.text for block in msg.content if block.type == "text"))

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.close()
