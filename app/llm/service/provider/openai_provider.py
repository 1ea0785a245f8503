# app/llm/service/provider/openai_provider.py
from typing import List, Optional

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI, OpenAIError

from .base_provider import BaseProvider, ProviderError, flatten_tool_messages
from app.core.logger import get_logger
from app.llm.models.llm_model import FunctionSpec, LLMMessage, ProviderResponse, ToolCall


class OpenAIProvider(BaseProvider):
    """Any OpenAI-compatible chat-completions API. Tool arguments arrive as a JSON string."""

    name = "openai"
    key_setting = "OPENAI_API_KEY"

    def __init__(
        self,
        api_key: Optional[str],
        host: str = "https://api.openai.com",
        model: str = "gpt-3.5-turbo",
        tool_model: Optional[str] = None,
        temperature: float = 0.6,
        max_tokens: int = 256,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(model, tool_model, temperature, max_tokens)
        self.api_key = api_key
        self.base_url = self._base_url(host)
        # no SDK retries; a failed call surfaces as one ProviderError
        self.client = (
            AsyncOpenAI(api_key=self.api_key, base_url=self.base_url, max_retries=0, http_client=http_client)
            if self.api_key
            else None
        )
        self._enabled = bool(self.api_key)
        self._logger = get_logger(f"{self.name.capitalize()}Provider")

    @staticmethod
    def _base_url(host: str) -> str:
        host = (host or "https://api.openai.com").rstrip("/")
        return host if host.endswith("/v1") else f"{host}/v1"

    def is_enabled(self) -> bool:
        return self._enabled

    async def call(self, messages: List[LLMMessage], tools: Optional[List[FunctionSpec]] = None) -> ProviderResponse:
        self.ensure_enabled(self.key_setting)

        model = self.select_model(tools)
        kwargs = {
            "model": model,
            "messages": [m.model_dump(include={"role", "content"}) for m in flatten_tool_messages(messages)],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            kwargs["tools"] = [{"type": "function", "function": t.model_dump()} for t in tools]
        self._logger.debug(f"Using model {model} with {len(tools or [])} tools")

        try:
            resp = await self.client.chat.completions.create(**kwargs)
        except APIStatusError as e:
            raise ProviderError(self.name, e.status_code, e.response.text) from e
        except APIConnectionError as e:
            raise ProviderError(self.name, "transport", str(e)) from e
        except OpenAIError as e:
            raise ProviderError(self.name, "error", str(e)) from e

        if not resp.choices:
            return ProviderResponse()
        message = resp.choices[0].message

        if message.tool_calls:
            tool_calls = [
                ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or {})
                for tc in message.tool_calls
            ]
            return ProviderResponse(text="", tool_calls=tool_calls)
        return ProviderResponse(text=message.content or "")

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.close()
