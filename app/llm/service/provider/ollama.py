# app/llm/service/provider/ollama.py
from typing import Dict, List, Optional

import httpx

from .base_provider import BaseProvider, ProviderError, flatten_tool_messages, parse_http_response
from .schemas import OllamaChatResponse, OllamaGenerateResponse
from app.core.logger import get_logger
from app.llm.models.llm_model import FunctionSpec, LLMMessage, ProviderResponse, ToolCall


class OllamaProvider(BaseProvider):
    """
    Handles Ollama interaction.

    A local server speaks the chat API with nested tool definitions. Ollama
    cloud (host on ollama.com) only gets a single flattened prompt through the
    generate API and never sees tools.
    """

    name = "ollama"

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "llama3",
        api_key: Optional[str] = None,
        temperature: float = 0.6,
        max_tokens: int = 256,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(model, None, temperature, max_tokens)
        self.host = (host or "http://localhost:11434").rstrip("/")
        self.api_key = api_key
        self._transport = transport
        self._logger = get_logger("OllamaProvider")

    @property
    def is_cloud(self) -> bool:
        return "ollama.com" in self.host

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post(self, path: str, payload: dict) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=60.0, transport=self._transport) as client:
                return await client.post(f"{self.host}{path}", json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            raise ProviderError(self.name, "transport", str(e)) from e

    async def call(self, messages: List[LLMMessage], tools: Optional[List[FunctionSpec]] = None) -> ProviderResponse:
        if self.is_cloud:
            return await self._call_cloud(messages)
        return await self._call_local(messages, tools)

    async def _call_cloud(self, messages: List[LLMMessage]) -> ProviderResponse:
        lines = []
        for m in flatten_tool_messages(messages):
            if m.role == "system":
                lines.append(f"System: {m.content}")
            elif m.role == "assistant":
                lines.append(f"Assistant: {m.content}")
            else:
                lines.append(f"User: {m.content}")
        payload = {"model": self.model, "prompt": "\n\n".join(lines), "stream": False}

        res = await self._post("/api/generate", payload)
        data = parse_http_response(self.name, res, OllamaGenerateResponse)
        return ProviderResponse(text=data.response or "")

    async def _call_local(self, messages: List[LLMMessage], tools: Optional[List[FunctionSpec]]) -> ProviderResponse:
        payload = {
            "model": self.model,
            "messages": [m.model_dump(include={"role", "content"}) for m in flatten_tool_messages(messages)],
            "stream": False,
            "options": {"temperature": self.temperature, "num_predict": self.max_tokens},
        }
        if tools:
            payload["tools"] = [{"type": "function", "function": t.model_dump()} for t in tools]
        self._logger.debug(f"Using model {self.model} with {len(tools or [])} tools")

        res = await self._post("/api/chat", payload)
        data = parse_http_response(self.name, res, OllamaChatResponse)
        message = data.message
        if message is None:
            return ProviderResponse()

        if message.tool_calls:
            tool_calls = [
                ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or {})
                for tc in message.tool_calls
            ]
            return ProviderResponse(text="", tool_calls=tool_calls)
        return ProviderResponse(text=message.content or "")
