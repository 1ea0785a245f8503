from typing import List, Optional

import httpx

from .base_provider import BaseProvider, ProviderError, flatten_tool_messages, parse_http_response
from .schemas import GeminiResponse
from app.core.logger import get_logger
from app.llm.models.llm_model import FunctionSpec, LLMMessage, ProviderResponse, ToolCall


class GeminiProvider(BaseProvider):
    """Handles Google Gemini models."""

    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.5-flash",
        endpoint: str = "https://generativelanguage.googleapis.com",
        temperature: float = 0.6,
        max_tokens: int = 256,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        effective_model = model if model.startswith("gemini") else "gemini-2.5-flash"
        super().__init__(effective_model, None, temperature, max_tokens)
        self.api_key = api_key
        self.endpoint = (endpoint or "https://generativelanguage.googleapis.com").rstrip("/")
        self._transport = transport
        self._enabled = bool(self.api_key)
        self._logger = get_logger("GeminiProvider")

    def is_enabled(self) -> bool:
        return self._enabled

    def _build_payload(self, messages: List[LLMMessage], tools: Optional[List[FunctionSpec]]) -> dict:
        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
            for m in flatten_tool_messages(messages)
            if m.role != "system"
        ]
        payload = {
            "contents": contents,
            "generationConfig": {"temperature": self.temperature, "maxOutputTokens": self.max_tokens},
        }

        system = next((m for m in messages if m.role == "system"), None)
        if system is not None:
            payload["systemInstruction"] = {"parts": [{"text": system.content}]}

        if tools:
            payload["tools"] = [{"functionDeclarations": [t.model_dump() for t in tools]}]
        return payload

    async def call(self, messages: List[LLMMessage], tools: Optional[List[FunctionSpec]] = None) -> ProviderResponse:
        self.ensure_enabled("GEMINI_API_KEY")

        url = f"{self.endpoint}/v1beta/models/{self.model}:generateContent"
        payload = self._build_payload(messages, tools)
        self._logger.debug(f"Using model {self.model} with {len(tools or [])} tools")
        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                res = await client.post(url, json=payload, params={"key": self.api_key})
        except httpx.HTTPError as e:
            raise ProviderError(self.name, "transport", str(e)) from e

        data = parse_http_response(self.name, res, GeminiResponse)
        if not data.candidates or data.candidates[0].content is None:
            return ProviderResponse()
        parts = data.candidates[0].content.parts

        tool_calls = [
            ToolCall(name=p.functionCall.name, arguments=p.functionCall.args)
            for p in parts
            if p.functionCall is not None
        ]
        if tool_calls:
            return ProviderResponse(text="", tool_calls=tool_calls)
        return ProviderResponse(text="".join(p.text for p in parts if p.text))
