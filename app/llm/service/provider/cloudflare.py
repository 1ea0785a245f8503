# app/llm/service/provider/cloudflare.py
from typing import List, Optional

import httpx

from .base_provider import BaseProvider, ProviderError, flatten_tool_messages, parse_http_response
from .schemas import CloudflareResponse
from app.core.logger import get_logger
from app.llm.models.llm_model import FunctionSpec, LLMMessage, ProviderResponse, ToolCall


class CloudflareProvider(BaseProvider):
    """Workers AI over the REST API. Tools use the flat {name, description, parameters} shape."""

    name = "cloudflare"
    API_BASE = "https://api.cloudflare.com/client/v4"

    def __init__(
        self,
        account_id: Optional[str],
        api_token: Optional[str],
        model: str = "@cf/meta/llama-3-8b-instruct",
        tool_model: Optional[str] = "@cf/meta/llama-3.1-8b-instruct",
        temperature: float = 0.6,
        max_tokens: int = 256,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(model, tool_model, temperature, max_tokens)
        self.account_id = account_id
        self.api_token = api_token
        self._transport = transport
        self._enabled = bool(account_id and api_token)
        self._logger = get_logger("CloudflareProvider")

    def is_enabled(self) -> bool:
        return self._enabled

    async def call(self, messages: List[LLMMessage], tools: Optional[List[FunctionSpec]] = None) -> ProviderResponse:
        self.ensure_enabled("CLOUDFLARE_ACCOUNT_ID/CLOUDFLARE_API_TOKEN")

        model = self.select_model(tools)
        payload = {
            "messages": [m.model_dump(include={"role", "content"}) for m in flatten_tool_messages(messages)],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            payload["tools"] = [t.model_dump() for t in tools]
        self._logger.debug(f"Using model {model} with {len(tools or [])} tools")

        url = f"{self.API_BASE}/accounts/{self.account_id}/ai/run/{model}"
        headers = {"Authorization": f"Bearer {self.api_token}"}
        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                res = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise ProviderError(self.name, "transport", str(e)) from e

        data = parse_http_response(self.name, res, CloudflareResponse)
        if not data.success or data.result is None:
            raise ProviderError(self.name, res.status_code, res.text)
        self._logger.debug(f"Raw response: {res.text}")

        tool_calls = [
            ToolCall(id=tc.id, name=tc.name, arguments=tc.arguments or {})
            for tc in data.result.tool_calls or []
            if tc.name
        ]
        if tool_calls:
            self._logger.info(f"Tool calls requested: {[tc.name for tc in tool_calls]}")
            return ProviderResponse(text="", tool_calls=tool_calls)
        return ProviderResponse(text=data.result.response or "")
