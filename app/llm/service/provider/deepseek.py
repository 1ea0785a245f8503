# app/llm/service/provider/deepseek.py
from typing import Optional

import httpx

from .openai_provider import OpenAIProvider


class DeepSeekProvider(OpenAIProvider):
    """Handles DeepSeek API integration (OpenAI-compatible client against the DeepSeek base_url)."""

    name = "deepseek"
    key_setting = "DEEPSEEK_API_KEY"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.deepseek.com/v1",
        model: str = "deepseek-chat",
        temperature: float = 0.6,
        max_tokens: int = 256,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        # Normalize model to DeepSeek space if another provider's model was configured
        effective_model = model if (isinstance(model, str) and model.startswith("deepseek")) else "deepseek-chat"
        super().__init__(
            api_key,
            host=base_url,
            model=effective_model,
            temperature=temperature,
            max_tokens=max_tokens,
            http_client=http_client,
        )
