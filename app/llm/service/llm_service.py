import asyncio
import time
from typing import Dict, List, Optional

from app.core.config import Settings
from app.core.logger import get_logger
from app.llm.models.llm_model import FunctionSpec, LLMMessage, ProviderResponse
from app.llm.service.provider.anthropic import AnthropicProvider
from app.llm.service.provider.base_provider import BaseProvider, ProviderError
from app.llm.service.provider.cloudflare import CloudflareProvider
from app.llm.service.provider.deepseek import DeepSeekProvider
from app.llm.service.provider.gemini import GeminiProvider
from app.llm.service.provider.ollama import OllamaProvider
from app.llm.service.provider.openai_provider import OpenAIProvider

logger = get_logger("LLMService")

SUPPORTED_PROVIDERS = ("cloudflare", "ollama", "openai", "deepseek", "gemini", "anthropic")
DEFAULT_PROVIDER = "cloudflare"


def create_provider(settings: Settings) -> BaseProvider:
    """Build the adapter named by AI_PROVIDER; unknown names fall back to Cloudflare."""
    name = (settings.AI_PROVIDER or "").strip().lower()
    if name not in SUPPORTED_PROVIDERS:
        logger.warning(f"Unknown AI_PROVIDER '{settings.AI_PROVIDER}', falling back to {DEFAULT_PROVIDER}")
        name = DEFAULT_PROVIDER

    sampling = {"temperature": settings.TEMPERATURE, "max_tokens": settings.MAX_TOKENS}
    if name == "ollama":
        provider = OllamaProvider(
            host=settings.OLLAMA_HOST,
            model=settings.OLLAMA_MODEL,
            api_key=settings.OLLAMA_API_KEY,
            **sampling,
        )
    elif name == "openai":
        provider = OpenAIProvider(
            api_key=settings.OPENAI_API_KEY,
            host=settings.OPENAI_HOST,
            model=settings.OPENAI_MODEL,
            tool_model=settings.OPENAI_TOOL_MODEL,
            **sampling,
        )
    elif name == "deepseek":
        provider = DeepSeekProvider(
            api_key=settings.DEEPSEEK_API_KEY,
            base_url=settings.DEEPSEEK_BASE_URL,
            model=settings.DEEPSEEK_MODEL,
            **sampling,
        )
    elif name == "gemini":
        provider = GeminiProvider(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            endpoint=settings.GEMINI_ENDPOINT,
            **sampling,
        )
    elif name == "anthropic":
        provider = AnthropicProvider(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.ANTHROPIC_MODEL,
            **sampling,
        )
    else:
        provider = CloudflareProvider(
            account_id=settings.CLOUDFLARE_ACCOUNT_ID,
            api_token=settings.CLOUDFLARE_API_TOKEN,
            model=settings.CLOUDFLARE_MODEL,
            tool_model=settings.CLOUDFLARE_TOOL_MODEL,
            **sampling,
        )

    if not provider.is_enabled():
        logger.warning(f"Provider {provider.name} is missing credentials; replies will be degraded")
    logger.info(f"Using AI provider: {provider.name}")
    return provider


class LLMService:
    """Wraps the active provider with a bounded timeout and latency bookkeeping."""

    def __init__(self, provider: BaseProvider, request_timeout_ms: int = 15000):
        self.provider = provider
        self.request_timeout_ms = request_timeout_ms
        self.provider_latency: Dict[str, float] = {}

    @property
    def provider_name(self) -> str:
        return self.provider.name

    async def _with_timeout(self, coro, timeout_ms: int):
        """Helper to apply timeout."""
        try:
            return await asyncio.wait_for(coro, timeout_ms / 1000)
        except asyncio.TimeoutError:
            raise ProviderError(self.provider.name, "timeout", f"no response within {timeout_ms} ms")

    async def call(self, messages: List[LLMMessage], tools: Optional[List[FunctionSpec]] = None) -> ProviderResponse:
        start = time.perf_counter()
        response = await self._with_timeout(self.provider.call(messages, tools), self.request_timeout_ms)
        self.provider_latency[self.provider.name] = time.perf_counter() - start
        return response

    async def close(self) -> None:
        await self.provider.aclose()
