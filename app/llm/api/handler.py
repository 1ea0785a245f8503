from typing import List

from app.llm.api.dto import ProviderInfo, ProviderListResponse
from app.llm.service.llm_service import LLMService


class LLMHandler:
    """Handler for LLM API endpoints."""

    def __init__(self, llm_service: LLMService, tool_names: List[str]):
        self.llm_service = llm_service
        self.tool_names = tool_names

    async def health(self) -> dict:
        """Health check for the active provider."""
        provider = self.llm_service.provider
        return {
            "status": "ok" if provider.is_enabled() else "degraded",
            "provider": provider.name,
            "enabled": provider.is_enabled(),
        }

    async def providers(self) -> ProviderListResponse:
        """Describe the active provider and the tools offered to it."""
        provider = self.llm_service.provider
        latency = self.llm_service.provider_latency.get(provider.name)
        is_enabled = provider.is_enabled()
        info = ProviderInfo(
            name=provider.name,
            model=provider.model,
            enabled=is_enabled,
            latency_ms=int(latency * 1000) if latency else None,
            status="active" if is_enabled else "disabled",
        )
        return ProviderListResponse(active=provider.name, providers=[info], tools=self.tool_names)
