# app/llm/api/route.py

from fastapi import APIRouter, Depends, HTTPException, Request
from ..api.handler import LLMHandler
from app.chat.api.dto import BaseResponse


# Dependency injection setup
def get_llm_handler(request: Request) -> LLMHandler:
    llm_service = getattr(request.app.state, "llm_service", None)
    registry = getattr(request.app.state, "tool_registry", None)
    if llm_service is None:
        raise HTTPException(status_code=503, detail="LLM service not initialized")
    tool_names = [t.name for t in registry.list_all()] if registry is not None else []
    return LLMHandler(llm_service, tool_names)


# Main LLM router
llm_router = APIRouter(prefix="/llm", tags=["LLM"])


@llm_router.get("/health", response_model=BaseResponse)
async def health(handler: LLMHandler = Depends(get_llm_handler)):
    """Health check for the active provider."""
    health_data = await handler.health()
    return BaseResponse(
        status=True,
        message="Health check successful",
        data=health_data
    )


@llm_router.get("/providers", response_model=BaseResponse)
async def get_providers(handler: LLMHandler = Depends(get_llm_handler)):
    """Return the active provider and the registered tools."""
    providers_data = await handler.providers()
    return BaseResponse(
        status=True,
        message="Providers fetched successfully",
        data=providers_data.model_dump()
    )
