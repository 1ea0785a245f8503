# app/llm/api/dto.py
from pydantic import BaseModel
from typing import List, Optional


class ProviderInfo(BaseModel):
    name: str
    model: str
    enabled: bool
    latency_ms: Optional[int] = None
    status: str


class ProviderListResponse(BaseModel):
    active: str
    providers: List[ProviderInfo]
    tools: List[str]
