from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel


class BaseResponse(BaseModel):
    status: bool
    message: str
    data: dict | None = None


class HistoryMessage(BaseModel):
    role: Literal["system", "user", "assistant", "tool"]
    content: str
    attribution: Optional[str] = None
    tool_call_id: Optional[str] = None
    ephemeral: bool = False
    created_at: datetime


class HistoryResponse(BaseModel):
    view: Literal["full", "context"]
    count: int
    messages: List[HistoryMessage]
