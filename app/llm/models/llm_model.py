from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class LLMMessage(BaseModel):
    """Generic outbound message; adapters translate it to their wire shape."""
    role: Literal["system", "user", "assistant", "tool"]
    content: str
    name: Optional[str] = None
    tool_call_id: Optional[str] = None


class FunctionSpec(BaseModel):
    name: str
    description: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ToolCall(BaseModel):
    # backends may omit the id; the orchestrator assigns one
    id: Optional[str] = None
    name: str
    # JSON object, or a raw string still to be decoded
    arguments: Union[Dict[str, Any], str] = Field(default_factory=dict)


class ProviderResponse(BaseModel):
    text: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)
