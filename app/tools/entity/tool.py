"""
Tool model.

A tool is a named, schema-described, side-effect-free function the agent may
ask for before answering. Executors take the decoded argument map and a
ToolContext and return any value (or an awaitable of one).
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ToolProperty(BaseModel):
    type: str
    description: str
    enum: Optional[List[str]] = None


class ToolParameters(BaseModel):
    """JSON-schema-like parameter spec (always an object)."""
    type: Literal["object"] = "object"
    properties: Dict[str, ToolProperty] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)

    def to_schema(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


@dataclass
class ToolContext:
    """Ambient values handed to every executor."""
    default_timezone: str = "Asia/Shanghai"


ToolExecutor = Callable[[Dict[str, Any], ToolContext], Union[Any, Awaitable[Any]]]


class ToolDefinition(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    parameters: ToolParameters = Field(default_factory=ToolParameters)
    executor: ToolExecutor
    ephemeral: bool = False


class ToolResult(BaseModel):
    """Textual outcome of one invocation; failures are results too."""
    name: str
    content: str
    ok: bool = True
    ephemeral: bool = False
