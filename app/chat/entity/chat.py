# app/chat/entity/chat.py
"""
Models for the room's conversation log and live connections.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Protocol

from pydantic import BaseModel, Field, model_validator


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ChatMessage(BaseModel):
    """
    One turn in the conversation log.

    `attribution` is the sender name for user/assistant turns and the tool
    name for tool turns. `ephemeral` entries are kept for audit but never
    sent back to a provider.
    """
    role: MessageRole
    content: str
    attribution: Optional[str] = None
    tool_call_id: Optional[str] = None
    ephemeral: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _tool_call_id_only_on_tool(self) -> "ChatMessage":
        if self.tool_call_id is not None and self.role != MessageRole.TOOL:
            raise ValueError("tool_call_id is only allowed on tool messages")
        return self


class Connection(Protocol):
    """The subset of a WebSocket the room needs (Starlette's WebSocket fits)."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None: ...


@dataclass
class ConnectionSession:
    """State attached to one live, authenticated socket."""
    identity: str
    connection: Connection = field(repr=False)
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    joined_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_activity_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    # monotonic timestamp of the last accepted message
    last_message_at: Optional[float] = None
