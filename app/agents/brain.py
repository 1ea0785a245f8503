import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from app.agents.prompt import build_system_prompt, build_tool_results_message
from app.chat.entity.chat import ChatMessage, MessageRole
from app.core.logger import get_logger
from app.llm.models.llm_model import LLMMessage, ToolCall
from app.llm.service.llm_service import LLMService
from app.tools.entity.tool import ToolContext, ToolResult
from app.tools.service.registry import ToolNotFoundError, ToolRegistry
from pkg.util.text import clean_ai_response

logger = get_logger("Brain")

EMPTY_ANSWER_FILLER = "Hmm... I didn't quite catch that."
DEGRADED_ANSWER = "(AI connection dozed off: {error})"


@dataclass
class Thought:
    answer: str
    # tool-role entries the room must persist before the answer
    tool_messages: List[ChatMessage] = field(default_factory=list)


def parse_tool_arguments(raw: Union[Dict[str, Any], str, None]) -> Dict[str, Any]:
    """Decode a tool argument payload; anything that is not a JSON object becomes {}."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Unparsable tool arguments, using none: {raw!r}")
            return {}
        return value if isinstance(value, dict) else {}
    return {}


def to_llm_message(message: ChatMessage) -> LLMMessage:
    if message.role == MessageRole.TOOL:
        return LLMMessage(
            role="tool",
            content=message.content,
            name=message.attribution,
            tool_call_id=message.tool_call_id,
        )
    if message.role == MessageRole.USER and message.attribution:
        return LLMMessage(role="user", content=f"[{message.attribution}]: {message.content}")
    return LLMMessage(role=message.role.value, content=message.content)


class Brain:
    """
    Reasoning orchestrator.

    One turn is at most two provider calls: ask with the tool catalogue, run
    whatever tools were requested in order, then ask again without tools.
    The turn always ends with some answer; failures become a degraded one.
    """

    def __init__(
        self,
        llm: LLMService,
        registry: ToolRegistry,
        robot_name: str = "EMO",
        tool_context: Optional[ToolContext] = None,
        enable_tool_calling: bool = True,
    ):
        self.llm = llm
        self.registry = registry
        self.robot_name = robot_name
        self.tool_context = tool_context or ToolContext()
        self.enable_tool_calling = enable_tool_calling

    def build_messages(self, identity: str, context: List[ChatMessage]) -> List[LLMMessage]:
        system = build_system_prompt(identity, self.robot_name, self.enable_tool_calling)
        return [LLMMessage(role="system", content=system)] + [to_llm_message(m) for m in context]

    async def think(self, identity: str, context: List[ChatMessage]) -> Thought:
        tool_messages: List[ChatMessage] = []
        try:
            messages = self.build_messages(identity, context)
            tools = self.registry.definitions_for_provider() if self.enable_tool_calling else None

            first = await self.llm.call(messages, tools or None)
            if not first.has_tool_calls:
                logger.debug(f"Raw answer: {first.text}")
                return Thought(answer=self._finalize(first.text))

            results = []
            for call in first.tool_calls:
                message = await self._run_tool(call)
                tool_messages.append(message)
                results.append((message.attribution, message.content))

            followup = messages + [LLMMessage(role="user", content=build_tool_results_message(results))]
            second = await self.llm.call(followup, None)
            logger.debug(f"Raw answer after tools: {second.text}")
            return Thought(answer=self._finalize(second.text), tool_messages=tool_messages)

        except Exception as e:
            logger.error(f"Reasoning failed for {identity}: {e}")
            return Thought(answer=DEGRADED_ANSWER.format(error=e), tool_messages=tool_messages)

    async def _run_tool(self, call: ToolCall) -> ChatMessage:
        call_id = call.id or f"call_{uuid.uuid4().hex}"
        args = parse_tool_arguments(call.arguments)
        try:
            result = await self.registry.execute(call.name, args, self.tool_context)
        except ToolNotFoundError as e:
            logger.warning(str(e))
            result = ToolResult(name=call.name, content=str(e), ok=False)

        return ChatMessage(
            role=MessageRole.TOOL,
            content=result.content,
            attribution=call.name,
            tool_call_id=call_id,
            ephemeral=result.ephemeral,
        )

    @staticmethod
    def _finalize(text: str) -> str:
        return clean_ai_response(text) or EMPTY_ANSWER_FILLER
