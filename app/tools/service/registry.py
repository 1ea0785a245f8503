"""
Tool Registry

Explicit tool registration; no import-time side effects. One registry is
built at process start and injected into the orchestrator. After startup it
is only read, so concurrent lookups are safe.
"""

import inspect
import json
from typing import Any, Dict, List, Optional

from app.core.logger import get_logger
from app.llm.models.llm_model import FunctionSpec
from app.tools.entity.tool import ToolContext, ToolDefinition, ToolResult

logger = get_logger("ToolRegistry")


class ToolNotFoundError(LookupError):
    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' not found")
        self.name = name


def stringify_result(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(value)


class ToolRegistry:
    """Process-wide table of tools keyed by name."""

    def __init__(self):
        self._tools: Dict[str, ToolDefinition] = {}

    def register(self, tool: ToolDefinition) -> None:
        """Insert or replace; the last registration for a name wins."""
        if tool.name in self._tools:
            logger.warning(f"Replacing previously registered tool: {tool.name}")
        self._tools[tool.name] = tool
        logger.info(f"Registered tool: {tool.name}")

    def list_all(self) -> List[ToolDefinition]:
        return list(self._tools.values())

    def is_ephemeral(self, name: str) -> bool:
        tool = self._tools.get(name)
        return bool(tool and tool.ephemeral)

    def definitions_for_provider(self) -> List[FunctionSpec]:
        """Catalogue in generic function-calling shape for the adapters."""
        return [
            FunctionSpec(
                name=tool.name,
                description=tool.description,
                parameters=tool.parameters.to_schema(),
            )
            for tool in self._tools.values()
        ]

    async def execute(self, name: str, args: Optional[Dict[str, Any]], context: ToolContext) -> ToolResult:
        """
        Run a tool.

        Raises ToolNotFoundError for an unknown name. An executor exception is
        turned into a failed ToolResult instead of propagating.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)

        arguments = args or {}
        logger.info(f"Executing tool: {name} args={arguments}")
        try:
            value = tool.executor(arguments, context)
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}")
            return ToolResult(name=name, content=f"Tool '{name}' failed: {e}", ok=False, ephemeral=tool.ephemeral)

        return ToolResult(name=name, content=stringify_result(value), ok=True, ephemeral=tool.ephemeral)
