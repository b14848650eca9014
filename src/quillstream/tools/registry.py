"""Tool registry with never-raising execution."""

from __future__ import annotations

import logging
from typing import Any

from quillstream.tools.base import Tool, error_payload
from quillstream.types import ToolCall, ToolResult

_logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry of available tools."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool instance."""
        self._tools[tool.name] = tool

    def tool_names(self) -> list[str]:
        """Return list of registered tool names."""
        return list(self._tools.keys())

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> str:
        """Execute a tool by name and return its JSON payload.

        Unknown tools and exceptions raised by a tool are encoded as
        ``{"error": ...}`` payloads.
        """
        tool = self._tools.get(tool_name)
        if tool is None:
            return error_payload(f"Unknown tool: {tool_name}")
        try:
            return await tool.execute(**arguments)
        except Exception as e:
            _logger.warning("Tool %s failed: %s", tool_name, e)
            return error_payload(
                f"Tool '{tool_name}' execution failed: {type(e).__name__}: {e}"
            )

    async def run_call(self, call: ToolCall) -> ToolResult:
        """Execute *call* and pair the payload with its call id."""
        content = await self.execute(call.name, call.arguments)
        return ToolResult(tool_call_id=call.id, content=content)

    def get_openai_schemas(self) -> list[dict[str, Any]]:
        """Return OpenAI function-calling schemas for all registered tools."""
        return [t.to_openai_schema() for t in self._tools.values()]
