"""Executor: runs model-issued tool calls through the tool registry."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from quillstream.events.bus import EventBus
from quillstream.tools.registry import ToolRegistry
from quillstream.types import EngineEvent, EventType, ToolCall, ToolResult

_logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Result of executing one round of tool calls."""

    results: list[tuple[ToolCall, ToolResult]] = field(default_factory=list)
    skipped: int = 0

    def to_messages(self) -> list[dict[str, Any]]:
        """One ``tool``-role message per executed call, in call order."""
        return [result.to_message() for _, result in self.results]


class Executor:
    """Parses wire tool calls and executes them sequentially.

    Usage::

        executor = Executor(registry, event_bus)
        result = await executor.execute(message["tool_calls"], request_id)
    """

    def __init__(
        self,
        registry: ToolRegistry,
        event_bus: EventBus | None = None,
    ) -> None:
        self._registry = registry
        self._event_bus = event_bus

    async def execute(
        self,
        raw_calls: Iterable[Any],
        request_id: str = "",
    ) -> ExecutionResult:
        """Execute every well-formed call in *raw_calls*.

        Entries that do not parse into a ``ToolCall`` are skipped.
        """
        exec_result = ExecutionResult()
        for raw in raw_calls:
            call = ToolCall.from_wire(raw)
            if call is None:
                exec_result.skipped += 1
                _logger.debug("Skipping malformed tool call: %.200r", raw)
                continue

            await self._emit(EventType.TOOL_EXECUTING, {
                "request_id": request_id,
                "tool": call.name,
                "arguments": call.arguments,
            })

            result = await self._registry.run_call(call)

            await self._emit(EventType.TOOL_EXECUTED, {
                "request_id": request_id,
                "tool": call.name,
                "output_length": len(result.content),
            })
            exec_result.results.append((call, result))

        if exec_result.skipped:
            _logger.warning(
                "Skipped %d malformed tool call(s) for request %s",
                exec_result.skipped, request_id,
            )
        return exec_result

    async def _emit(self, event_type: EventType, data: dict[str, Any]) -> None:
        if self._event_bus:
            await self._event_bus.emit(EngineEvent(type=event_type, data=data))
