"""Shared data types for quillstream."""

from __future__ import annotations

import enum
import json
import time
from dataclasses import dataclass, field
from typing import Any, Mapping


# ---------------------------------------------------------------------------
# Chat types
# ---------------------------------------------------------------------------

class Role(str, enum.Enum):
    """Message roles understood by every provider."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass
class ChatMessage:
    """A single message of a conversation, in caller order."""

    role: str
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ChatMessage:
        return cls(role=str(raw.get("role", "user")), content=str(raw.get("content") or ""))


# ---------------------------------------------------------------------------
# Tool types
# ---------------------------------------------------------------------------

@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    type: str  # string, integer, boolean, array, object
    description: str
    required: bool = True
    default: Any = None
    enum: list[str] | None = None


@dataclass
class ToolCall:
    """A function call issued by the model."""

    id: str
    name: str
    arguments: dict[str, Any]
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_wire(cls, raw: Any) -> ToolCall | None:
        """Parse an OpenAI-style ``tool_calls`` entry.

        Returns ``None`` when the entry does not have the expected shape:
        missing ``id`` or ``function.name``, or ``function.arguments`` that
        is not a JSON object (given either as a string or inline).
        """
        if not isinstance(raw, dict):
            return None
        call_id = raw.get("id")
        func = raw.get("function")
        if not isinstance(call_id, str) or not isinstance(func, dict):
            return None
        name = func.get("name")
        if not isinstance(name, str) or not name:
            return None

        args: Any = func.get("arguments", "{}")
        if isinstance(args, str):
            try:
                args = json.loads(args) if args.strip() else {}
            except json.JSONDecodeError:
                return None
        if not isinstance(args, dict):
            return None
        return cls(id=call_id, name=name, arguments=args, raw=raw)


@dataclass
class ToolResult:
    """Outcome of a tool execution, always a JSON string payload."""

    tool_call_id: str
    content: str

    def to_message(self) -> dict[str, Any]:
        return {
            "role": Role.TOOL.value,
            "tool_call_id": self.tool_call_id,
            "content": self.content,
        }


@dataclass
class ProjectDocument:
    """Read-only snapshot of one project document."""

    id: str
    title: str
    content: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ProjectDocument:
        return cls(
            id=str(raw.get("id") or ""),
            title=str(raw.get("title") or ""),
            content=str(raw.get("content") or ""),
        )


# ---------------------------------------------------------------------------
# LLM types
# ---------------------------------------------------------------------------

@dataclass
class LLMResponse:
    """Unified non-streaming response from any supported wire format."""

    content: str = ""
    finish_reason: str = ""
    message: dict[str, Any] = field(default_factory=dict)
    tool_calls: list[Any] = field(default_factory=list)
    usage: dict[str, int] = field(default_factory=dict)
    model: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)
    latency_ms: float = 0

    @property
    def wants_tools(self) -> bool:
        return self.finish_reason == "tool_calls" and len(self.tool_calls) > 0


class WireFormat(enum.Enum):
    """Response shape family of an endpoint."""

    CHAT_COMPLETIONS = "chat_completions"
    RESPONSES = "responses"
    ANTHROPIC = "anthropic"


class StreamEventKind(enum.Enum):
    """Narrative channel of a decoded stream fragment."""

    CONTENT = "content"
    REASONING = "reasoning"


@dataclass(frozen=True)
class StreamEvent:
    """One decoded fragment, ready to be emitted and accumulated.

    Reasoning fragments already carry the ``<think>`` delimiters where the
    wire format requires them to be synthesized.
    """

    kind: StreamEventKind
    text: str

    @classmethod
    def content(cls, text: str) -> StreamEvent:
        return cls(StreamEventKind.CONTENT, text)

    @classmethod
    def reasoning(cls, text: str) -> StreamEvent:
        return cls(StreamEventKind.REASONING, text)


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

class EventType(enum.Enum):
    """Event types emitted by the engine."""

    # Stream lifecycle
    STREAM_STARTED = "ai:stream:started"
    STREAM_CHUNK = "ai:stream:chunk"
    STREAM_DONE = "ai:stream:done"
    STREAM_CANCELLED = "ai:stream:cancelled"
    STREAM_ERROR = "ai:stream:error"

    # Tool events
    TOOL_EXECUTING = "tool.executing"
    TOOL_EXECUTED = "tool.executed"


@dataclass
class EngineEvent:
    """Event emitted by the engine via the EventBus."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    @property
    def request_id(self) -> str:
        return self.data.get("request_id", "")
