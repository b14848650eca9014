"""Async Tool abstract base class."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

from quillstream.types import ToolParameter


def dump_payload(payload: dict[str, Any]) -> str:
    """Serialize a tool payload the way every tool returns it."""
    return json.dumps(payload, ensure_ascii=False)


def error_payload(message: str) -> str:
    return dump_payload({"error": message})


class Tool(ABC):
    """Base class for all tools.

    Subclasses set ``name``, ``description`` and ``parameters`` as class
    attributes and implement ``execute()``, which returns a JSON string.
    Failures are returned as ``{"error": ...}`` payloads, not raised.
    """

    name: str
    description: str
    parameters: list[ToolParameter]

    @abstractmethod
    async def execute(self, **kwargs: Any) -> str:
        """Execute the tool and return its JSON payload."""

    def to_openai_schema(self) -> dict[str, Any]:
        """Function definition for a chat completions ``tools`` list."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {p.name: _property_schema(p) for p in self.parameters},
                    "required": [p.name for p in self.parameters if p.required],
                },
            },
        }


def _property_schema(param: ToolParameter) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": param.type, "description": param.description}
    if param.enum:
        schema["enum"] = param.enum
    if param.default is not None:
        schema["default"] = param.default
    return schema
