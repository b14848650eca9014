"""Tests for the tool-call executor."""

import json

import pytest

from quillstream.core.executor import Executor
from quillstream.events.bus import EventBus
from quillstream.tools.documents import build_document_registry
from quillstream.types import EventType, ProjectDocument, ToolCall


def _call(call_id: str, name: str, arguments) -> dict:
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": arguments}}


@pytest.fixture
def registry():
    return build_document_registry([
        ProjectDocument("d1", "Plot", "The dragon sleeps under the mountain."),
    ])


class TestToolCallParsing:
    def test_valid(self):
        call = ToolCall.from_wire(_call("c1", "read_document", {"document_id": "d1"}))
        assert call.id == "c1"
        assert call.name == "read_document"
        assert call.arguments == {"document_id": "d1"}

    def test_empty_arguments_string(self):
        call = ToolCall.from_wire(_call("c1", "get_document_stats", ""))
        assert call.arguments == {}

    def test_inline_object_arguments(self):
        raw = {"id": "c1", "function": {"name": "search_documents", "arguments": {"query": "x"}}}
        assert ToolCall.from_wire(raw).arguments == {"query": "x"}

    @pytest.mark.parametrize("raw", [
        "not a dict",
        {"function": {"name": "x", "arguments": "{}"}},
        {"id": 7, "function": {"name": "x", "arguments": "{}"}},
        {"id": "c1"},
        {"id": "c1", "function": {"arguments": "{}"}},
        {"id": "c1", "function": {"name": "", "arguments": "{}"}},
        {"id": "c1", "function": {"name": "x", "arguments": "{broken"}},
        {"id": "c1", "function": {"name": "x", "arguments": "[1, 2]"}},
    ])
    def test_malformed(self, raw):
        assert ToolCall.from_wire(raw) is None


class TestExecutor:
    async def test_results_in_call_order(self, registry):
        executor = Executor(registry)
        result = await executor.execute([
            _call("c1", "get_document_stats", {}),
            _call("c2", "read_document", {"document_id": "d1"}),
        ], request_id="r1")

        messages = result.to_messages()
        assert [m["tool_call_id"] for m in messages] == ["c1", "c2"]
        assert all(m["role"] == "tool" for m in messages)
        assert json.loads(messages[0]["content"])["total_documents"] == 1
        assert json.loads(messages[1]["content"])["title"] == "Plot"
        assert result.skipped == 0

    async def test_malformed_calls_skipped(self, registry):
        executor = Executor(registry)
        result = await executor.execute([
            {"id": "bad", "function": {"name": "read_document", "arguments": "{nope"}},
            _call("c2", "get_document_stats", {}),
        ])
        assert result.skipped == 1
        assert [m["tool_call_id"] for m in result.to_messages()] == ["c2"]

    async def test_unknown_tool_produces_error_message(self, registry):
        result = await Executor(registry).execute([_call("c1", "mystery", {})])
        (message,) = result.to_messages()
        assert json.loads(message["content"]) == {"error": "Unknown tool: mystery"}

    async def test_emits_tool_events(self, registry):
        bus = EventBus()
        seen = []
        bus.subscribe("*", lambda e: seen.append((e.type, e.data)))

        await Executor(registry, bus).execute(
            [_call("c1", "search_documents", {"query": "dragon"})], request_id="r9",
        )

        assert [t for t, _ in seen] == [EventType.TOOL_EXECUTING, EventType.TOOL_EXECUTED]
        assert seen[0][1] == {
            "request_id": "r9", "tool": "search_documents", "arguments": {"query": "dragon"},
        }
        assert seen[1][1]["request_id"] == "r9"
        assert seen[1][1]["output_length"] > 0

    async def test_no_calls(self, registry):
        result = await Executor(registry).execute([])
        assert result.to_messages() == []
