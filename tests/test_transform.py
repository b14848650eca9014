"""Tests for provider-specific request building."""

import pytest

from quillstream.config import resolve_profile
from quillstream.llm.transform import (
    build_chat_request,
    build_connection_test_request,
    split_system,
)
from quillstream.types import ChatMessage, WireFormat


def _profile(provider: str, api_key: str | None = "sk-test"):
    return resolve_profile(provider, api_key, env={})


MESSAGES = [
    ChatMessage("system", "You are a writing assistant."),
    ChatMessage("user", "Draft an intro."),
]

FUNCTION_TOOL = {
    "type": "function",
    "function": {"name": "search_documents", "parameters": {"type": "object"}},
}


class TestDefaultPath:
    def test_chat_completions_body(self):
        req = build_chat_request(MESSAGES, _profile("deepseek"))
        assert req.path == "/chat/completions"
        assert req.wire_format == WireFormat.CHAT_COMPLETIONS
        assert req.body == {
            "messages": [m.to_dict() for m in MESSAGES],
            "model": "deepseek-chat",
            "temperature": 0.7,
            "stream": False,
        }

    def test_stream_and_max_tokens(self):
        req = build_chat_request(MESSAGES, _profile("openai"), stream=True, max_tokens=256)
        assert req.body["stream"] is True
        assert req.body["max_tokens"] == 256
        assert req.stream

    def test_bearer_auth(self):
        req = build_chat_request(MESSAGES, _profile("qwen"))
        assert req.headers["Authorization"] == "Bearer sk-test"
        assert req.headers["Content-Type"] == "application/json"
        assert "x-api-key" not in req.headers

    def test_no_auth_header_without_key(self):
        req = build_chat_request(MESSAGES, _profile("litellm", api_key=None))
        assert "Authorization" not in req.headers

    def test_anthropic_without_search_uses_x_api_key(self):
        req = build_chat_request(MESSAGES, _profile("anthropic"))
        assert req.path == "/chat/completions"
        assert req.headers["x-api-key"] == "sk-test"
        assert "Authorization" not in req.headers
        assert "anthropic-beta" not in req.headers

    def test_wire_dicts_pass_through(self):
        tool_msg = {"role": "tool", "tool_call_id": "call_1", "content": "{}"}
        req = build_chat_request([MESSAGES[1].to_dict(), tool_msg], _profile("openai"))
        assert req.body["messages"][1] == tool_msg


class TestNativeWebSearch:
    def test_openai_routes_to_responses(self):
        req = build_chat_request(MESSAGES, _profile("openai"), web_search=True, stream=True)
        assert req.path == "/responses"
        assert req.wire_format == WireFormat.RESPONSES
        assert req.body["input"] == [m.to_dict() for m in MESSAGES]
        assert req.body["tools"] == [{"type": "web_search"}]
        assert req.body["stream"] is True
        assert "messages" not in req.body
        assert req.headers["Authorization"] == "Bearer sk-test"

    def test_anthropic_routes_to_messages(self):
        req = build_chat_request(MESSAGES, _profile("anthropic"), web_search=True, stream=True)
        assert req.path == "/messages"
        assert req.wire_format == WireFormat.ANTHROPIC
        assert req.body["system"] == "You are a writing assistant."
        assert req.body["messages"] == [{"role": "user", "content": "Draft an intro."}]
        assert req.body["max_tokens"] == 8192
        assert req.body["tools"] == [
            {"type": "web_search_20250305", "name": "web_search", "max_uses": 5},
        ]
        assert req.headers["x-api-key"] == "sk-test"
        assert req.headers["anthropic-version"] == "2023-06-01"
        assert req.headers["anthropic-beta"] == "web-search-2025-03-05"
        assert "Authorization" not in req.headers

    def test_anthropic_without_system_message(self):
        req = build_chat_request(MESSAGES[1:], _profile("anthropic"), web_search=True)
        assert "system" not in req.body
        assert "stream" not in req.body

    def test_split_system_keeps_order(self):
        system, rest = split_system([
            ChatMessage("system", "A"),
            ChatMessage("user", "u1"),
            ChatMessage("assistant", "a1"),
            ChatMessage("system", "B"),
            ChatMessage("user", "u2"),
        ])
        assert system == "A\n\nB"
        assert [m["content"] for m in rest] == ["u1", "a1", "u2"]


class TestWebSearchInjection:
    def test_glm_tool_appended_after_function_tools(self):
        req = build_chat_request(
            MESSAGES, _profile("glm"), web_search=True, tools=[FUNCTION_TOOL],
        )
        assert req.body["tools"] == [
            FUNCTION_TOOL,
            {"type": "web_search", "web_search": {"enable": True, "search_engine": "search_pro"}},
        ]

    def test_qwen_flag(self):
        req = build_chat_request(MESSAGES, _profile("qwen"), web_search=True)
        assert req.body["enable_search"] is True
        assert "tools" not in req.body

    @pytest.mark.parametrize("provider", ["kimi", "kimi-code"])
    def test_kimi_builtin_function(self, provider):
        req = build_chat_request(MESSAGES, _profile(provider), web_search=True)
        assert req.body["tools"] == [
            {"type": "builtin_function", "function": {"name": "$web_search"}},
        ]

    def test_gemini_google_search(self):
        req = build_chat_request(MESSAGES, _profile("gemini"), web_search=True)
        assert req.body["tools"] == [{"google_search": {}}]

    def test_xai_web_search_tool(self):
        req = build_chat_request(MESSAGES, _profile("xai"), web_search=True)
        assert req.body["tools"] == [{"type": "web_search"}]

    @pytest.mark.parametrize("provider", ["deepseek", "minimax", "minimax-code", "mystery"])
    def test_no_injection(self, provider):
        req = build_chat_request(MESSAGES, _profile(provider), web_search=True)
        assert req.path == "/chat/completions"
        assert "tools" not in req.body
        assert "enable_search" not in req.body

    def test_injection_does_not_share_table_state(self):
        first = build_chat_request(MESSAGES, _profile("xai"), web_search=True)
        first.body["tools"][0]["mutated"] = True
        second = build_chat_request(MESSAGES, _profile("xai"), web_search=True)
        assert second.body["tools"] == [{"type": "web_search"}]

    @pytest.mark.parametrize("provider", ["glm", "glm-code"])
    def test_nested_search_options_are_not_shared(self, provider):
        first = build_chat_request(MESSAGES, _profile(provider), web_search=True)
        first.body["tools"][-1]["web_search"]["enable"] = False
        second = build_chat_request(MESSAGES, _profile("glm"), web_search=True)
        third = build_chat_request(MESSAGES, _profile("glm-code"), web_search=True)
        expected = {"enable": True, "search_engine": "search_pro"}
        assert second.body["tools"][-1]["web_search"] == expected
        assert third.body["tools"][-1]["web_search"] == expected


class TestThinkingInjection:
    @pytest.mark.parametrize("enabled", [True, False])
    def test_qwen(self, enabled):
        req = build_chat_request(MESSAGES, _profile("qwen"), thinking=enabled)
        assert req.body["enable_thinking"] is enabled

    @pytest.mark.parametrize("provider", ["glm", "glm-code"])
    def test_glm(self, provider):
        on = build_chat_request(MESSAGES, _profile(provider), thinking=True)
        off = build_chat_request(MESSAGES, _profile(provider), thinking=False)
        assert on.body["thinking"] == {"type": "enabled"}
        assert off.body["thinking"] == {"type": "disabled"}

    @pytest.mark.parametrize("provider", ["openai", "deepseek", "kimi", "minimax", "xai", "gemini"])
    def test_other_providers_get_nothing(self, provider):
        req = build_chat_request(MESSAGES, _profile(provider), thinking=True)
        assert "thinking" not in req.body
        assert "enable_thinking" not in req.body

    def test_none_leaves_thinking_out(self):
        req = build_chat_request(MESSAGES, _profile("qwen"), thinking=None)
        assert "enable_thinking" not in req.body


def test_connection_test_request():
    req = build_connection_test_request(_profile("kimi"))
    assert req.path == "/chat/completions"
    assert req.body == {
        "messages": [{"role": "user", "content": "Hi"}],
        "model": "kimi-k2.5",
        "max_tokens": 5,
        "stream": False,
    }
