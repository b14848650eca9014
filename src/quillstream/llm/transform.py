"""Provider-specific request building.

Turns a message list, a resolved profile and feature flags into the exact
path, headers and JSON body for the target endpoint. Nothing here performs
I/O or raises; fields are only set conditionally.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from quillstream.config import ProviderProfile
from quillstream.types import ChatMessage, WireFormat

_logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
ANTHROPIC_MAX_TOKENS = 8192
ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_WEB_SEARCH_BETA = "web-search-2025-03-05"

_PATHS = {
    WireFormat.CHAT_COMPLETIONS: "/chat/completions",
    WireFormat.RESPONSES: "/responses",
    WireFormat.ANTHROPIC: "/messages",
}

# Built-in web search tools appended to the chat completions ``tools`` list
_WEB_SEARCH_TOOLS: dict[str, dict[str, Any]] = {
    "glm": {
        "type": "web_search",
        "web_search": {"enable": True, "search_engine": "search_pro"},
    },
    "kimi": {"type": "builtin_function", "function": {"name": "$web_search"}},
    "gemini": {"google_search": {}},
    "xai": {"type": "web_search"},
}
_WEB_SEARCH_TOOLS["glm-code"] = _WEB_SEARCH_TOOLS["glm"]
_WEB_SEARCH_TOOLS["kimi-code"] = _WEB_SEARCH_TOOLS["kimi"]

# Providers that take a top-level flag instead of a tool
_WEB_SEARCH_FLAGS: dict[str, str] = {"qwen": "enable_search"}


@dataclass
class OutboundRequest:
    """Everything needed to issue one HTTP POST."""

    path: str
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)
    wire_format: WireFormat = WireFormat.CHAT_COMPLETIONS

    @property
    def stream(self) -> bool:
        return bool(self.body.get("stream"))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _as_wire(messages: Sequence[ChatMessage | dict[str, Any]]) -> list[dict[str, Any]]:
    wire: list[dict[str, Any]] = []
    for m in messages:
        wire.append(m.to_dict() if isinstance(m, ChatMessage) else dict(m))
    return wire


def split_system(
    messages: Sequence[ChatMessage | dict[str, Any]],
) -> tuple[str, list[dict[str, Any]]]:
    """Hoist system messages out of *messages*.

    Multiple system messages are joined with a blank line. The remaining
    messages keep their order.
    """
    system_parts: list[str] = []
    rest: list[dict[str, Any]] = []
    for m in _as_wire(messages):
        if m.get("role") == "system":
            system_parts.append(str(m.get("content") or ""))
        else:
            rest.append({"role": m.get("role"), "content": m.get("content")})
    return "\n\n".join(p for p in system_parts if p), rest


def auth_headers(
    profile: ProviderProfile,
    anthropic_native: bool = False,
    web_search: bool = False,
) -> dict[str, str]:
    """Build the content-type and auth headers for *profile*."""
    headers = {"Content-Type": "application/json"}
    if profile.api_key:
        if profile.is_anthropic:
            headers["x-api-key"] = profile.api_key
        else:
            headers["Authorization"] = f"Bearer {profile.api_key}"
    if anthropic_native:
        headers["anthropic-version"] = ANTHROPIC_VERSION
        if web_search:
            headers["anthropic-beta"] = ANTHROPIC_WEB_SEARCH_BETA
    return headers


def inject_web_search(body: dict[str, Any], provider: str) -> None:
    """Add the provider's native web search switch to a chat completions body.

    DeepSeek, MiniMax and unknown providers get nothing; OpenAI and
    Anthropic use dedicated endpoints instead.
    """
    flag = _WEB_SEARCH_FLAGS.get(provider)
    if flag:
        body[flag] = True
        return
    tool = _WEB_SEARCH_TOOLS.get(provider)
    if tool is not None:
        tools = list(body.get("tools") or [])
        tools.append(copy.deepcopy(tool))
        body["tools"] = tools


def inject_thinking(body: dict[str, Any], provider: str, enabled: bool) -> None:
    """Add the provider's thinking-mode switch, where one exists.

    Every other provider either reasons automatically on reasoning models
    or needs no parameter.
    """
    if provider == "qwen":
        body["enable_thinking"] = enabled
    elif provider in ("glm", "glm-code"):
        body["thinking"] = {"type": "enabled" if enabled else "disabled"}


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def _build_responses(
    messages: Sequence[ChatMessage | dict[str, Any]],
    profile: ProviderProfile,
    stream: bool,
    max_tokens: int | None,
) -> OutboundRequest:
    body: dict[str, Any] = {
        "model": profile.model,
        "input": [
            {"role": m.get("role"), "content": m.get("content")}
            for m in _as_wire(messages)
        ],
        "tools": [{"type": "web_search"}],
    }
    if stream:
        body["stream"] = True
    if max_tokens:
        body["max_output_tokens"] = max_tokens
    return OutboundRequest(
        path=_PATHS[WireFormat.RESPONSES],
        body=body,
        headers=auth_headers(profile),
        wire_format=WireFormat.RESPONSES,
    )


def _build_anthropic(
    messages: Sequence[ChatMessage | dict[str, Any]],
    profile: ProviderProfile,
    stream: bool,
    max_tokens: int | None,
) -> OutboundRequest:
    system, rest = split_system(messages)
    body: dict[str, Any] = {
        "model": profile.model,
        "max_tokens": max_tokens or ANTHROPIC_MAX_TOKENS,
        "messages": rest,
        "tools": [{
            "type": "web_search_20250305",
            "name": "web_search",
            "max_uses": 5,
        }],
    }
    if stream:
        body["stream"] = True
    if system:
        body["system"] = system
    return OutboundRequest(
        path=_PATHS[WireFormat.ANTHROPIC],
        body=body,
        headers=auth_headers(profile, anthropic_native=True, web_search=True),
        wire_format=WireFormat.ANTHROPIC,
    )


def build_chat_request(
    messages: Sequence[ChatMessage | dict[str, Any]],
    profile: ProviderProfile,
    *,
    web_search: bool = False,
    thinking: bool | None = None,
    stream: bool = False,
    temperature: float = DEFAULT_TEMPERATURE,
    max_tokens: int | None = None,
    tools: list[dict[str, Any]] | None = None,
) -> OutboundRequest:
    """Build the request for one chat call.

    Parameters
    ----------
    messages:
        Conversation in caller order; ``ChatMessage`` objects or wire dicts
        (tool exchanges are passed through untouched).
    profile:
        The resolved provider profile.
    web_search:
        Route OpenAI/Anthropic to their native search endpoints, inject the
        provider's search switch everywhere else.
    thinking:
        ``None`` leaves thinking parameters out entirely; a bool injects the
        provider's switch in that state.
    tools:
        Function tool definitions for the chat completions path.
    """
    if web_search and profile.provider == "openai":
        return _build_responses(messages, profile, stream, max_tokens)
    if web_search and profile.is_anthropic:
        return _build_anthropic(messages, profile, stream, max_tokens)

    body: dict[str, Any] = {
        "messages": _as_wire(messages),
        "model": profile.model,
        "temperature": temperature,
        "stream": stream,
    }
    if max_tokens:
        body["max_tokens"] = max_tokens
    if tools:
        body["tools"] = list(tools)
    if web_search:
        inject_web_search(body, profile.provider)
    if thinking is not None:
        inject_thinking(body, profile.provider, thinking)

    _logger.debug(
        "Built %s request for %s (stream=%s, tools=%d)",
        profile.provider, profile.model, stream, len(body.get("tools") or []),
    )
    return OutboundRequest(
        path=_PATHS[WireFormat.CHAT_COMPLETIONS],
        body=body,
        headers=auth_headers(profile),
        wire_format=WireFormat.CHAT_COMPLETIONS,
    )


def build_connection_test_request(profile: ProviderProfile) -> OutboundRequest:
    """Minimal non-streaming request used to check a provider connection."""
    return OutboundRequest(
        path=_PATHS[WireFormat.CHAT_COMPLETIONS],
        body={
            "messages": [{"role": "user", "content": "Hi"}],
            "model": profile.model,
            "max_tokens": 5,
            "stream": False,
        },
        headers=auth_headers(profile),
    )
