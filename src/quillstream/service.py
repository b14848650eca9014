"""ChatService: the engine's entry points.

    resolve profile → (tool loop) → build request → send → decode → emit

One ``ChatService`` serves any number of concurrent calls. It owns the
stream session registry, so cancellation reaches every stream it started
and nothing else.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import aclosing
from typing import Any, Iterable, Mapping, Sequence

import httpx

from quillstream.config import EngineConfig, ProviderProfile, resolve_profile
from quillstream.core.orchestrator import ToolCallingOrchestrator
from quillstream.core.sessions import StreamSessionRegistry
from quillstream.errors import QuillstreamError
from quillstream.events.bus import EventBus
from quillstream.llm.client import AsyncLLMClient
from quillstream.llm.sse import StreamDecoder
from quillstream.llm.streaming import pump_stream
from quillstream.llm.transform import build_chat_request
from quillstream.tools.documents import build_document_registry, load_documents
from quillstream.types import ChatMessage, EngineEvent, EventType, ProjectDocument, Role

_logger = logging.getLogger(__name__)

Message = ChatMessage | Mapping[str, Any]


def _wire_messages(messages: Iterable[Message]) -> list[dict[str, Any]]:
    return [
        m.to_dict() if isinstance(m, ChatMessage) else ChatMessage.from_mapping(m).to_dict()
        for m in messages
    ]


def build_content_prompt(author_notes: str, current_content: str) -> str:
    """Combine the author's notes with optional reference material."""
    if not current_content:
        return author_notes
    return f"{author_notes}\n\n---\nReference material:\n{current_content}"


class ChatService:
    """Multi-provider chat engine.

    Parameters
    ----------
    config:
        Engine configuration; defaults to built-in values.
    event_bus:
        Sink for stream chunks and lifecycle events. A private bus is
        created when omitted.
    sessions:
        Cancellation registry; one is created when omitted.
    transport:
        Optional httpx transport handed to every client (used by tests).
    env:
        Environment used for profile fallback; defaults to ``os.environ``.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        event_bus: EventBus | None = None,
        sessions: StreamSessionRegistry | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.event_bus = event_bus or EventBus()
        self.sessions = sessions or StreamSessionRegistry()
        self._transport = transport
        self._env = env

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(
        self,
        provider: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> ProviderProfile:
        return resolve_profile(
            provider, api_key, base_url, model, env=self._env, defaults=self.config,
        )

    async def chat(
        self,
        messages: Sequence[Message],
        provider: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        web_search: bool = False,
    ) -> str:
        """Non-streaming chat. Returns the assistant text."""
        profile = self.resolve(provider, api_key, model, base_url)
        request = build_chat_request(
            _wire_messages(messages),
            profile,
            web_search=web_search,
            stream=False,
            temperature=self.config.temperature if temperature is None else temperature,
            max_tokens=max_tokens or self.config.max_tokens,
        )
        client = self._make_client(profile)
        try:
            response = await client.complete(request)
        finally:
            await client.close()
        return response.content

    async def chat_stream(
        self,
        messages: Sequence[Message],
        provider: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        web_search: bool = False,
        thinking: bool = False,
        enable_tools: bool = False,
        documents: Iterable[ProjectDocument | Mapping[str, Any]] | None = None,
        request_id: str | None = None,
    ) -> str:
        """Streaming chat with optional tool calling.

        Fragments are emitted as ``STREAM_CHUNK`` events tagged with
        *request_id* while they are decoded; the concatenated text is
        returned. Cancelling the request id truncates the result.
        """
        req_id = request_id or uuid.uuid4().hex
        profile = self.resolve(provider, api_key, model, base_url)
        client = self._make_client(profile)

        with self.sessions.session(req_id):
            await self._emit(EventType.STREAM_STARTED, {
                "request_id": req_id,
                "provider": profile.provider,
                "model": profile.model,
            })
            try:
                text = await self._run_stream(
                    client, profile, _wire_messages(messages), req_id,
                    web_search, thinking, enable_tools, documents,
                )
            except QuillstreamError as e:
                _logger.error("Stream %s failed: %s", req_id, e.message)
                await self._emit(EventType.STREAM_ERROR, {
                    "request_id": req_id, "error": e.message,
                })
                raise
            finally:
                await client.close()

            cancelled = self.sessions.is_cancelled(req_id)
            await self._emit(
                EventType.STREAM_CANCELLED if cancelled else EventType.STREAM_DONE,
                {"request_id": req_id, "length": len(text)},
            )
        return text

    async def generate_content(
        self,
        author_notes: str,
        current_content: str = "",
        provider: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> str:
        """One-shot, non-streaming content generation from author notes."""
        prompt = build_content_prompt(author_notes, current_content)
        return await self.chat(
            [ChatMessage(Role.USER.value, prompt)],
            provider=provider, api_key=api_key, model=model, base_url=base_url,
        )

    async def generate_content_stream(
        self,
        author_notes: str,
        current_content: str = "",
        provider: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        conversation_history: Sequence[Message] | None = None,
        system_prompt: str | None = None,
        web_search: bool = False,
        thinking: bool = False,
        request_id: str | None = None,
    ) -> str:
        """Streaming content generation.

        The last history entry is dropped because it is the message being
        answered, which is rebuilt from *author_notes*.
        """
        messages: list[Message] = []
        if system_prompt and system_prompt.strip():
            messages.append(ChatMessage(Role.SYSTEM.value, system_prompt))
        if conversation_history:
            messages.extend(list(conversation_history)[:-1])
        messages.append(ChatMessage(Role.USER.value, build_content_prompt(author_notes, current_content)))

        return await self.chat_stream(
            messages,
            provider=provider, api_key=api_key, model=model, base_url=base_url,
            web_search=web_search, thinking=thinking, request_id=request_id,
        )

    async def test_connection(
        self,
        provider: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> str:
        """Check the provider with a tiny request; returns a success message or raises."""
        profile = self.resolve(provider, api_key, model, base_url)
        client = self._make_client(profile, timeout=self.config.connection_test_timeout)
        try:
            return await client.test_connection(self.config.connection_test_timeout)
        finally:
            await client.close()

    def stop_stream(self, request_id: str | None = None) -> int:
        """Cancel one stream, or every active stream when *request_id* is None.

        Returns the number of sessions flagged; unknown ids flag nothing.
        """
        if request_id is None:
            count = self.sessions.cancel_all()
            _logger.info("Cancelling all %d active stream(s)", count)
            return count
        return 1 if self.sessions.cancel(request_id) else 0

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _make_client(self, profile: ProviderProfile, timeout: float | None = None) -> AsyncLLMClient:
        return AsyncLLMClient(
            profile,
            timeout=timeout or self.config.request_timeout,
            transport=self._transport,
        )

    async def _run_stream(
        self,
        client: AsyncLLMClient,
        profile: ProviderProfile,
        messages: list[dict[str, Any]],
        req_id: str,
        web_search: bool,
        thinking: bool,
        enable_tools: bool,
        documents: Iterable[ProjectDocument | Mapping[str, Any]] | None,
    ) -> str:
        # OpenAI and Anthropic search through dedicated endpoints, without tools
        native_search = web_search and profile.provider in ("openai", "anthropic")

        if enable_tools and not native_search:
            orchestrator = ToolCallingOrchestrator(
                client,
                build_document_registry(load_documents(documents)),
                self.sessions,
                self.event_bus,
                max_rounds=self.config.max_tool_rounds,
                temperature=self.config.temperature,
            )
            messages = await orchestrator.run(messages, req_id, profile, web_search)

        if self.sessions.is_cancelled(req_id):
            _logger.info("Request %s cancelled before the final stream", req_id)
            return ""

        request = build_chat_request(
            messages,
            profile,
            web_search=web_search,
            thinking=None if native_search else thinking,
            stream=True,
            temperature=self.config.temperature,
        )
        _logger.info(
            "Streaming %s/%s for request %s (%s)",
            profile.provider, profile.model, req_id, request.wire_format.value,
        )
        async with aclosing(client.stream_bytes(request)) as chunks:
            return await pump_stream(
                chunks,
                StreamDecoder(request.wire_format),
                req_id,
                self.sessions,
                self.event_bus,
                max_buffer_bytes=self.config.max_buffer_bytes,
            )

    async def _emit(self, event_type: EventType, data: dict[str, Any]) -> None:
        await self.event_bus.emit(EngineEvent(type=event_type, data=data))
