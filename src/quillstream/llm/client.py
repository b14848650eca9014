"""Async HTTP client for OpenAI-compatible and native vendor chat APIs.

Uses ``httpx.AsyncClient``. Requests are built by
``quillstream.llm.transform``; this module only sends them, maps transport
and status failures onto ``quillstream.errors`` and parses non-streaming
bodies. There are no retries: the first failure is raised.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, AsyncIterator

import httpx

from quillstream.config import ProviderProfile
from quillstream.errors import (
    APIStatusError,
    ConnectionFailedError,
    RequestTimeoutError,
    ResponseParseError,
)
from quillstream.types import LLMResponse, WireFormat

from .transform import OutboundRequest, build_connection_test_request

_logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120
CONNECTION_TEST_TIMEOUT = 15


def _chat_completion_response(data: dict[str, Any], latency: float) -> LLMResponse:
    choices = data.get("choices")
    if not isinstance(choices, list):
        raise ResponseParseError("Failed to parse response", "missing 'choices'")
    if not choices:
        return LLMResponse(raw_response=data, model=data.get("model", ""), latency_ms=latency)

    choice = choices[0] if isinstance(choices[0], dict) else {}
    message = choice.get("message") or {}
    if not isinstance(message, dict):
        raise ResponseParseError("Failed to parse response", "'message' is not an object")
    tool_calls = message.get("tool_calls")

    return LLMResponse(
        content=message.get("content") or "",
        finish_reason=choice.get("finish_reason") or "",
        message=message,
        tool_calls=tool_calls if isinstance(tool_calls, list) else [],
        usage=data.get("usage") or {},
        model=data.get("model", ""),
        raw_response=data,
        latency_ms=latency,
    )


def _responses_response(data: dict[str, Any], latency: float) -> LLMResponse:
    text = data.get("output_text")
    if not isinstance(text, str):
        parts: list[str] = []
        for item in data.get("output") or []:
            if not isinstance(item, dict) or item.get("type") != "message":
                continue
            for block in item.get("content") or []:
                if isinstance(block, dict) and block.get("type") == "output_text":
                    parts.append(block.get("text") or "")
        text = "".join(parts)
    return LLMResponse(
        content=text,
        finish_reason=data.get("status", ""),
        usage=data.get("usage") or {},
        model=data.get("model", ""),
        raw_response=data,
        latency_ms=latency,
    )


def _anthropic_response(data: dict[str, Any], latency: float) -> LLMResponse:
    parts = [
        block.get("text") or ""
        for block in data.get("content") or []
        if isinstance(block, dict) and block.get("type") == "text"
    ]
    return LLMResponse(
        content="".join(parts),
        finish_reason=data.get("stop_reason") or "",
        usage=data.get("usage") or {},
        model=data.get("model", ""),
        raw_response=data,
        latency_ms=latency,
    )


_PARSERS = {
    WireFormat.CHAT_COMPLETIONS: _chat_completion_response,
    WireFormat.RESPONSES: _responses_response,
    WireFormat.ANTHROPIC: _anthropic_response,
}


class AsyncLLMClient:
    """Client bound to one resolved provider profile.

    Parameters
    ----------
    profile:
        Resolved provider profile; its ``base_url`` is the client base URL.
    timeout:
        Request timeout in seconds. Expiry raises ``RequestTimeoutError``.
    transport:
        Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        profile: ProviderProfile,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.profile = profile
        self._timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=profile.base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Non-streaming
    # ------------------------------------------------------------------

    async def _post(
        self,
        request: OutboundRequest,
        context: str,
        timeout: float | None = None,
    ) -> httpx.Response:
        """POST *request*; raise on transport failure or a non-2xx status."""
        _logger.debug(
            "POST %s%s (%s)", self.profile.base_url, request.path,
            request.wire_format.value,
        )
        try:
            resp = await self._client.post(
                request.path,
                json=request.body,
                headers=request.headers,
                timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(context, timeout or self._timeout) from e
        except httpx.HTTPError as e:
            raise ConnectionFailedError("Failed to connect to AI service", e) from e

        if not resp.is_success:
            raise APIStatusError(context, resp.status_code, resp.text or "Unknown error")
        return resp

    async def send(
        self,
        request: OutboundRequest,
        context: str = "AI API error",
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """POST *request* and return the decoded JSON body."""
        resp = await self._post(request, context, timeout)
        try:
            data = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ResponseParseError("Failed to parse response", e) from e
        if not isinstance(data, dict):
            raise ResponseParseError("Failed to parse response", "body is not a JSON object")
        return data

    async def complete(
        self,
        request: OutboundRequest,
        context: str = "AI API error",
    ) -> LLMResponse:
        """Send a non-streaming request and parse it by wire format."""
        start = time.monotonic()
        data = await self.send(request, context=context)
        latency = (time.monotonic() - start) * 1000
        return _PARSERS[request.wire_format](data, latency)

    async def test_connection(self, timeout: float = CONNECTION_TEST_TIMEOUT) -> str:
        """Send a tiny request and report success for any 2xx status.

        The body is not read, so providers answering with an empty or
        non-JSON body still pass.
        """
        await self._post(
            build_connection_test_request(self.profile),
            context="API returned an error",
            timeout=timeout,
        )
        return f"Connection succeeded! Model: {self.profile.model}"

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def stream_bytes(self, request: OutboundRequest) -> AsyncIterator[bytes]:
        """POST *request* and yield raw body chunks as they arrive.

        Status errors are raised before the first chunk with the response
        body read in full.
        """
        _logger.debug(
            "POST %s%s (%s, stream)", self.profile.base_url, request.path,
            request.wire_format.value,
        )
        try:
            async with self._client.stream(
                "POST", request.path, json=request.body, headers=request.headers,
            ) as resp:
                if not resp.is_success:
                    body = (await resp.aread()).decode("utf-8", errors="replace")
                    raise APIStatusError("Stream failed", resp.status_code, body or "Unknown")
                async for chunk in resp.aiter_bytes():
                    yield chunk
        except httpx.TimeoutException as e:
            raise RequestTimeoutError("Stream error", self._timeout) from e
        except httpx.HTTPError as e:
            raise ConnectionFailedError("Stream connection failed", e) from e

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
