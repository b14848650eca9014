"""Server-sent event framing and decoding.

``SSELineBuffer`` turns raw byte chunks into complete lines under a fixed
memory cap. ``StreamDecoder`` turns ``data:`` lines into ``StreamEvent``
objects, dispatching on the wire format of the request that produced the
stream:

- Chat Completions: ``choices[0].delta.reasoning_content`` and
  ``choices[0].delta.content``. Reasoning arrives as one continuous
  section, so ``<think>`` / ``</think>`` are synthesized on entering and
  leaving it.
- Responses API: typed events; each reasoning summary chunk is wrapped on
  its own.
- Anthropic Messages: ``content_block_delta`` events carrying
  ``text_delta`` or ``thinking_delta``; each thinking chunk is wrapped on
  its own.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from quillstream.config import MAX_BUFFER_BYTES
from quillstream.errors import BufferLimitExceededError
from quillstream.types import StreamEvent, WireFormat

_logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"
THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"


# ---------------------------------------------------------------------------
# Line framing
# ---------------------------------------------------------------------------

class SSELineBuffer:
    """Incremental, bounded ``\\n`` line framer.

    Only bytes that have not yet formed a complete line stay buffered, so
    the cap bounds memory against a server that never sends a newline.
    """

    def __init__(self, max_bytes: int = MAX_BUFFER_BYTES) -> None:
        self._max_bytes = max_bytes
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> list[str]:
        """Append *chunk* and return every complete, non-empty line.

        Raises ``BufferLimitExceededError`` before appending if the pending
        data would exceed the cap.
        """
        if len(self._buffer) + len(chunk) > self._max_bytes:
            raise BufferLimitExceededError(self._max_bytes)
        self._buffer.extend(chunk)

        lines: list[str] = []
        while True:
            pos = self._buffer.find(b"\n")
            if pos < 0:
                break
            raw = bytes(self._buffer[:pos])
            del self._buffer[: pos + 1]
            line = raw.decode("utf-8", errors="replace").rstrip("\r")
            if line:
                lines.append(line)
        return lines

    def flush(self) -> list[str]:
        """Return the trailing unterminated line, if any, and reset."""
        raw = bytes(self._buffer)
        self._buffer.clear()
        line = raw.decode("utf-8", errors="replace").rstrip("\r")
        return [line] if line else []

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet framed into a line."""
        return len(self._buffer)


# ---------------------------------------------------------------------------
# Event decoding
# ---------------------------------------------------------------------------

def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


class StreamDecoder:
    """Decode ``data:`` lines of one stream into ``StreamEvent`` objects."""

    def __init__(self, wire_format: WireFormat) -> None:
        self.wire_format = wire_format
        self.done = False
        self._in_reasoning = False
        self._handlers = {
            WireFormat.CHAT_COMPLETIONS: self._decode_chat_completions,
            WireFormat.RESPONSES: self._decode_responses,
            WireFormat.ANTHROPIC: self._decode_anthropic,
        }

    def decode_line(self, line: str) -> list[StreamEvent]:
        """Decode one framed line. Non-``data:`` lines yield nothing."""
        if self.done or not line.startswith(DATA_PREFIX):
            return []
        data = line[len(DATA_PREFIX):]

        if data == DONE_SENTINEL:
            events = self.finish()
            self.done = True
            return events

        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            _logger.debug("Skipping undecodable SSE payload: %.80s", data)
            return []
        if not isinstance(payload, dict):
            return []
        return self._handlers[self.wire_format](payload)

    def finish(self) -> list[StreamEvent]:
        """Close an open reasoning section at end of stream."""
        if self._in_reasoning:
            self._in_reasoning = False
            return [StreamEvent.reasoning(THINK_CLOSE)]
        return []

    # ------------------------------------------------------------------
    # Per-format handlers
    # ------------------------------------------------------------------

    def _decode_chat_completions(self, payload: dict[str, Any]) -> list[StreamEvent]:
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            return []
        first = choices[0]
        delta = first.get("delta") if isinstance(first, dict) else None
        if not isinstance(delta, dict):
            return []

        events: list[StreamEvent] = []
        reasoning = _text(delta.get("reasoning_content"))
        if reasoning:
            if not self._in_reasoning:
                events.append(StreamEvent.reasoning(THINK_OPEN))
                self._in_reasoning = True
            events.append(StreamEvent.reasoning(reasoning))

        content = _text(delta.get("content"))
        if content:
            if self._in_reasoning:
                events.append(StreamEvent.reasoning(THINK_CLOSE))
                self._in_reasoning = False
            events.append(StreamEvent.content(content))
        return events

    def _decode_responses(self, payload: dict[str, Any]) -> list[StreamEvent]:
        event_type = payload.get("type")
        delta = _text(payload.get("delta"))
        if not delta:
            return []
        if event_type == "response.output_text.delta":
            return [StreamEvent.content(delta)]
        if event_type == "response.reasoning_summary_text.delta":
            return [StreamEvent.reasoning(f"{THINK_OPEN}{delta}{THINK_CLOSE}")]
        return []

    def _decode_anthropic(self, payload: dict[str, Any]) -> list[StreamEvent]:
        if payload.get("type") != "content_block_delta":
            return []
        delta = payload.get("delta")
        if not isinstance(delta, dict):
            return []
        delta_type = delta.get("type")
        if delta_type == "text_delta":
            text = _text(delta.get("text"))
            return [StreamEvent.content(text)] if text else []
        if delta_type == "thinking_delta":
            thinking = _text(delta.get("thinking"))
            if thinking:
                return [StreamEvent.reasoning(f"{THINK_OPEN}{thinking}{THINK_CLOSE}")]
        return []
