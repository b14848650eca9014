"""Drive a byte stream through framing, decoding and emission.

Cancellation is cooperative: the session flag is read before each chunk,
each framed line and each decoded event. A cancelled stream returns the
text produced so far, with any open reasoning section closed. It is never
an error.
"""

from __future__ import annotations

import logging
from typing import AsyncIterable

from quillstream.config import MAX_BUFFER_BYTES
from quillstream.core.sessions import StreamSessionRegistry
from quillstream.events.bus import EventBus
from quillstream.types import StreamEvent

from .sse import THINK_CLOSE, SSELineBuffer, StreamDecoder

_logger = logging.getLogger(__name__)


async def pump_stream(
    chunks: AsyncIterable[bytes],
    decoder: StreamDecoder,
    request_id: str,
    sessions: StreamSessionRegistry,
    bus: EventBus,
    max_buffer_bytes: int = MAX_BUFFER_BYTES,
) -> str:
    """Decode *chunks* until ``[DONE]``, exhaustion or cancellation.

    Every event is emitted on *bus* as a ``STREAM_CHUNK`` in wire order and
    appended to the returned text. Raises ``BufferLimitExceededError`` if
    the unterminated tail of the stream outgrows *max_buffer_bytes*.
    """
    lines = SSELineBuffer(max_buffer_bytes)
    parts: list[str] = []

    async def _emit(event: StreamEvent) -> None:
        parts.append(event.text)
        await bus.emit_chunk(request_id, event.text)

    async def _consume(framed: list[str]) -> bool:
        """Decode and emit *framed*; ``False`` once the session is cancelled."""
        for line in framed:
            # A cancelled line must not touch decoder state
            if sessions.is_cancelled(request_id):
                return False
            events = decoder.decode_line(line)
            for i, event in enumerate(events):
                if sessions.is_cancelled(request_id):
                    # The decoder already left reasoning; keep the close tag
                    for rest in events[i:]:
                        if rest.text == THINK_CLOSE:
                            await _emit(rest)
                    return False
                await _emit(event)
            if decoder.done:
                break
        return True

    cancelled = False
    async for chunk in chunks:
        if sessions.is_cancelled(request_id) or not await _consume(lines.feed(chunk)):
            cancelled = True
            break
        if decoder.done:
            break
    else:
        cancelled = not await _consume(lines.flush())

    for event in decoder.finish():
        await _emit(event)

    if cancelled:
        _logger.info("Stream %s cancelled after %d fragments", request_id, len(parts))
    return "".join(parts)
