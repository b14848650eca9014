"""LLM transport, request building and stream decoding for quillstream."""

from quillstream.llm.client import AsyncLLMClient
from quillstream.llm.sse import SSELineBuffer, StreamDecoder
from quillstream.llm.streaming import pump_stream
from quillstream.llm.transform import OutboundRequest, build_chat_request

__all__ = [
    "AsyncLLMClient",
    "OutboundRequest",
    "SSELineBuffer",
    "StreamDecoder",
    "build_chat_request",
    "pump_stream",
]
