"""Error types for quillstream.

Every error carries a single human-readable message suitable for showing
to the user as-is. Tool failures are never raised; they are encoded into
the tool result payload instead.
"""

from __future__ import annotations

from typing import Any


class QuillstreamError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConnectionFailedError(QuillstreamError):
    """DNS, TCP or TLS failure, or the connection dropped mid-stream."""

    def __init__(self, context: str, cause: Exception | str):
        super().__init__(f"{context}: {cause}", {"cause": str(cause)})


class RequestTimeoutError(QuillstreamError):
    """The request did not complete within its timeout."""

    def __init__(self, context: str, timeout: float):
        super().__init__(
            f"{context}: request timed out after {timeout:g}s",
            {"timeout": timeout},
        )
        self.timeout = timeout


class APIStatusError(QuillstreamError):
    """The provider answered with a non-2xx status.

    The response body is surfaced verbatim.
    """

    def __init__(self, context: str, status_code: int, body: str):
        super().__init__(
            f"{context} ({status_code}): {body}",
            {"status_code": status_code, "body": body},
        )
        self.status_code = status_code
        self.body = body


class ResponseParseError(QuillstreamError):
    """A response body was not valid JSON or had an unexpected shape."""

    def __init__(self, context: str, reason: Exception | str):
        super().__init__(f"{context}: {reason}", {"reason": str(reason)})


class BufferLimitExceededError(QuillstreamError):
    """The stream produced more unterminated data than the buffer cap."""

    def __init__(self, limit: int):
        super().__init__(
            f"Response too large, exceeded buffer limit of {limit} bytes",
            {"limit": limit},
        )
        self.limit = limit
