"""Async pub/sub EventBus delivering stream fragments to UI sinks."""

from __future__ import annotations

import inspect
import logging
from collections import deque
from typing import Any, Callable

from quillstream.types import EngineEvent, EventType

_logger = logging.getLogger(__name__)

WILDCARD = "*"

Handler = Callable[[EngineEvent], Any]


class EventBus:
    """Ordered async pub/sub bus.

    Handlers subscribe to one ``EventType`` (or its string value) or to
    ``"*"`` for everything, and may be sync or async. ``emit()`` calls them
    one after another, type-specific handlers first, and returns when the
    last one finished. A stream that awaits each emit therefore reaches its
    sinks in wire order, and a cancellation requested from inside a handler
    is visible before the next fragment is produced.

    A handler that raises is logged and skipped.
    """

    def __init__(self, max_history: int = 200) -> None:
        self._handlers: dict[str, list[Handler]] = {}
        self._history: deque[EngineEvent] = deque(maxlen=max(max_history, 0))

    def subscribe(self, event_type: EventType | str, handler: Handler) -> Callable[[], None]:
        """Register *handler*; returns a callable that unsubscribes it."""
        key = _key(event_type)
        self._handlers.setdefault(key, []).append(handler)
        return lambda: self.unsubscribe(key, handler)

    def unsubscribe(self, event_type: EventType | str, handler: Handler) -> None:
        handlers = self._handlers.get(_key(event_type))
        if handlers and handler in handlers:
            handlers.remove(handler)

    async def emit(self, event: EngineEvent) -> None:
        self._history.append(event)
        targets = self._handlers.get(_key(event.type), []) + self._handlers.get(WILDCARD, [])
        for handler in targets:
            await _deliver(handler, event)

    async def emit_chunk(self, request_id: str, content: str) -> None:
        """Emit one ``STREAM_CHUNK`` fragment tagged with *request_id*."""
        await self.emit(EngineEvent(
            type=EventType.STREAM_CHUNK,
            data={"request_id": request_id, "content": content},
        ))

    @property
    def history(self) -> list[EngineEvent]:
        """Most recent events, oldest first."""
        return list(self._history)

    def clear(self) -> None:
        self._handlers.clear()
        self._history.clear()


def _key(event_type: EventType | str) -> str:
    return event_type.value if isinstance(event_type, EventType) else str(event_type)


async def _deliver(handler: Handler, event: EngineEvent) -> None:
    try:
        result = handler(event)
        if inspect.isawaitable(result):
            await result
    except Exception:
        _logger.exception(
            "EventBus handler %s raised for event %s",
            getattr(handler, "__name__", handler), event.type.value,
        )
