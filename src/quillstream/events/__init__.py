"""Event delivery for quillstream."""

from quillstream.events.bus import EventBus

__all__ = ["EventBus"]
