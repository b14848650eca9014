"""quillstream: multi-provider AI chat streaming and tool-orchestration engine."""

from quillstream.config import EngineConfig, ProviderProfile, load_config, resolve_profile
from quillstream.errors import QuillstreamError
from quillstream.events.bus import EventBus
from quillstream.service import ChatService

__version__ = "0.1.0"

__all__ = [
    "ChatService",
    "EngineConfig",
    "EventBus",
    "ProviderProfile",
    "QuillstreamError",
    "load_config",
    "resolve_profile",
]
