"""Core engine components for quillstream."""

from quillstream.core.executor import ExecutionResult, Executor
from quillstream.core.orchestrator import ToolCallingOrchestrator
from quillstream.core.sessions import StreamSession, StreamSessionRegistry

__all__ = [
    "ExecutionResult",
    "Executor",
    "StreamSession",
    "StreamSessionRegistry",
    "ToolCallingOrchestrator",
]
