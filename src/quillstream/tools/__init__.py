"""Tool system for quillstream."""

from quillstream.tools.base import Tool
from quillstream.tools.registry import ToolRegistry

__all__ = ["Tool", "ToolRegistry"]
