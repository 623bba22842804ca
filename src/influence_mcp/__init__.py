"""Influence MCP package."""

from .config import Settings
from .tools.dispatcher import ToolDispatcher
from .tools.registry import ToolRegistry, ToolSpec

__all__ = ["Settings", "ToolDispatcher", "ToolRegistry", "ToolSpec"]
