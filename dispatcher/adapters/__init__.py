"""Tool adapters: one per backend, all satisfying ToolAdapter."""

from dispatcher.adapters.aider import AiderAdapter
from dispatcher.adapters.base import EventSink, StreamEmitter, ToolAdapter
from dispatcher.adapters.claude_code import ClaudeCodeAdapter
from dispatcher.adapters.cursor import CursorAdapter
from dispatcher.adapters.factory import ADAPTER_TYPES, get_adapter, get_all_adapters
from dispatcher.adapters.opencode import OpenCodeAdapter

__all__ = [
    "ADAPTER_TYPES",
    "AiderAdapter",
    "ClaudeCodeAdapter",
    "CursorAdapter",
    "EventSink",
    "OpenCodeAdapter",
    "StreamEmitter",
    "ToolAdapter",
    "get_adapter",
    "get_all_adapters",
]
