"""Tool contract, registry and the built-in local tools."""

from __future__ import annotations

from .base import JsonSchema, Tool, to_anthropic_schema, to_openai_schema
from .bash_tool import BackgroundShell, BackgroundShellManager, BashKillTool, BashOutputTool, BashTool
from .file_tools import EditTool, ReadTool, WriteTool
from .registry import ToolRegistry

__all__ = [
    "BackgroundShell",
    "BackgroundShellManager",
    "BashKillTool",
    "BashOutputTool",
    "BashTool",
    "EditTool",
    "JsonSchema",
    "ReadTool",
    "Tool",
    "ToolRegistry",
    "WriteTool",
    "to_anthropic_schema",
    "to_openai_schema",
]
