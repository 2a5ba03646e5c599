from __future__ import annotations

import asyncio
import traceback
from typing import Any, Iterable

from nano_agent.core.types import ToolResult
from nano_agent.observability.logging import get_logger

from .base import Tool


class ToolRegistry:
    """Name -> tool mapping plus the dispatch boundary.

    The registry is filled once at startup and read-only during a run. `execute`
    never raises for tool-shaped failures: unknown names and exceptions from
    `Tool.execute` come back as failed ToolResults.
    """

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        self._log = get_logger("nano_agent.tools")
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            self._log.warning("tool_name_shadowed", tool=tool.name)
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list(self) -> list[Tool]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    async def execute(self, name: str, arguments: dict[str, Any], *, tool_call_id: str = "") -> ToolResult:
        tool = self._tools.get(name)
        if tool is None:
            self._log.info("tool_not_found", tool_call_id=tool_call_id, tool=name)
            return ToolResult.fail(f"Unknown tool: {name}")

        try:
            result = await tool.execute(arguments)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # noqa: BLE001
            self._log.exception("tool_error", tool_call_id=tool_call_id, tool=name)
            stack = "".join(traceback.format_exception(e)).rstrip()
            return ToolResult.fail(f"Tool execution failed: {e}\n\nStack:\n{stack}")

        if result.success:
            self._log.info("tool_ok", tool_call_id=tool_call_id, tool=name)
        else:
            self._log.info("tool_failed", tool_call_id=tool_call_id, tool=name, error=result.error)
        return result
