from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Iterable

from nano_agent.core.config import McpTimeoutConfig, RetryConfig
from nano_agent.observability.logging import get_logger

from .connection import McpServerConnection, McpTool, SessionOpener, open_session
from .types import McpServerConfig, load_server_configs


class McpConnectionManager:
    """Process-wide set of live MCP connections.

    Owned by the runtime: endpoints are connected once at startup, their tools
    are shared by every run, and `shutdown()` drains the whole set.
    """

    def __init__(
        self,
        *,
        timeouts: McpTimeoutConfig | None = None,
        retry: RetryConfig | None = None,
        opener: SessionOpener = open_session,
    ) -> None:
        self._timeouts = timeouts or McpTimeoutConfig()
        self._retry = retry
        self._opener = opener
        self._connections: list[McpServerConnection] = []
        self._log = get_logger("nano_agent.mcp")

    @property
    def connections(self) -> list[McpServerConnection]:
        return list(self._connections)

    def tools(self) -> list[McpTool]:
        return [tool for conn in self._connections for tool in conn.tools]

    async def connect_all(self, configs: Iterable[McpServerConfig]) -> list[McpTool]:
        """Connect every endpoint concurrently; failed endpoints are skipped."""

        pending = [
            McpServerConnection(cfg, defaults=self._timeouts, retry=self._retry, opener=self._opener)
            for cfg in configs
        ]
        if not pending:
            return []

        results = await asyncio.gather(*(conn.connect() for conn in pending))
        self._connections.extend(conn for conn, ok in zip(pending, results) if ok)

        tools = [tool for conn in pending if conn.connected for tool in conn.tools]
        self._log.info(
            "mcp_tools_loaded",
            connected=sum(1 for ok in results if ok),
            failed=sum(1 for ok in results if not ok),
            tools=len(tools),
        )
        return tools

    async def load(self, path: str | Path) -> list[McpTool]:
        return await self.connect_all(load_server_configs(path))

    async def shutdown(self) -> None:
        connections, self._connections = self._connections, []
        for conn in connections:
            try:
                await conn.disconnect()
            except Exception:  # noqa: BLE001
                self._log.exception("mcp_disconnect_failed", server=conn.name)
        if connections:
            self._log.info("mcp_shutdown", connections=len(connections))
