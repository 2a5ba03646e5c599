"""MCP (Model Context Protocol) client-side integration.

This package avoids the top-level name `mcp` so it never shadows the upstream
MCP Python SDK module (`import mcp`).
"""

from __future__ import annotations

from .connection import McpServerConnection, McpSession, McpTool, open_session
from .errors import McpClientError, McpTimeoutError
from .manager import McpConnectionManager
from .types import McpServerConfig, McpServerSpec, infer_transport, load_server_configs, server_config_from_dict

__all__ = [
    "McpClientError",
    "McpConnectionManager",
    "McpServerConfig",
    "McpServerConnection",
    "McpServerSpec",
    "McpSession",
    "McpTimeoutError",
    "McpTool",
    "infer_transport",
    "load_server_configs",
    "open_session",
    "server_config_from_dict",
]
