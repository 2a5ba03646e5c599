from __future__ import annotations

from nano_agent.core.errors import NanoAgentError


class McpClientError(NanoAgentError):
    """Base exception for MCP client failures.

    Transport and protocol failures are normalized into a small set of stable
    error types; they are mapped into ToolResult.error at the tool boundary.
    """

    def __init__(self, error_type: str, message: str, *, details: dict[str, str] | None = None):
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.details = details or {}


class McpTimeoutError(McpClientError):
    def __init__(self, *, timeout_s: float, operation: str = "call"):
        super().__init__(
            "timeout",
            f"MCP {operation} timed out after {timeout_s:g}s",
            details={"timeout_s": str(timeout_s), "operation": operation},
        )
        self.timeout_s = timeout_s
