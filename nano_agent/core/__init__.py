"""Project core.

This package hosts the stable, non-domain-specific building blocks (config, errors,
message/tool contracts, and the retry policy).
"""

from __future__ import annotations

from .errors import ConfigError, NanoAgentError
from .retry import RetryExhaustedError, async_retry, calculate_delay
from .types import LLMStreamChunk, Message, ToolCall, ToolResult

__all__ = [
    "ConfigError",
    "LLMStreamChunk",
    "Message",
    "NanoAgentError",
    "RetryExhaustedError",
    "ToolCall",
    "ToolResult",
    "async_retry",
    "calculate_delay",
]
