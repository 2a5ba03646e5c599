"""nano-agent: a step-based LLM task agent with local and MCP tools."""

from __future__ import annotations

__all__ = [
    "__version__",
]

__version__ = "0.1.0"
