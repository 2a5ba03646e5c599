from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from nano_agent.core.types import ToolResult

JsonSchema = dict[str, Any]


@runtime_checkable
class Tool(Protocol):
    """Capability contract shared by local, skill and MCP tools."""

    name: str
    description: str
    parameters: JsonSchema

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        ...


def to_openai_schema(tool: Tool) -> dict[str, Any]:
    """OpenAI-compatible format:
    {
      "type": "function",
      "function": {"name": ..., "description": ..., "parameters": {...JSON Schema...}}
    }
    """

    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameters,
        },
    }


def to_anthropic_schema(tool: Tool) -> dict[str, Any]:
    return {
        "name": tool.name,
        "description": tool.description,
        "input_schema": tool.parameters,
    }
