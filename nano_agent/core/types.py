from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["system", "user", "assistant", "tool"]


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A complete, de-fragmented tool call requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any]
    arguments_json: str = ""


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Outcome of one tool execution.

    `content` is always a string so it can be appended to a `tool` message as-is.
    `error` is only set when `success` is False. `extra` carries tool-specific
    metadata (for example stdout/stderr/exit_code of shell commands).
    """

    success: bool
    content: str = ""
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, content: str, **extra: Any) -> "ToolResult":
        return cls(success=True, content=content, error=None, extra=dict(extra))

    @classmethod
    def fail(cls, error: str, *, content: str = "", **extra: Any) -> "ToolResult":
        return cls(success=False, content=content, error=error, extra=dict(extra))


@dataclass(slots=True)
class Message:
    role: Role
    content: str = ""
    thinking: str | None = None
    thinking_signature: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("tool messages must carry tool_call_id")
        if self.role != "assistant" and (self.tool_calls or self.thinking or self.thinking_signature):
            raise ValueError(f"{self.role} messages cannot carry thinking or tool_calls")


@dataclass(frozen=True, slots=True)
class LLMStreamChunk:
    """One increment of a streamed model response.

    `tool_calls` is only populated on the chunk where `done` becomes True.
    """

    content: str | None = None
    thinking: str | None = None
    thinking_signature: str | None = None
    tool_calls: list[ToolCall] | None = None
    done: bool = False
    finish_reason: str | None = None
