"""Lifecycle events emitted by one agent run.

Order per step: step_start, thinking*, content*, then optionally tool_call
followed by (tool_start, tool_result) per call. The run ends with one `done`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

from nano_agent.core.types import ToolCall, ToolResult


@dataclass(frozen=True, slots=True)
class StepStart:
    step: int
    max_steps: int
    type: Literal["step_start"] = field(default="step_start", init=False)


@dataclass(frozen=True, slots=True)
class ThinkingDelta:
    text: str
    type: Literal["thinking"] = field(default="thinking", init=False)


@dataclass(frozen=True, slots=True)
class ContentDelta:
    text: str
    type: Literal["content"] = field(default="content", init=False)


@dataclass(frozen=True, slots=True)
class ToolCallBatch:
    tool_calls: tuple[ToolCall, ...]
    type: Literal["tool_call"] = field(default="tool_call", init=False)


@dataclass(frozen=True, slots=True)
class ToolStart:
    tool_call: ToolCall
    type: Literal["tool_start"] = field(default="tool_start", init=False)


@dataclass(frozen=True, slots=True)
class ToolResultEvent:
    tool_call: ToolCall
    result: ToolResult
    type: Literal["tool_result"] = field(default="tool_result", init=False)


@dataclass(frozen=True, slots=True)
class RunDone:
    """Terminal event. `exhausted` is True when the step budget ran out."""

    content: str
    steps: int
    exhausted: bool = False
    type: Literal["done"] = field(default="done", init=False)


AgentEvent = Union[StepStart, ThinkingDelta, ContentDelta, ToolCallBatch, ToolStart, ToolResultEvent, RunDone]
