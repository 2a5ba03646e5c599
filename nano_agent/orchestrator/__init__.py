"""Agent control loop and its event stream."""

from __future__ import annotations

from .agent import Agent, build_system_prompt, exhausted_message
from .channel import EventChannel
from .events import (
    AgentEvent,
    ContentDelta,
    RunDone,
    StepStart,
    ThinkingDelta,
    ToolCallBatch,
    ToolResultEvent,
    ToolStart,
)

__all__ = [
    "Agent",
    "AgentEvent",
    "ContentDelta",
    "EventChannel",
    "RunDone",
    "StepStart",
    "ThinkingDelta",
    "ToolCallBatch",
    "ToolResultEvent",
    "ToolStart",
    "build_system_prompt",
    "exhausted_message",
]
