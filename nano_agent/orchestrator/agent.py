"""The step loop: ask the model, run the requested tools, repeat.

One run is a forward-only sequence of events pulled through an
`EventChannel`. Tool calls within a step execute sequentially, in the order
the model requested them. Tool failures become conversation content; only
provider/network failures escape the run.
"""

from __future__ import annotations

import time
from pathlib import Path

from nano_agent.core.types import Message, ToolCall
from nano_agent.llm.client import LLMClient
from nano_agent.observability import bind_run, get_logger, set_state, set_step
from nano_agent.observability.ids import new_run_id
from nano_agent.tools.registry import ToolRegistry

from .channel import Emit, EventChannel
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

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant that completes tasks by using the available tools."


def build_system_prompt(base_prompt: str, workspace_dir: Path, skills_prompt: str = "") -> str:
    prompt = base_prompt.rstrip()
    if "Current Workspace" not in prompt:
        prompt += (
            "\n\n## Current Workspace\n"
            f"You are currently working in: `{workspace_dir}`\n"
            "All relative paths will be resolved relative to this directory."
        )
    if skills_prompt:
        prompt += f"\n\n{skills_prompt}"
    return prompt


def exhausted_message(max_steps: int) -> str:
    return f"Task couldn't be completed after {max_steps} steps."


class Agent:
    def __init__(
        self,
        *,
        llm: LLMClient,
        tools: ToolRegistry,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_steps: int = 50,
        workspace_dir: str | Path = "./workspace",
        skills_prompt: str = "",
    ) -> None:
        if max_steps < 1:
            raise ValueError("max_steps must be >= 1")

        self._llm = llm
        self._tools = tools
        self.max_steps = int(max_steps)

        self.workspace_dir = Path(workspace_dir).expanduser().resolve()
        self.workspace_dir.mkdir(parents=True, exist_ok=True)

        self.system_prompt = build_system_prompt(system_prompt, self.workspace_dir, skills_prompt)
        self.messages: list[Message] = [Message(role="system", content=self.system_prompt)]
        self._log = get_logger("nano_agent.agent")

    @property
    def tools(self) -> ToolRegistry:
        return self._tools

    def add_user_message(self, content: str) -> None:
        self.messages.append(Message(role="user", content=content))

    def rollback_failed_turn(self) -> bool:
        """Drop the most recent user message and everything after it.

        Meant for a turn that failed mid-run (for example provider errors after
        retries), so the conversation can be retried from a clean state.
        Returns False when there is no user message to roll back to.
        """

        for i in range(len(self.messages) - 1, 0, -1):
            if self.messages[i].role == "user":
                dropped = len(self.messages) - i
                del self.messages[i:]
                self._log.info("turn_rolled_back", dropped_messages=dropped)
                return True
        return False

    def stream(self, task: str | None = None) -> EventChannel[AgentEvent]:
        """Start a run (optionally adding `task` as a user message) and return its events."""

        if task is not None:
            self.add_user_message(task)
        return EventChannel(self._produce)

    async def run(self, task: str | None = None) -> str:
        final = ""
        async with self.stream(task) as events:
            async for ev in events:
                if isinstance(ev, RunDone):
                    final = ev.content
        return final

    async def _produce(self, emit: Emit[AgentEvent]) -> None:
        bind_run(run_id=new_run_id())
        tool_list = self._tools.list()

        for step in range(1, self.max_steps + 1):
            set_step(step)
            set_state("MODEL")
            t0 = time.perf_counter()
            await emit(StepStart(step=step, max_steps=self.max_steps))

            content_parts: list[str] = []
            thinking_parts: list[str] = []
            signature_parts: list[str] = []
            tool_calls: list[ToolCall] = []

            async for chunk in self._llm.generate_stream(self.messages, tool_list):
                if chunk.thinking:
                    thinking_parts.append(chunk.thinking)
                    await emit(ThinkingDelta(text=chunk.thinking))
                if chunk.thinking_signature:
                    signature_parts.append(chunk.thinking_signature)
                if chunk.content:
                    content_parts.append(chunk.content)
                    await emit(ContentDelta(text=chunk.content))
                if chunk.tool_calls:
                    tool_calls = list(chunk.tool_calls)

            content = "".join(content_parts)
            self.messages.append(
                Message(
                    role="assistant",
                    content=content,
                    thinking="".join(thinking_parts) or None,
                    thinking_signature="".join(signature_parts) or None,
                    tool_calls=tool_calls or None,
                )
            )
            self._log.info(
                "step_model_done",
                latency_ms=round((time.perf_counter() - t0) * 1000, 2),
                content_len=len(content),
                tool_calls=len(tool_calls),
            )

            if not tool_calls:
                set_state("DONE")
                await emit(RunDone(content=content, steps=step))
                return

            set_state("TOOLS")
            await emit(ToolCallBatch(tool_calls=tuple(tool_calls)))
            for call in tool_calls:
                await emit(ToolStart(tool_call=call))
                result = await self._tools.execute(call.name, call.arguments, tool_call_id=call.id)
                await emit(ToolResultEvent(tool_call=call, result=result))
                self.messages.append(
                    Message(
                        role="tool",
                        content=result.content if result.success else f"Error: {result.error or 'Unknown error'}",
                        tool_call_id=call.id,
                        name=call.name,
                    )
                )

        set_state("EXHAUSTED")
        self._log.warning("step_budget_exhausted", max_steps=self.max_steps)
        await emit(RunDone(content=exhausted_message(self.max_steps), steps=self.max_steps, exhausted=True))
