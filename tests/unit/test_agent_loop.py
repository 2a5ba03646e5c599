from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from nano_agent.core.types import ToolCall
from nano_agent.orchestrator import Agent, RunDone, exhausted_message
from nano_agent.tools import ReadTool, ToolRegistry


def _collect(agent: Agent, task: str) -> list[object]:
    async def _run() -> list[object]:
        out: list[object] = []
        async with agent.stream(task) as events:
            async for ev in events:
                out.append(ev)
        return out

    return asyncio.run(_run())


def test_single_step_finish(tmp_path: Path, make_llm, scripted) -> None:
    llm, provider = make_llm([scripted.text("hello there")])
    agent = Agent(llm=llm, tools=ToolRegistry(), workspace_dir=tmp_path, max_steps=5)

    final = asyncio.run(agent.run("hi"))

    assert final == "hello there"
    assert provider.calls == 1
    assert [m.role for m in agent.messages] == ["system", "user", "assistant"]
    assert agent.messages[-1].content == "hello there"


def test_budget_exhaustion_returns_sentinel(tmp_path: Path, make_llm, scripted) -> None:
    def always_tool(idx: int):
        return scripted.tools(ToolCall(id=f"call_{idx}", name="nope", arguments={}))

    llm, provider = make_llm(always_tool)
    agent = Agent(llm=llm, tools=ToolRegistry(), workspace_dir=tmp_path, max_steps=3)

    events = _collect(agent, "loop forever")

    done = events[-1]
    assert isinstance(done, RunDone)
    assert done.exhausted is True
    assert done.content == exhausted_message(3) == "Task couldn't be completed after 3 steps."
    assert provider.calls == 3
    # every unknown-tool call is answered with an error tool message
    tool_msgs = [m for m in agent.messages if m.role == "tool"]
    assert len(tool_msgs) == 3
    assert all(m.content == "Error: Unknown tool: nope" for m in tool_msgs)


def test_missing_file_is_reported_to_model(tmp_path: Path, make_llm, scripted) -> None:
    call = ToolCall(id="call_1", name="read_file", arguments={"path": "missing.txt"})
    llm, provider = make_llm([scripted.tools(call), scripted.text("The file does not exist.")])
    agent = Agent(llm=llm, tools=ToolRegistry([ReadTool(workspace_dir=tmp_path)]), workspace_dir=tmp_path)

    final = asyncio.run(agent.run("read missing.txt"))

    assert final == "The file does not exist."
    assert provider.calls == 2
    tool_msg = next(m for m in agent.messages if m.role == "tool")
    assert tool_msg.tool_call_id == "call_1"
    assert tool_msg.name == "read_file"
    assert tool_msg.content.startswith("Error: File not found:")
    assert "missing.txt" in tool_msg.content
    # the second request carries the tool result
    second = provider.requests[1]["messages"]
    assert second[-1].role == "tool"


def test_event_order_for_tool_step(tmp_path: Path, make_llm, scripted) -> None:
    target = tmp_path / "a.txt"
    target.write_text("alpha\n", encoding="utf-8")
    calls = (
        ToolCall(id="c1", name="read_file", arguments={"path": "a.txt"}),
        ToolCall(id="c2", name="read_file", arguments={"path": "a.txt"}),
    )
    llm, _ = make_llm([scripted.tools(*calls, thinking="let me look"), scripted.text("done")])
    agent = Agent(llm=llm, tools=ToolRegistry([ReadTool(workspace_dir=tmp_path)]), workspace_dir=tmp_path)

    events = _collect(agent, "read it twice")

    kinds = [ev.type for ev in events]
    assert kinds == [
        "step_start",
        "thinking",
        "tool_call",
        "tool_start",
        "tool_result",
        "tool_start",
        "tool_result",
        "step_start",
        "content",
        "done",
    ]
    results = [ev for ev in events if ev.type == "tool_result"]
    assert [r.tool_call.id for r in results] == ["c1", "c2"]
    assert all(r.result.success for r in results)
    assert "alpha" in results[0].result.content

    assistant = agent.messages[2]
    assert assistant.role == "assistant"
    assert assistant.thinking == "let me look"
    assert [tc.id for tc in assistant.tool_calls or []] == ["c1", "c2"]


def test_provider_failure_propagates_and_rollback(tmp_path: Path, make_llm, scripted) -> None:
    def broken(idx: int):
        raise ConnectionError("network down")

    llm, _ = make_llm(broken)
    agent = Agent(llm=llm, tools=ToolRegistry(), workspace_dir=tmp_path)

    with pytest.raises(ConnectionError):
        asyncio.run(agent.run("hello"))

    assert agent.messages[-1].role == "user"
    assert agent.rollback_failed_turn() is True
    assert [m.role for m in agent.messages] == ["system"]
    assert agent.rollback_failed_turn() is False


def test_workspace_section_added_once(tmp_path: Path, make_llm) -> None:
    llm, _ = make_llm([])

    agent = Agent(llm=llm, tools=ToolRegistry(), workspace_dir=tmp_path / "ws", skills_prompt="## Available Skills\n- x")
    assert (tmp_path / "ws").is_dir()
    assert "## Current Workspace" in agent.system_prompt
    assert str((tmp_path / "ws").resolve()) in agent.system_prompt
    assert agent.system_prompt.endswith("## Available Skills\n- x")

    custom = Agent(
        llm=llm,
        tools=ToolRegistry(),
        system_prompt="Be brief.\n\n## Current Workspace\nsomewhere",
        workspace_dir=tmp_path,
    )
    assert custom.system_prompt.count("Current Workspace") == 1


def test_invalid_max_steps(tmp_path: Path, make_llm) -> None:
    llm, _ = make_llm([])
    with pytest.raises(ValueError):
        Agent(llm=llm, tools=ToolRegistry(), workspace_dir=tmp_path, max_steps=0)
