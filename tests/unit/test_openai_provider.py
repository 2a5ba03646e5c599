from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any

from nano_agent.core.types import LLMStreamChunk, Message, ToolCall
from nano_agent.llm.openai_provider import OpenAIProvider, extract_thinking


def _ev(*, content=None, tool_calls=None, finish_reason=None, **delta_extra) -> Any:
    delta = SimpleNamespace(content=content, tool_calls=tool_calls, **delta_extra)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta, finish_reason=finish_reason)])


def _tc(index: int, *, id=None, name=None, arguments=None) -> Any:
    return SimpleNamespace(index=index, id=id, function=SimpleNamespace(name=name, arguments=arguments))


async def _aiter(items):
    for item in items:
        yield item


def _decode(provider: OpenAIProvider, events) -> list[LLMStreamChunk]:
    async def _run() -> list[LLMStreamChunk]:
        return [c async for c in provider.decode(_aiter(events))]

    return asyncio.run(_run())


def test_decode_text_and_fragmented_tool_call(llm_config) -> None:
    provider = OpenAIProvider(llm_config, client=SimpleNamespace())
    events = [
        _ev(content="Hel"),
        _ev(content="lo"),
        _ev(tool_calls=[_tc(0, id="call_9", name="fo")]),
        _ev(tool_calls=[_tc(0, name="o", arguments='{"a":')]),
        _ev(tool_calls=[_tc(0, arguments="1}")]),
        _ev(finish_reason="tool_calls"),
        SimpleNamespace(choices=[]),
    ]

    chunks = _decode(provider, events)

    assert [c.content for c in chunks[:2]] == ["Hel", "lo"]
    done = [c for c in chunks if c.done]
    assert len(done) == 1
    assert done[0].finish_reason == "tool_calls"
    assert done[0].tool_calls == [ToolCall(id="call_9", name="foo", arguments={"a": 1}, arguments_json='{"a":1}')]


def test_decode_reasoning_fields(llm_config) -> None:
    provider = OpenAIProvider(llm_config, client=SimpleNamespace())
    events = [
        _ev(reasoning_content="thinking..."),
        _ev(reasoning_details=[{"text": "more "}, {"text": "thought"}]),
        _ev(content="answer", finish_reason="stop"),
    ]

    chunks = _decode(provider, events)

    assert [c.thinking for c in chunks] == ["thinking...", "more thought", None]
    assert chunks[-1].done is True
    assert chunks[-1].content == "answer"
    assert chunks[-1].tool_calls is None


def test_decode_unterminated_stream_still_finishes(llm_config) -> None:
    provider = OpenAIProvider(llm_config, client=SimpleNamespace())

    chunks = _decode(provider, [_ev(content="partial")])

    assert chunks[-1].done is True
    assert chunks[-1].finish_reason is None


def test_extract_thinking_ignores_empty() -> None:
    assert extract_thinking(SimpleNamespace(reasoning_content="", reasoning_details=None)) is None
    assert extract_thinking({"reasoning_details": [{"text": ""}]}) is None


def test_build_request_shapes_messages_and_tools(llm_config) -> None:
    provider = OpenAIProvider(llm_config, client=SimpleNamespace())

    class _Tool:
        name = "echo"
        description = "Echo"
        parameters = {"type": "object", "properties": {}}

    messages = [
        Message(role="system", content="sys"),
        Message(role="user", content="hi"),
        Message(
            role="assistant",
            thinking="hmm",
            tool_calls=[ToolCall(id="c1", name="echo", arguments={"text": "é"})],
        ),
        Message(role="tool", content="é", tool_call_id="c1", name="echo"),
    ]

    req = provider.build_request(messages, [_Tool()])

    assert req["model"] == "test-model"
    assert req["stream"] is True
    assert req["tool_choice"] == "auto"
    assert req["tools"][0]["function"]["name"] == "echo"
    assert "extra_body" not in req

    assistant = req["messages"][2]
    assert assistant["tool_calls"][0]["function"]["arguments"] == '{"text": "é"}'
    assert "reasoning_details" not in assistant
    assert "content" not in assistant
    assert req["messages"][3] == {"role": "tool", "tool_call_id": "c1", "content": "é", "name": "echo"}


def test_build_request_reasoning_split(llm_config) -> None:
    from dataclasses import replace

    provider = OpenAIProvider(replace(llm_config, reasoning_split=True), client=SimpleNamespace())

    req = provider.build_request([Message(role="assistant", content="ok", thinking="why")])

    assert req["extra_body"] == {"reasoning_split": True}
    assert req["messages"][0]["reasoning_details"] == [{"text": "why"}]
    assert "tools" not in req
