from __future__ import annotations

from typing import Any, AsyncIterator, Callable, Sequence

import pytest
from pydantic import SecretStr

from nano_agent.core.config import LLMConfig, RetryConfig
from nano_agent.core.types import LLMStreamChunk, Message, ToolCall
from nano_agent.llm.client import LLMClient


class ScriptedProvider:
    """Provider fake: each `open_stream` call replays the next scripted response."""

    def __init__(self, responses: Sequence[Sequence[LLMStreamChunk]] | Callable[[int], Sequence[LLMStreamChunk]]):
        self._responses = responses
        self.calls = 0
        self.requests: list[dict[str, Any]] = []

    def build_request(self, messages: Sequence[Message], tools: Sequence[Any] | None = None) -> dict[str, Any]:
        return {"messages": list(messages), "tools": [t.name for t in tools or ()]}

    async def open_stream(self, request: dict[str, Any]) -> Sequence[LLMStreamChunk]:
        self.requests.append(request)
        idx = self.calls
        self.calls += 1
        if callable(self._responses):
            return self._responses(idx)
        return self._responses[idx]

    async def decode(self, stream: Sequence[LLMStreamChunk]) -> AsyncIterator[LLMStreamChunk]:
        for chunk in stream:
            yield chunk


def text_response(text: str) -> list[LLMStreamChunk]:
    return [LLMStreamChunk(content=text), LLMStreamChunk(done=True, finish_reason="stop")]


def tool_response(*calls: ToolCall, thinking: str | None = None) -> list[LLMStreamChunk]:
    chunks: list[LLMStreamChunk] = []
    if thinking:
        chunks.append(LLMStreamChunk(thinking=thinking))
    chunks.append(LLMStreamChunk(tool_calls=list(calls), done=True, finish_reason="tool_calls"))
    return chunks


@pytest.fixture
def llm_config() -> LLMConfig:
    return LLMConfig(api_key=SecretStr("k_test"), model="test-model")


@pytest.fixture
def make_llm(llm_config: LLMConfig) -> Callable[..., tuple[LLMClient, ScriptedProvider]]:
    def _make(responses: Any) -> tuple[LLMClient, ScriptedProvider]:
        provider = ScriptedProvider(responses)
        client = LLMClient(llm_config, RetryConfig(enabled=False), provider=provider)
        return client, provider

    return _make


@pytest.fixture
def scripted() -> Any:
    """Helpers for building scripted model responses."""

    class _Scripts:
        text = staticmethod(text_response)
        tools = staticmethod(tool_response)

    return _Scripts
