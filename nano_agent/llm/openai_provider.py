"""OpenAI-compatible chat completions adapter (streaming only)."""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Sequence

from openai import AsyncOpenAI

from nano_agent.core.config import LLMConfig
from nano_agent.core.types import LLMStreamChunk, Message
from nano_agent.observability.logging import get_logger
from nano_agent.tools.base import Tool, to_openai_schema

from .base import register_provider
from .tool_call_accumulator import ToolCallAccumulator


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def extract_thinking(delta: Any) -> str | None:
    """Reasoning text from either `reasoning_content` or `reasoning_details[].text`."""

    reasoning = _field(delta, "reasoning_content")
    if isinstance(reasoning, str) and reasoning:
        return reasoning

    details = _field(delta, "reasoning_details")
    if isinstance(details, list):
        texts = [t for t in (_field(d, "text") for d in details) if isinstance(t, str) and t]
        if texts:
            return "".join(texts)
    return None


@register_provider("openai")
class OpenAIProvider:
    def __init__(self, config: LLMConfig, *, client: AsyncOpenAI | None = None) -> None:
        self._config = config
        # Retries are applied by LLMClient around open_stream.
        self._client = client or AsyncOpenAI(
            api_key=config.api_key.get_secret_value(),
            base_url=config.api_base,
            timeout=config.timeout_s,
            max_retries=0,
        )
        self._log = get_logger("nano_agent.llm.openai")

    def convert_message(self, msg: Message) -> dict[str, Any]:
        if msg.role in ("system", "user"):
            return {"role": msg.role, "content": msg.content}

        if msg.role == "tool":
            out: dict[str, Any] = {"role": "tool", "tool_call_id": msg.tool_call_id, "content": msg.content}
            if msg.name:
                out["name"] = msg.name
            return out

        assistant: dict[str, Any] = {"role": "assistant"}
        if msg.content:
            assistant["content"] = msg.content
        if msg.tool_calls:
            assistant["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": json.dumps(tc.arguments, ensure_ascii=False)},
                }
                for tc in msg.tool_calls
            ]
        if msg.thinking and self._config.reasoning_split:
            assistant["reasoning_details"] = [{"text": msg.thinking}]
        if "content" not in assistant and "tool_calls" not in assistant:
            assistant["content"] = ""
        return assistant

    def build_request(self, messages: Sequence[Message], tools: Sequence[Tool] | None = None) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": self._config.model,
            "messages": [self.convert_message(m) for m in messages],
            "stream": True,
        }
        if tools:
            request["tools"] = [to_openai_schema(t) for t in tools]
            request["tool_choice"] = "auto"
        if self._config.reasoning_split:
            request["extra_body"] = {"reasoning_split": True}
        return request

    async def open_stream(self, request: dict[str, Any]) -> Any:
        return await self._client.chat.completions.create(**request)

    async def decode(self, stream: Any) -> AsyncIterator[LLMStreamChunk]:
        acc = ToolCallAccumulator()
        finished = False

        async for ev in stream:
            choices = getattr(ev, "choices", None) or []
            if not choices:
                continue

            choice = choices[0]
            delta = getattr(choice, "delta", None)
            finish_reason = getattr(choice, "finish_reason", None)

            content = _field(delta, "content") if delta is not None else None
            thinking = extract_thinking(delta) if delta is not None else None

            for tc in (_field(delta, "tool_calls") or []) if delta is not None else []:
                fn = _field(tc, "function")
                acc.add(
                    _field(tc, "index"),
                    id=_field(tc, "id"),
                    name=_field(fn, "name") if fn is not None else None,
                    arguments=_field(fn, "arguments") if fn is not None else None,
                )

            if finish_reason and not finished:
                finished = True
                yield LLMStreamChunk(
                    content=content or None,
                    thinking=thinking,
                    tool_calls=acc.finalize() or None,
                    done=True,
                    finish_reason=finish_reason,
                )
                continue

            if not finished and (content or thinking):
                yield LLMStreamChunk(content=content or None, thinking=thinking)

        if not finished:
            self._log.warning("llm_stream_unterminated", model=self._config.model)
            yield LLMStreamChunk(tool_calls=acc.finalize() or None, done=True)
