"""Anthropic Messages API adapter (streaming only).

Anthropic differs from the OpenAI shape in three ways that matter here:
the system prompt is a top-level parameter, tool results are `user` messages
made of `tool_result` blocks, and stream events address content blocks by index.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Sequence

from anthropic import AsyncAnthropic

from nano_agent.core.config import LLMConfig
from nano_agent.core.types import LLMStreamChunk, Message
from nano_agent.observability.logging import get_logger
from nano_agent.tools.base import Tool, to_anthropic_schema

from .base import register_provider
from .tool_call_accumulator import ToolCallAccumulator


def _is_tool_result_turn(msg: dict[str, Any]) -> bool:
    content = msg.get("content")
    return (
        msg.get("role") == "user"
        and isinstance(content, list)
        and bool(content)
        and all(block.get("type") == "tool_result" for block in content)
    )


@register_provider("anthropic")
class AnthropicProvider:
    def __init__(self, config: LLMConfig, *, client: AsyncAnthropic | None = None) -> None:
        self._config = config
        self._client = client or AsyncAnthropic(
            api_key=config.api_key.get_secret_value(),
            base_url=config.api_base,
            timeout=config.timeout_s,
            max_retries=0,
        )
        self._log = get_logger("nano_agent.llm.anthropic")

    def convert_messages(self, messages: Sequence[Message]) -> tuple[str | None, list[dict[str, Any]]]:
        system_parts: list[str] = []
        out: list[dict[str, Any]] = []

        for msg in messages:
            if msg.role == "system":
                system_parts.append(msg.content)
            elif msg.role == "user":
                out.append({"role": "user", "content": msg.content})
            elif msg.role == "tool":
                block = {"type": "tool_result", "tool_use_id": msg.tool_call_id, "content": msg.content}
                # Consecutive results answer one assistant turn and must share a user message.
                if out and _is_tool_result_turn(out[-1]):
                    out[-1]["content"].append(block)
                else:
                    out.append({"role": "user", "content": [block]})
            else:
                blocks: list[dict[str, Any]] = []
                # Signed thinking must lead the turn when thinking is enabled.
                if self._config.thinking_budget and msg.thinking and msg.thinking_signature:
                    blocks.append({"type": "thinking", "thinking": msg.thinking, "signature": msg.thinking_signature})
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                for tc in msg.tool_calls or []:
                    blocks.append({"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.arguments})
                if not blocks:
                    blocks.append({"type": "text", "text": "(no content)"})
                out.append({"role": "assistant", "content": blocks})

        system = "\n\n".join(p for p in system_parts if p) or None
        return system, out

    def build_request(self, messages: Sequence[Message], tools: Sequence[Tool] | None = None) -> dict[str, Any]:
        system, api_messages = self.convert_messages(messages)
        request: dict[str, Any] = {
            "model": self._config.model,
            "max_tokens": self._config.max_tokens,
            "messages": api_messages,
            "stream": True,
        }
        if system:
            request["system"] = system
        if tools:
            request["tools"] = [to_anthropic_schema(t) for t in tools]
        if self._config.thinking_budget:
            request["thinking"] = {"type": "enabled", "budget_tokens": self._config.thinking_budget}
        return request

    async def open_stream(self, request: dict[str, Any]) -> Any:
        return await self._client.messages.create(**request)

    async def decode(self, stream: Any) -> AsyncIterator[LLMStreamChunk]:
        acc = ToolCallAccumulator()
        stop_reason: str | None = None

        async for ev in stream:
            kind = getattr(ev, "type", None)

            if kind == "content_block_start":
                block = getattr(ev, "content_block", None)
                if getattr(block, "type", None) == "tool_use":
                    acc.add(getattr(ev, "index", None), id=getattr(block, "id", None), name=getattr(block, "name", None))

            elif kind == "content_block_delta":
                delta = getattr(ev, "delta", None)
                delta_type = getattr(delta, "type", None)
                if delta_type == "text_delta" and getattr(delta, "text", ""):
                    yield LLMStreamChunk(content=delta.text)
                elif delta_type == "thinking_delta" and getattr(delta, "thinking", ""):
                    yield LLMStreamChunk(thinking=delta.thinking)
                elif delta_type == "signature_delta" and getattr(delta, "signature", ""):
                    yield LLMStreamChunk(thinking_signature=delta.signature)
                elif delta_type == "input_json_delta":
                    acc.add(getattr(ev, "index", None), arguments=getattr(delta, "partial_json", None))

            elif kind == "message_delta":
                stop_reason = getattr(getattr(ev, "delta", None), "stop_reason", None) or stop_reason

            elif kind == "message_stop":
                yield LLMStreamChunk(
                    tool_calls=acc.finalize() or None,
                    done=True,
                    finish_reason=stop_reason or "end_turn",
                )
                return

        self._log.warning("llm_stream_unterminated", model=self._config.model)
        yield LLMStreamChunk(tool_calls=acc.finalize() or None, done=True, finish_reason=stop_reason)
