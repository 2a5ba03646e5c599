"""Streaming tool-call defragmentation.

Providers deliver a tool call's id, name and JSON arguments across many chunks,
addressed by position. Fragments are buffered per index and only turned into
`ToolCall`s once the stream reports completion.

Parsing is best-effort: malformed arguments become an empty mapping (the raw
text is kept on `ToolCall.arguments_json`) instead of failing the stream.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

from nano_agent.core.types import ToolCall
from nano_agent.observability.logging import get_logger


@dataclass(slots=True)
class _PendingToolCall:
    index: int
    id: str = ""
    name: str = ""
    arguments: str = ""


class ToolCallAccumulator:
    def __init__(self) -> None:
        self._calls: dict[int, _PendingToolCall] = {}
        self._log = get_logger("nano_agent.llm")

    def __len__(self) -> int:
        return len(self._calls)

    def add(
        self,
        index: int | None,
        *,
        id: str | None = None,  # noqa: A002
        name: str | None = None,
        arguments: str | None = None,
    ) -> None:
        idx = index if isinstance(index, int) else 0
        acc = self._calls.get(idx)
        if acc is None:
            acc = self._calls[idx] = _PendingToolCall(index=idx)

        if id:
            acc.id = id
        if name:
            acc.name += name
        if arguments:
            acc.arguments += arguments

    def finalize(self) -> list[ToolCall]:
        """Materialize every buffered call, in index order."""

        out: list[ToolCall] = []
        for idx in sorted(self._calls):
            acc = self._calls[idx]
            out.append(
                ToolCall(
                    id=acc.id or f"call_{idx}",
                    name=acc.name,
                    arguments=self._parse(acc),
                    arguments_json=acc.arguments,
                )
            )

        if out:
            self._log.debug(
                "tool_calls_defragmented",
                tool_calls=[{"id": c.id, "name": c.name, "arguments_len": len(c.arguments_json)} for c in out],
            )
        return out

    def _parse(self, acc: _PendingToolCall) -> dict[str, object]:
        if not acc.arguments.strip():
            return {}
        try:
            parsed = json.loads(acc.arguments)
        except json.JSONDecodeError as e:
            self._log.warning(
                "tool_call_args_invalid",
                tool_call_id=acc.id,
                tool=acc.name,
                error=f"{e.msg} (pos={e.pos})",
            )
            return {}
        if not isinstance(parsed, dict):
            self._log.warning("tool_call_args_invalid", tool_call_id=acc.id, tool=acc.name, error="not a JSON object")
            return {}
        return parsed
