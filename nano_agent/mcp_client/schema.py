"""Normalization of remote tool metadata and call results."""

from __future__ import annotations

import json
from typing import Any


def normalize_tool_schema(raw: Any) -> dict[str, Any]:
    """Coerce a remote input schema into an object schema with `properties`."""

    if hasattr(raw, "model_dump"):
        raw = raw.model_dump(exclude_none=True)
    schema: dict[str, Any] = dict(raw) if isinstance(raw, dict) else {}

    schema["type"] = "object"
    if not isinstance(schema.get("properties"), dict):
        schema["properties"] = {}
    required = schema.get("required")
    if required is not None and not isinstance(required, list):
        schema.pop("required")
    return schema


def normalize_tool_description(raw: Any) -> str:
    if not isinstance(raw, str):
        return ""
    return " ".join(raw.split())


def _block_to_dict(block: Any) -> Any:
    dump = getattr(block, "model_dump", None)
    if callable(dump):
        return dump(mode="json", exclude_none=True)
    return block


def normalize_content(content: Any) -> str:
    """Flatten MCP content blocks into one string.

    Text blocks are joined with newlines; anything else is serialized as JSON.
    """

    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        content = [content]

    parts: list[str] = []
    for block in content:
        text = getattr(block, "text", None)
        if text is None and isinstance(block, dict) and block.get("type") == "text":
            text = block.get("text")
        if isinstance(text, str):
            parts.append(text)
            continue
        parts.append(json.dumps(_block_to_dict(block), ensure_ascii=False, default=str))
    return "\n".join(parts)
