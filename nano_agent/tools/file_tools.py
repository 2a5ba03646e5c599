"""Workspace-relative file tools: read_file, write_file, edit_file."""

from __future__ import annotations

import asyncio
import math
from pathlib import Path
from typing import Any

from nano_agent.core.types import ToolResult

MAX_READ_TOKENS = 32000


def resolve_path(workspace_dir: str | Path, target: str) -> Path:
    """Resolve `target` against the workspace unless it is already absolute."""

    p = Path(target).expanduser()
    if p.is_absolute():
        return p
    return (Path(workspace_dir) / p).resolve()


def truncate_text_by_tokens(text: str, max_tokens: int) -> str:
    """Keep head and tail of `text` when its estimated token count exceeds `max_tokens`.

    Tokens are estimated at 4 characters each; cuts are snapped to line boundaries.
    """

    if not text:
        return text

    estimated = max(1, math.ceil(len(text) / 4))
    if estimated <= max_tokens:
        return text

    ratio = estimated / len(text)
    chars_per_half = max(1, int((max_tokens / 2 / ratio) * 0.95))

    head = text[:chars_per_half]
    cut = head.rfind("\n")
    if cut > 0:
        head = head[:cut]

    tail = text[-chars_per_half:]
    cut = tail.find("\n")
    if cut > 0:
        tail = tail[cut + 1 :]

    note = f"\n\n... [Content truncated: ~{estimated} tokens -> ~{max_tokens} tokens limit] ...\n\n"
    return head + note + tail


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return int(value)
    return None


class ReadTool:
    name = "read_file"
    description = (
        "Read file contents from the filesystem. Output always includes line numbers "
        "in format 'LINE_NUMBER|LINE_CONTENT' (1-indexed). Supports reading partial content "
        "by specifying line offset and limit for large files."
    )
    parameters = {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Absolute or relative path to the file"},
            "offset": {
                "type": "integer",
                "description": "Starting line number (1-indexed). Use for large files to read from specific line",
            },
            "limit": {
                "type": "integer",
                "description": "Number of lines to read. Use with offset for large files to read in chunks",
            },
        },
        "required": ["path"],
    }

    def __init__(self, workspace_dir: str | Path = ".") -> None:
        self._workspace_dir = Path(workspace_dir)

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        raw_path = str(arguments.get("path", ""))
        target = resolve_path(self._workspace_dir, raw_path)
        if not target.is_file():
            return ToolResult.fail(f"File not found: {raw_path}")

        try:
            text = await asyncio.to_thread(target.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return ToolResult.fail(str(e))

        lines = text.split("\n")
        offset = _as_int(arguments.get("offset"))
        limit = _as_int(arguments.get("limit"))

        start = max(0, offset - 1) if offset else 0
        end = min(len(lines), start + limit) if limit else len(lines)

        numbered = [f"{start + i + 1:6d}|{line}" for i, line in enumerate(lines[start:end])]
        return ToolResult.ok(truncate_text_by_tokens("\n".join(numbered), MAX_READ_TOKENS))


class WriteTool:
    name = "write_file"
    description = (
        "Write content to a file. Will overwrite existing files completely. "
        "For existing files, you should read the file first using read_file. "
        "Prefer editing existing files over creating new ones unless explicitly needed."
    )
    parameters = {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Absolute or relative path to the file"},
            "content": {"type": "string", "description": "Complete content to write (will replace existing content)"},
        },
        "required": ["path", "content"],
    }

    def __init__(self, workspace_dir: str | Path = ".") -> None:
        self._workspace_dir = Path(workspace_dir)

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        target = resolve_path(self._workspace_dir, str(arguments.get("path", "")))
        content = arguments.get("content")
        content = "" if content is None else str(content)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            return ToolResult.fail(str(e))
        return ToolResult.ok(f"Successfully wrote to {target}")


class EditTool:
    name = "edit_file"
    description = (
        "Perform exact string replacement in a file. The old_str must match exactly "
        "and appear uniquely in the file, otherwise the operation will fail. "
        "You must read the file first before editing. Preserve exact indentation from the source."
    )
    parameters = {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Absolute or relative path to the file"},
            "old_str": {"type": "string", "description": "Exact string to find and replace (must be unique in file)"},
            "new_str": {"type": "string", "description": "Replacement string"},
        },
        "required": ["path", "old_str", "new_str"],
    }

    def __init__(self, workspace_dir: str | Path = ".") -> None:
        self._workspace_dir = Path(workspace_dir)

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        raw_path = str(arguments.get("path", ""))
        target = resolve_path(self._workspace_dir, raw_path)
        old_str = str(arguments.get("old_str", ""))
        new_str = str(arguments.get("new_str", ""))

        if not target.is_file():
            return ToolResult.fail(f"File not found: {raw_path}")
        if not old_str:
            return ToolResult.fail("old_str must be a non-empty string")

        try:
            text = await asyncio.to_thread(target.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return ToolResult.fail(str(e))

        count = text.count(old_str)
        if count == 0:
            return ToolResult.fail(f"Text not found in file: {old_str}")
        if count > 1:
            return ToolResult.fail(
                f"Text appears {count} times in file; old_str must be unique. Add surrounding context."
            )

        try:
            await asyncio.to_thread(target.write_text, text.replace(old_str, new_str, 1), encoding="utf-8")
        except OSError as e:
            return ToolResult.fail(str(e))
        return ToolResult.ok(f"Successfully edited {target}")
