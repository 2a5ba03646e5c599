"""Shell tools: foreground/background `bash`, `bash_output` and `bash_kill`.

Background shells are owned by a `BackgroundShellManager` that the runtime
creates once and hands to the tools; `shutdown()` terminates whatever is left.
"""

from __future__ import annotations

import asyncio
import os
import re
import signal
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from nano_agent.core.types import ToolResult
from nano_agent.observability.ids import new_bash_id
from nano_agent.observability.logging import get_logger

DEFAULT_TIMEOUT_S = 120
MAX_TIMEOUT_S = 600
KILL_GRACE_S = 5.0
READ_CHUNK_BYTES = 65536

ShellStatus = Literal["running", "completed", "failed", "terminated", "error"]


def _clamp_timeout(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_TIMEOUT_S
    return int(min(max(value, 1), MAX_TIMEOUT_S))


def signal_group(process: asyncio.subprocess.Process, sig: int) -> None:
    """Signal the command's whole process group (commands run in their own session).

    The group can outlive the shell itself, so this is sent even after the
    shell has exited; an empty group is ignored.
    """

    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        pass


async def drain(stream: asyncio.StreamReader, buf: bytearray) -> None:
    """Copy `stream` into `buf` until EOF, chunk by chunk, with no line-length limit."""

    while chunk := await stream.read(READ_CHUNK_BYTES):
        buf.extend(chunk)


def _decode_line(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r")


def format_bash_content(*, stdout: str, stderr: str, exit_code: int, bash_id: str | None) -> str:
    parts: list[str] = []
    if stdout:
        parts.append(stdout)
    if stderr:
        parts.append(f"[stderr]:\n{stderr}")
    if bash_id:
        parts.append(f"[bash_id]:\n{bash_id}")
    if exit_code:
        parts.append(f"[exit_code]:\n{exit_code}")
    return "\n".join(parts) or "(no output)"


def bash_result(
    *,
    success: bool,
    stdout: str = "",
    stderr: str = "",
    exit_code: int = 0,
    bash_id: str | None = None,
    error: str | None = None,
) -> ToolResult:
    content = format_bash_content(stdout=stdout, stderr=stderr, exit_code=exit_code, bash_id=bash_id)
    extra = {"stdout": stdout, "stderr": stderr, "exit_code": exit_code, "bash_id": bash_id}
    if success:
        return ToolResult.ok(content, **extra)
    return ToolResult.fail(error or "Command failed", content=content, **extra)


@dataclass(slots=True)
class BackgroundShell:
    """A detached shell process plus its append-only output buffer.

    Reader tasks only ever append to `lines`; consumers only advance `read_index`.
    """

    bash_id: str
    command: str
    process: asyncio.subprocess.Process
    lines: list[str] = field(default_factory=list)
    read_index: int = 0
    status: ShellStatus = "running"
    exit_code: int | None = None
    _tasks: list[asyncio.Task[None]] = field(default_factory=list)

    def start_readers(self) -> None:
        assert self.process.stdout is not None and self.process.stderr is not None
        self._tasks = [
            asyncio.create_task(self._pump(self.process.stdout)),
            asyncio.create_task(self._pump(self.process.stderr)),
        ]
        self._tasks.append(asyncio.create_task(self._watch()))

    async def _pump(self, stream: asyncio.StreamReader) -> None:
        # Fixed-size reads: a single line may be arbitrarily long.
        pending = bytearray()
        while chunk := await stream.read(READ_CHUNK_BYTES):
            pending.extend(chunk)
            cut = pending.rfind(b"\n")
            if cut == -1:
                continue
            complete = bytes(pending[:cut])
            del pending[: cut + 1]
            self.lines.extend(_decode_line(raw) for raw in complete.split(b"\n"))
        if pending:
            self.lines.append(_decode_line(bytes(pending)))

    async def _watch(self) -> None:
        code = await self.process.wait()
        # Let the pumps drain so the final lines land before the status flips.
        await asyncio.gather(*self._tasks[:2], return_exceptions=True)
        self.exit_code = code
        if self.status != "terminated":
            self.status = "completed" if code == 0 else "failed"

    def new_output(self, filter_str: str | None = None) -> list[str]:
        end = len(self.lines)
        fresh = self.lines[self.read_index : end]
        self.read_index = end

        if not filter_str:
            return fresh
        try:
            pattern = re.compile(filter_str)
        except re.error:
            return fresh
        return [line for line in fresh if pattern.search(line)]

    async def terminate(self, grace_s: float = KILL_GRACE_S) -> None:
        if self.process.returncode is None:
            signal_group(self.process, signal.SIGTERM)
            try:
                await asyncio.wait_for(self.process.wait(), timeout=grace_s)
            except TimeoutError:
                pass
        # Also reaps children that still hold the output pipes after the shell exited.
        signal_group(self.process, signal.SIGKILL)
        await self.process.wait()
        self.status = "terminated"
        self.exit_code = self.process.returncode
        await asyncio.gather(*self._tasks, return_exceptions=True)


class BackgroundShellManager:
    """Registry of background shells, keyed by bash id."""

    def __init__(self) -> None:
        self._shells: dict[str, BackgroundShell] = {}
        self._log = get_logger("nano_agent.tools.bash")

    def add(self, shell: BackgroundShell) -> None:
        self._shells[shell.bash_id] = shell

    def get(self, bash_id: str) -> BackgroundShell | None:
        return self._shells.get(bash_id)

    def available_ids(self) -> list[str]:
        return list(self._shells.keys())

    def remove(self, bash_id: str) -> None:
        self._shells.pop(bash_id, None)

    async def terminate(self, bash_id: str) -> BackgroundShell:
        shell = self._shells.get(bash_id)
        if shell is None:
            raise KeyError(f"Shell not found: {bash_id}")
        await shell.terminate()
        self.remove(bash_id)
        self._log.info("bash_terminated", bash_id=bash_id, exit_code=shell.exit_code)
        return shell

    async def shutdown(self) -> None:
        for bash_id in list(self._shells):
            try:
                await self.terminate(bash_id)
            except Exception:  # noqa: BLE001
                self._log.exception("bash_shutdown_failed", bash_id=bash_id)

    def available_text(self) -> str:
        ids = self.available_ids()
        return ", ".join(ids) if ids else "none"


class BashTool:
    name = "bash"
    description = (
        "Execute bash commands in foreground or background.\n\n"
        "For terminal operations like git, npm, docker, etc. DO NOT use for file operations - "
        "use specialized tools.\n\n"
        "Parameters:\n"
        "  - command (required): Bash command to execute\n"
        "  - timeout (optional): Timeout in seconds (default: 120, max: 600) for foreground commands\n"
        "  - run_in_background (optional): Set true for long-running commands (servers, etc.)\n\n"
        "For background commands, monitor with bash_output and terminate with bash_kill."
    )
    parameters = {
        "type": "object",
        "properties": {
            "command": {
                "type": "string",
                "description": "The shell command to execute. Quote file paths with spaces using double quotes.",
            },
            "timeout": {
                "type": "integer",
                "description": "Optional: Timeout in seconds (default: 120, max: 600). Only applies to foreground commands.",
                "default": DEFAULT_TIMEOUT_S,
            },
            "run_in_background": {
                "type": "boolean",
                "description": "Optional: Set to true to run the command in the background. "
                "Monitor output with the bash_output tool.",
                "default": False,
            },
        },
        "required": ["command"],
    }

    def __init__(self, shells: BackgroundShellManager, *, workspace_dir: str | Path | None = None) -> None:
        self._shells = shells
        self._cwd = str(workspace_dir) if workspace_dir is not None else None
        self._log = get_logger("nano_agent.tools.bash")

    async def _spawn(self, command: str) -> asyncio.subprocess.Process:
        return await asyncio.create_subprocess_exec(
            "/bin/bash",
            "-lc",
            command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self._cwd,
            start_new_session=True,
        )

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        command = str(arguments.get("command", ""))
        timeout = _clamp_timeout(arguments.get("timeout", DEFAULT_TIMEOUT_S))

        if arguments.get("run_in_background"):
            return await self._run_background(command)

        process = await self._spawn(command)
        assert process.stdout is not None and process.stderr is not None
        out, err = bytearray(), bytearray()
        timed_out = False
        try:
            await asyncio.wait_for(
                asyncio.gather(process.wait(), drain(process.stdout, out), drain(process.stderr, err)),
                timeout=timeout,
            )
        except TimeoutError:
            timed_out = True
        finally:
            # Covers cancellation too: nothing in the group may outlive the call.
            if timed_out or process.returncode is None:
                signal_group(process, signal.SIGKILL)
                await process.wait()

        stdout = out.decode("utf-8", errors="replace")
        stderr = err.decode("utf-8", errors="replace")
        if timed_out:
            message = f"Command timed out after {timeout} seconds"
            return bash_result(
                success=False,
                stdout=stdout,
                stderr=stderr or message,
                exit_code=-1,
                error=f"{message}\n{stderr.strip()}" if stderr.strip() else message,
            )

        code = process.returncode if process.returncode is not None else -1
        if code != 0:
            message = f"Command failed with exit code {code}"
            return bash_result(
                success=False,
                stdout=stdout,
                stderr=stderr or message,
                exit_code=code,
                error=f"{message}\n{stderr.strip()}" if stderr.strip() else message,
            )
        return bash_result(success=True, stdout=stdout, stderr=stderr, exit_code=0)

    async def _run_background(self, command: str) -> ToolResult:
        bash_id = new_bash_id()
        process = await self._spawn(command)
        shell = BackgroundShell(bash_id=bash_id, command=command, process=process)
        shell.start_readers()
        self._shells.add(shell)
        self._log.info("bash_background_started", bash_id=bash_id, pid=process.pid)

        return bash_result(
            success=True,
            stdout=f"Background command started with ID: {bash_id}",
            bash_id=bash_id,
        )


class BashOutputTool:
    name = "bash_output"
    description = (
        "Retrieves output from a running or completed background bash shell.\n\n"
        "- Takes a bash_id parameter identifying the shell\n"
        "- Always returns only new output since the last check\n"
        "- Supports optional regex filtering to show only lines matching a pattern\n"
        "- Shell IDs can be found using the bash tool with run_in_background=true"
    )
    parameters = {
        "type": "object",
        "properties": {
            "bash_id": {
                "type": "string",
                "description": "The ID of the background shell to retrieve output from.",
            },
            "filter_str": {
                "type": "string",
                "description": "Optional regular expression to filter the output lines. "
                "Lines that do not match will no longer be available to read.",
            },
        },
        "required": ["bash_id"],
    }

    def __init__(self, shells: BackgroundShellManager) -> None:
        self._shells = shells

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        bash_id = str(arguments.get("bash_id", ""))
        shell = self._shells.get(bash_id)
        if shell is None:
            return bash_result(
                success=False,
                exit_code=-1,
                bash_id=bash_id,
                error=f"Shell not found: {bash_id}. Available: {self._shells.available_text()}",
            )

        filter_str = arguments.get("filter_str")
        lines = shell.new_output(filter_str if isinstance(filter_str, str) else None)
        return bash_result(
            success=True,
            stdout="\n".join(lines),
            exit_code=shell.exit_code or 0,
            bash_id=bash_id,
        )


class BashKillTool:
    name = "bash_kill"
    description = (
        "Kills a running background bash shell by its ID.\n\n"
        "- Attempts graceful termination (SIGTERM) first, then forces (SIGKILL) if needed\n"
        "- Returns any remaining output before termination"
    )
    parameters = {
        "type": "object",
        "properties": {
            "bash_id": {
                "type": "string",
                "description": "The ID of the background shell to terminate.",
            },
        },
        "required": ["bash_id"],
    }

    def __init__(self, shells: BackgroundShellManager) -> None:
        self._shells = shells

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        bash_id = str(arguments.get("bash_id", ""))
        shell = self._shells.get(bash_id)
        remaining = shell.new_output() if shell is not None else []
        try:
            terminated = await self._shells.terminate(bash_id)
        except KeyError:
            message = f"Shell not found: {bash_id}"
            return bash_result(
                success=False,
                stderr=message,
                exit_code=-1,
                bash_id=bash_id,
                error=f"{message}. Available: {self._shells.available_text()}",
            )

        return bash_result(
            success=True,
            stdout="\n".join(remaining),
            exit_code=terminated.exit_code or 0,
            bash_id=bash_id,
        )
