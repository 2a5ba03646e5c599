from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Sequence, TextIO

from nano_agent.core.config import AppConfig, find_config_file, load_config
from nano_agent.core.errors import ConfigError, UnsupportedProviderError
from nano_agent.observability.logging import configure_logging, get_logger
from nano_agent.orchestrator.events import (
    AgentEvent,
    ContentDelta,
    RunDone,
    StepStart,
    ThinkingDelta,
    ToolResultEvent,
    ToolStart,
)

from .lifecycle import AppRuntime, install_signal_handlers

EXIT_WORDS = {"exit", "quit", "q"}
RESULT_PREVIEW_CHARS = 300


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nano-agent",
        description="LLM task agent with file, shell, skill and MCP tools",
    )
    parser.add_argument("--config", type=Path, help="Path to a YAML config file (default: search for config.yaml)")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (e.g. DEBUG, INFO, WARNING)")
    parser.add_argument("--log-file", type=Path, help="Also append JSON log lines to this file")
    parser.add_argument("--check", action="store_true", help="Check the LLM connection and exit")
    parser.add_argument("task", nargs="?", help="Run this task once; without it an interactive session starts")
    return parser


def render_event(ev: AgentEvent, out: TextIO = sys.stdout) -> None:
    """Plain-text rendering of the event stream."""

    if isinstance(ev, StepStart):
        out.write(f"\n[step {ev.step}/{ev.max_steps}]\n")
    elif isinstance(ev, ThinkingDelta):
        out.write(ev.text)
    elif isinstance(ev, ContentDelta):
        out.write(ev.text)
    elif isinstance(ev, ToolStart):
        args = json.dumps(ev.tool_call.arguments, ensure_ascii=False)
        out.write(f"\n-> {ev.tool_call.name} {args}\n")
    elif isinstance(ev, ToolResultEvent):
        res = ev.result
        text = res.content if res.success else f"Error: {res.error}"
        if len(text) > RESULT_PREVIEW_CHARS:
            text = text[:RESULT_PREVIEW_CHARS] + "..."
        out.write(f"{'ok' if res.success else 'failed'}: {text}\n")
    elif isinstance(ev, RunDone):
        if ev.exhausted:
            out.write(f"\n{ev.content}")
        out.write("\n")
    out.flush()


async def run_task(runtime: AppRuntime, task: str, out: TextIO = sys.stdout) -> int:
    """Run one task to completion; provider failures roll the turn back."""

    log = get_logger("nano_agent.cli")
    try:
        async with runtime.agent.stream(task) as events:
            async for ev in events:
                render_event(ev, out)
    except Exception as e:  # noqa: BLE001
        log.exception("run_failed")
        runtime.agent.rollback_failed_turn()
        sys.stderr.write(f"Error: {e}\n")
        return 1
    return 0


async def _stdin_reader() -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    return reader


async def _repl(runtime: AppRuntime) -> int:
    reader = await _stdin_reader()
    sys.stdout.write(f"nano-agent ({runtime.llm.provider_name}/{runtime.llm.model}). Type 'exit' to quit.\n")
    while True:
        sys.stdout.write("\n> ")
        sys.stdout.flush()
        raw = await reader.readline()
        if not raw:
            return 0
        line = raw.decode("utf-8", errors="replace").strip()
        if not line:
            continue
        if line.lower() in EXIT_WORDS:
            return 0
        await run_task(runtime, line)


async def _main_async(ns: argparse.Namespace, cfg: AppConfig) -> int:
    main_task = asyncio.current_task()
    assert main_task is not None
    remove_handlers = install_signal_handlers(main_task.cancel)

    runtime: AppRuntime | None = None
    try:
        runtime = await AppRuntime.create(cfg)
        if ns.check:
            ok = await runtime.llm.check_connection()
            sys.stdout.write(f"LLM connection: {'ok' if ok else 'failed'}\n")
            return 0 if ok else 1
        if ns.task:
            return await run_task(runtime, ns.task)
        return await _repl(runtime)
    except UnsupportedProviderError as e:
        get_logger("nano_agent.cli").error("config_error", error=str(e))
        sys.stderr.write(f"ConfigError: llm.provider: {e}\n")
        return 2
    except asyncio.CancelledError:
        return 130
    finally:
        remove_handlers()
        if runtime is not None:
            await runtime.shutdown()


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint referenced by pyproject.toml."""

    ns = _build_parser().parse_args(list(argv) if argv is not None else None)
    configure_logging(level=ns.log_level, log_file=ns.log_file)
    log = get_logger("nano_agent.cli")

    try:
        config_path = ns.config or find_config_file("config.yaml")
        if config_path is None:
            raise ConfigError(
                "no config.yaml found in ./config, ~/.nano-agent/config or the package config directory",
                path="config.yaml",
            )
        cfg = load_config(config_path)
        log.info("config_loaded", path=str(config_path))
    except ConfigError as e:
        log.error("config_error", error=str(e))
        sys.stderr.write(f"ConfigError: {e}\n")
        return 2

    try:
        return asyncio.run(_main_async(ns, cfg))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
