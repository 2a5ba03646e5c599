"""Composition root: builds every long-lived object and owns their shutdown."""

from __future__ import annotations

import asyncio
import signal
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from nano_agent.core.config import AppConfig, find_config_file
from nano_agent.llm.client import LLMClient
from nano_agent.mcp_client.connection import SessionOpener, open_session
from nano_agent.mcp_client.manager import McpConnectionManager
from nano_agent.observability.logging import get_logger
from nano_agent.orchestrator.agent import DEFAULT_SYSTEM_PROMPT, Agent
from nano_agent.skills import GetSkillTool, SkillLoader
from nano_agent.tools import (
    BackgroundShellManager,
    BashKillTool,
    BashOutputTool,
    BashTool,
    EditTool,
    ReadTool,
    ToolRegistry,
    WriteTool,
)


def resolve_config_path(value: str) -> Path | None:
    """A path that exists as given wins; otherwise look it up by file name."""

    p = Path(value).expanduser()
    if p.is_file():
        return p
    return find_config_file(p.name)


def load_system_prompt(value: str) -> str:
    path = resolve_config_path(value)
    if path is None:
        get_logger("nano_agent.runtime").info("system_prompt_default", path=value)
        return DEFAULT_SYSTEM_PROMPT
    return path.read_text(encoding="utf-8")


@dataclass
class AppRuntime:
    config: AppConfig
    llm: LLMClient
    tools: ToolRegistry
    shells: BackgroundShellManager
    mcp: McpConnectionManager
    agent: Agent
    skills: SkillLoader | None = None
    _closed: bool = field(default=False, repr=False)

    @classmethod
    async def create(
        cls,
        config: AppConfig,
        *,
        llm: LLMClient | None = None,
        mcp_opener: SessionOpener = open_session,
    ) -> AppRuntime:
        log = get_logger("nano_agent.runtime")
        tools_cfg = config.tools

        # Built first so an unknown provider fails before any MCP session is opened.
        client = llm or LLMClient(config.llm, config.retry)

        workspace = Path(config.agent.workspace_dir).expanduser().resolve()
        workspace.mkdir(parents=True, exist_ok=True)

        registry = ToolRegistry()
        shells = BackgroundShellManager()
        mcp = McpConnectionManager(timeouts=tools_cfg.mcp, retry=config.retry, opener=mcp_opener)

        if tools_cfg.enable_file_tools:
            for tool in (ReadTool(workspace), WriteTool(workspace), EditTool(workspace)):
                registry.register(tool)

        if tools_cfg.enable_bash:
            registry.register(BashTool(shells, workspace_dir=workspace))
            registry.register(BashOutputTool(shells))
            registry.register(BashKillTool(shells))

        skills: SkillLoader | None = None
        skills_prompt = ""
        if tools_cfg.enable_skills:
            skills = SkillLoader(Path(tools_cfg.skills_dir).expanduser())
            if skills.discover():
                registry.register(GetSkillTool(skills))
                skills_prompt = skills.metadata_prompt()

        if tools_cfg.enable_mcp:
            mcp_path = resolve_config_path(tools_cfg.mcp_config_path)
            if mcp_path is None:
                log.info("mcp_config_missing", path=tools_cfg.mcp_config_path)
            else:
                for tool in await mcp.load(mcp_path):
                    registry.register(tool)

        agent = Agent(
            llm=client,
            tools=registry,
            system_prompt=load_system_prompt(config.agent.system_prompt_path),
            max_steps=config.agent.max_steps,
            workspace_dir=workspace,
            skills_prompt=skills_prompt,
        )

        log.info(
            "runtime_ready",
            provider=config.llm.provider,
            model=config.llm.model,
            tools=registry.names(),
            workspace=str(workspace),
        )
        return cls(
            config=config,
            llm=client,
            tools=registry,
            shells=shells,
            mcp=mcp,
            agent=agent,
            skills=skills,
        )

    async def shutdown(self) -> None:
        """Close MCP connections and kill background shells. Safe to call twice."""

        if self._closed:
            return
        self._closed = True
        log = get_logger("nano_agent.runtime")
        try:
            await self.mcp.shutdown()
        finally:
            await self.shells.shutdown()
        log.info("runtime_stopped")


def install_signal_handlers(on_signal: Callable[[], None]) -> Callable[[], None]:
    """Route SIGINT/SIGTERM to `on_signal`; returns a function that undoes it."""

    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, on_signal)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform or outside the main thread.
            continue

    def remove() -> None:
        for sig in installed:
            loop.remove_signal_handler(sig)

    return remove
