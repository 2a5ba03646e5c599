from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import SecretStr

from .errors import ConfigError

# re-export for contract/tests
__all__ = [
    "AgentConfig",
    "AppConfig",
    "ConfigError",
    "LLMConfig",
    "McpTimeoutConfig",
    "RetryConfig",
    "ToolsConfig",
    "expand_env",
    "find_config_file",
    "load_config",
]

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_PLACEHOLDER_KEYS = {"", "YOUR_API_KEY_HERE"}


def _expand_env_in_str(value: str, *, path: str) -> str:
    def repl(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in os.environ:
            raise ConfigError(f"environment variable {key!r} is missing", path=path)
        if os.environ[key] == "":
            raise ConfigError(f"environment variable {key!r} is empty", path=path)
        return os.environ[key]

    return _ENV_PATTERN.sub(repl, value)


def expand_env(obj: Any, *, path: str) -> Any:
    if isinstance(obj, str):
        return _expand_env_in_str(obj, path=path)
    if isinstance(obj, list):
        return [expand_env(v, path=path) for v in obj]
    if isinstance(obj, dict):
        return {k: expand_env(v, path=f"{path}.{k}" if path else str(k)) for k, v in obj.items()}
    return obj


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError("must be a mapping", path=key)
    return value


@dataclass(frozen=True)
class RetryConfig:
    enabled: bool = True
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0


@dataclass(frozen=True)
class LLMConfig:
    api_key: SecretStr
    # None means the provider SDK default endpoint.
    api_base: str | None = None
    model: str = "gpt-4o-mini"
    provider: str = "openai"
    timeout_s: float = 120.0
    max_tokens: int = 4096
    # Anthropic extended thinking; None disables it.
    thinking_budget: int | None = None
    # OpenAI-compatible gateways that split reasoning into `reasoning_details`.
    reasoning_split: bool = False


@dataclass(frozen=True)
class AgentConfig:
    max_steps: int = 50
    workspace_dir: str = "./workspace"
    system_prompt_path: str = "system_prompt.md"


@dataclass(frozen=True)
class McpTimeoutConfig:
    connect_timeout: float = 10.0
    execute_timeout: float = 60.0
    sse_read_timeout: float = 120.0


@dataclass(frozen=True)
class ToolsConfig:
    enable_file_tools: bool = True
    enable_bash: bool = True
    enable_skills: bool = True
    skills_dir: str = "./skills"
    enable_mcp: bool = True
    mcp_config_path: str = "mcp.json"
    mcp: McpTimeoutConfig = field(default_factory=McpTimeoutConfig)


@dataclass(frozen=True)
class AppConfig:
    llm: LLMConfig
    retry: RetryConfig = field(default_factory=RetryConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)


def package_dir() -> Path:
    return Path(__file__).resolve().parents[1]


def find_config_file(filename: str) -> Path | None:
    """Locate a config file by name.

    Search order: ./config/, ~/.nano-agent/config/, then the installed package's config/.
    """

    candidates = [
        Path.cwd() / "config" / filename,
        Path.home() / ".nano-agent" / "config" / filename,
        package_dir() / "config" / filename,
    ]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def _parse_retry(raw: dict[str, Any]) -> RetryConfig:
    retry = RetryConfig(
        enabled=bool(raw.get("enabled", RetryConfig.enabled)),
        max_retries=int(raw.get("max_retries", RetryConfig.max_retries)),
        initial_delay=float(raw.get("initial_delay", RetryConfig.initial_delay)),
        max_delay=float(raw.get("max_delay", RetryConfig.max_delay)),
        exponential_base=float(raw.get("exponential_base", RetryConfig.exponential_base)),
    )
    if retry.max_retries < 0:
        raise ConfigError("must be >= 0", path="retry.max_retries")
    if retry.initial_delay < 0 or retry.max_delay < 0:
        raise ConfigError("delays must be >= 0", path="retry")
    return retry


def _parse_llm(raw: dict[str, Any]) -> LLMConfig:
    api_key = raw.get("api_key")
    if api_key is None or api_key == "":
        api_key = os.getenv("NANO_AGENT_API_KEY")
    if not isinstance(api_key, str) or api_key.strip() in _PLACEHOLDER_KEYS:
        raise ConfigError("must be a valid API key (or set NANO_AGENT_API_KEY)", path="llm.api_key")

    # Unknown providers are rejected by the provider registry when the client is built.
    provider = str(raw.get("provider", LLMConfig.provider)).lower()

    api_base = raw.get("api_base")
    max_tokens = int(raw.get("max_tokens", LLMConfig.max_tokens))
    thinking_budget = raw.get("thinking_budget")
    if thinking_budget is not None:
        thinking_budget = int(thinking_budget)
        if not 0 < thinking_budget < max_tokens:
            raise ConfigError(f"must be > 0 and below llm.max_tokens ({max_tokens})", path="llm.thinking_budget")
    return LLMConfig(
        api_key=SecretStr(api_key),
        api_base=str(api_base).rstrip("/") if api_base else None,
        model=str(raw.get("model", LLMConfig.model)),
        provider=provider,
        timeout_s=float(raw.get("timeout_s", LLMConfig.timeout_s)),
        max_tokens=max_tokens,
        thinking_budget=thinking_budget,
        reasoning_split=bool(raw.get("reasoning_split", LLMConfig.reasoning_split)),
    )


def _parse_tools(raw: dict[str, Any]) -> ToolsConfig:
    mcp_raw = raw.get("mcp") if isinstance(raw.get("mcp"), dict) else {}
    timeouts = McpTimeoutConfig(
        connect_timeout=float(mcp_raw.get("connect_timeout", McpTimeoutConfig.connect_timeout)),
        execute_timeout=float(mcp_raw.get("execute_timeout", McpTimeoutConfig.execute_timeout)),
        sse_read_timeout=float(mcp_raw.get("sse_read_timeout", McpTimeoutConfig.sse_read_timeout)),
    )
    for name in ("connect_timeout", "execute_timeout", "sse_read_timeout"):
        if getattr(timeouts, name) <= 0:
            raise ConfigError("must be > 0", path=f"tools.mcp.{name}")

    return ToolsConfig(
        enable_file_tools=bool(raw.get("enable_file_tools", ToolsConfig.enable_file_tools)),
        enable_bash=bool(raw.get("enable_bash", ToolsConfig.enable_bash)),
        enable_skills=bool(raw.get("enable_skills", ToolsConfig.enable_skills)),
        skills_dir=str(raw.get("skills_dir", ToolsConfig.skills_dir)),
        enable_mcp=bool(raw.get("enable_mcp", ToolsConfig.enable_mcp)),
        mcp_config_path=str(raw.get("mcp_config_path", ToolsConfig.mcp_config_path)),
        mcp=timeouts,
    )


def load_config(path: str | Path, *, load_dotenv_file: bool = True) -> AppConfig:
    """Load YAML config and expand ${ENV_VAR}."""

    # Local dev: allow injecting secrets from .env (do not commit it).
    if load_dotenv_file:
        load_dotenv(override=False)

    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError("config file does not exist", path=str(config_path))

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML parse failed: {e}", path=str(config_path)) from e

    if not isinstance(raw, dict):
        raise ConfigError("top level must be a YAML mapping", path=str(config_path))

    expanded = expand_env(raw, path="")

    agent_raw = _section(expanded, "agent")
    agent = AgentConfig(
        max_steps=int(agent_raw.get("max_steps", AgentConfig.max_steps)),
        workspace_dir=str(agent_raw.get("workspace_dir", AgentConfig.workspace_dir)),
        system_prompt_path=str(agent_raw.get("system_prompt_path", AgentConfig.system_prompt_path)),
    )
    if agent.max_steps < 1:
        raise ConfigError("must be >= 1", path="agent.max_steps")

    return AppConfig(
        llm=_parse_llm(_section(expanded, "llm")),
        retry=_parse_retry(_section(expanded, "retry")),
        agent=agent,
        tools=_parse_tools(_section(expanded, "tools")),
    )
