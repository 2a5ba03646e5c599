from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import yaml
from typing_extensions import NotRequired, TypedDict

from nano_agent.core.config import McpTimeoutConfig, expand_env
from nano_agent.core.errors import ConfigError
from nano_agent.observability.logging import get_logger

Transport = Literal["stdio", "sse", "streamable_http"]

_TRANSPORT_ALIASES: dict[str, Transport] = {
    "stdio": "stdio",
    "sse": "sse",
    "http": "streamable_http",
    "streamable_http": "streamable_http",
}


class McpServerSpec(TypedDict):
    """One entry of the `mcpServers` mapping, as written in mcp.json."""

    type: NotRequired[str]
    command: NotRequired[str]
    args: NotRequired[list[str]]
    cwd: NotRequired[str]
    env: NotRequired[dict[str, str]]
    url: NotRequired[str]
    headers: NotRequired[dict[str, str]]
    connect_timeout: NotRequired[float]
    execute_timeout: NotRequired[float]
    sse_read_timeout: NotRequired[float]
    disabled: NotRequired[bool]


@dataclass(frozen=True, slots=True)
class McpServerConfig:
    """A validated remote endpoint.

    Per-endpoint timeouts are optional; `resolve_timeouts` fills the gaps from
    the process-wide defaults.
    """

    name: str
    transport: Transport = "stdio"
    command: str | None = None
    args: list[str] = field(default_factory=list)
    cwd: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    connect_timeout: float | None = None
    execute_timeout: float | None = None
    sse_read_timeout: float | None = None

    def resolve_timeouts(self, defaults: McpTimeoutConfig) -> McpTimeoutConfig:
        return McpTimeoutConfig(
            connect_timeout=self.connect_timeout if self.connect_timeout is not None else defaults.connect_timeout,
            execute_timeout=self.execute_timeout if self.execute_timeout is not None else defaults.execute_timeout,
            sse_read_timeout=self.sse_read_timeout if self.sse_read_timeout is not None else defaults.sse_read_timeout,
        )


def _str_map(value: Any, *, path: str) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError("must be a mapping", path=path)
    return {str(k): str(v) for k, v in value.items()}


def _timeout(value: Any, *, path: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError("must be a positive number", path=path)
    return float(value)


def infer_transport(spec: McpServerSpec | dict[str, Any]) -> Transport:
    """Declared `type` wins; otherwise a bare `url` means streamable HTTP."""

    declared = spec.get("type")
    if isinstance(declared, str) and declared.strip():
        transport = _TRANSPORT_ALIASES.get(declared.strip().lower())
        if transport is not None:
            return transport
    return "streamable_http" if spec.get("url") else "stdio"


def server_config_from_dict(name: str, spec: McpServerSpec | dict[str, Any]) -> McpServerConfig:
    base = f"mcpServers.{name}"
    transport = infer_transport(spec)

    command = spec.get("command")
    url = spec.get("url")
    if transport == "stdio" and not (isinstance(command, str) and command):
        raise ConfigError("stdio servers need a non-empty 'command'", path=base)
    if transport != "stdio" and not (isinstance(url, str) and url):
        raise ConfigError(f"{transport} servers need a non-empty 'url'", path=base)

    args = spec.get("args") or []
    if not isinstance(args, list):
        raise ConfigError("must be a list", path=f"{base}.args")

    cwd = spec.get("cwd")
    return McpServerConfig(
        name=name,
        transport=transport,
        command=command if transport == "stdio" else None,
        args=[str(a) for a in args],
        cwd=str(cwd) if cwd else None,
        env=_str_map(spec.get("env"), path=f"{base}.env"),
        url=url if transport != "stdio" else None,
        headers=_str_map(spec.get("headers"), path=f"{base}.headers"),
        connect_timeout=_timeout(spec.get("connect_timeout"), path=f"{base}.connect_timeout"),
        execute_timeout=_timeout(spec.get("execute_timeout"), path=f"{base}.execute_timeout"),
        sse_read_timeout=_timeout(spec.get("sse_read_timeout"), path=f"{base}.sse_read_timeout"),
    )


def load_server_configs(path: str | Path) -> list[McpServerConfig]:
    """Read the `mcpServers` mapping from a JSON or YAML file.

    A missing file means no servers. `${VAR}` placeholders are expanded per
    entry. Disabled and invalid entries are skipped with a log line; a file
    that cannot be parsed at all is a ConfigError.
    """

    log = get_logger("nano_agent.mcp")
    config_path = Path(path)
    if not config_path.is_file():
        log.info("mcp_config_missing", path=str(config_path))
        return []

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"parse failed: {e}", path=str(config_path)) from e
    if not isinstance(raw, dict):
        raise ConfigError("top level must be a mapping", path=str(config_path))

    servers = raw.get("mcpServers") or {}
    if not isinstance(servers, dict):
        raise ConfigError("must be a mapping", path="mcpServers")

    out: list[McpServerConfig] = []
    for name, spec in servers.items():
        if not isinstance(spec, dict):
            log.warning("mcp_server_invalid", server=name, error="entry must be a mapping")
            continue
        if spec.get("disabled"):
            log.info("mcp_server_disabled", server=name)
            continue
        try:
            expanded = expand_env(spec, path=f"mcpServers.{name}")
            out.append(server_config_from_dict(str(name), expanded))
        except ConfigError as e:
            log.warning("mcp_server_invalid", server=name, error=str(e))
    return out
