from __future__ import annotations

from pathlib import Path

import pytest

from nano_agent.core.config import McpTimeoutConfig
from nano_agent.core.errors import ConfigError
from nano_agent.mcp_client import infer_transport, load_server_configs, server_config_from_dict


def _write(tmp_path: Path, text: str, name: str = "mcp.json") -> Path:
    p = tmp_path / name
    p.write_text(text.lstrip(), encoding="utf-8")
    return p


def test_missing_file_means_no_servers(tmp_path: Path) -> None:
    assert load_server_configs(tmp_path / "absent.json") == []


def test_json_servers_disabled_and_invalid_are_skipped(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SEARCH_TOKEN", "tok_123")
    monkeypatch.delenv("MISSING_TOKEN", raising=False)

    p = _write(
        tmp_path,
        """
{
  "mcpServers": {
    "fs": {"command": "npx", "args": ["-y", "server-filesystem"], "env": {"DEBUG": 1}},
    "search": {"url": "https://search.example/mcp", "headers": {"Authorization": "Bearer ${SEARCH_TOKEN}"}},
    "events": {"type": "sse", "url": "https://events.example/sse", "execute_timeout": 5},
    "off": {"command": "whatever", "disabled": true},
    "nocmd": {"type": "stdio"},
    "needs_env": {"url": "https://x.example", "headers": {"X": "${MISSING_TOKEN}"}}
  }
}
""",
    )

    configs = {c.name: c for c in load_server_configs(p)}

    assert sorted(configs) == ["events", "fs", "search"]
    assert configs["fs"].transport == "stdio"
    assert configs["fs"].args == ["-y", "server-filesystem"]
    assert configs["fs"].env == {"DEBUG": "1"}
    assert configs["search"].transport == "streamable_http"
    assert configs["search"].headers == {"Authorization": "Bearer tok_123"}
    assert configs["events"].transport == "sse"

    resolved = configs["events"].resolve_timeouts(McpTimeoutConfig(connect_timeout=3.0))
    assert resolved.execute_timeout == 5.0
    assert resolved.connect_timeout == 3.0


def test_yaml_file_is_accepted(tmp_path: Path) -> None:
    p = _write(
        tmp_path,
        """
mcpServers:
  local:
    command: python
    args: [server.py]
""",
        name="mcp.yaml",
    )

    [cfg] = load_server_configs(p)
    assert cfg.command == "python"


def test_unparseable_file_is_config_error(tmp_path: Path) -> None:
    p = _write(tmp_path, '{"mcpServers": [1, 2]}')

    with pytest.raises(ConfigError) as ei:
        load_server_configs(p)
    assert "mcpServers" in str(ei.value)


def test_transport_inference() -> None:
    assert infer_transport({"command": "x"}) == "stdio"
    assert infer_transport({"url": "https://a"}) == "streamable_http"
    assert infer_transport({"type": "http", "url": "https://a"}) == "streamable_http"
    assert infer_transport({"type": "SSE", "url": "https://a"}) == "sse"


def test_server_entry_validation() -> None:
    with pytest.raises(ConfigError) as ei:
        server_config_from_dict("web", {"type": "sse"})
    assert "mcpServers.web" in str(ei.value)
    assert "url" in str(ei.value)

    with pytest.raises(ConfigError) as ei:
        server_config_from_dict("bad", {"command": "x", "connect_timeout": 0})
    assert "mcpServers.bad.connect_timeout" in str(ei.value)
