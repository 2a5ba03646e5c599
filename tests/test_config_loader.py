from __future__ import annotations

from pathlib import Path

import pytest

from nano_agent.core.config import find_config_file, load_config, package_dir
from nano_agent.core.errors import ConfigError


def test_load_config_expands_env_vars(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NANO_AGENT_API_KEY", "abc123")

    cfg_path = tmp_path / "app.yaml"
    cfg_path.write_text(
        """
llm:
  api_key: ${NANO_AGENT_API_KEY}
  api_base: https://example.invalid/v1/
  model: some-model
  provider: Anthropic
agent:
  workspace_dir: ./ws-${NANO_AGENT_API_KEY}
""".lstrip(),
        encoding="utf-8",
    )

    cfg = load_config(cfg_path, load_dotenv_file=False)
    assert cfg.llm.api_key.get_secret_value() == "abc123"
    assert cfg.llm.api_base == "https://example.invalid/v1"
    assert cfg.llm.provider == "anthropic"
    assert cfg.agent.workspace_dir == "./ws-abc123"
    assert "abc123" not in repr(cfg.llm)


def test_load_config_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NANO_AGENT_API_KEY", raising=False)

    cfg_path = tmp_path / "app.yaml"
    cfg_path.write_text("llm:\n  api_key: sk-real\n", encoding="utf-8")

    cfg = load_config(cfg_path, load_dotenv_file=False)
    assert cfg.llm.api_base is None
    assert cfg.llm.provider == "openai"
    assert cfg.retry.enabled is True
    assert cfg.retry.max_retries == 3
    assert cfg.agent.max_steps == 50
    assert cfg.tools.enable_mcp is True
    assert cfg.tools.mcp.connect_timeout == 10.0


def test_load_config_missing_env_var_is_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NANO_AGENT_API_KEY", raising=False)

    cfg_path = tmp_path / "app.yaml"
    cfg_path.write_text(
        """
llm:
  api_key: ${NANO_AGENT_API_KEY}
""".lstrip(),
        encoding="utf-8",
    )

    with pytest.raises(ConfigError) as ei:
        load_config(cfg_path, load_dotenv_file=False)

    msg = str(ei.value)
    assert "NANO_AGENT_API_KEY" in msg
    assert "missing" in msg
    assert ei.value.path == "llm.api_key"


def test_load_config_empty_env_var_is_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NANO_AGENT_API_KEY", "")

    cfg_path = tmp_path / "app.yaml"
    cfg_path.write_text(
        """
llm:
  api_key: ${NANO_AGENT_API_KEY}
""".lstrip(),
        encoding="utf-8",
    )

    with pytest.raises(ConfigError) as ei:
        load_config(cfg_path, load_dotenv_file=False)

    msg = str(ei.value)
    assert "NANO_AGENT_API_KEY" in msg
    assert "empty" in msg


@pytest.mark.parametrize(
    ("body", "fragment"),
    [
        ("llm:\n  api_key: YOUR_API_KEY_HERE\n", "llm.api_key"),
        ("llm:\n  api_key: k\n  max_tokens: 4096\n  thinking_budget: 4096\n", "llm.thinking_budget"),
        ("llm:\n  api_key: k\n  thinking_budget: 0\n", "llm.thinking_budget"),
        ("llm:\n  api_key: k\nagent:\n  max_steps: 0\n", "agent.max_steps"),
        ("llm:\n  api_key: k\nretry:\n  max_retries: -1\n", "retry.max_retries"),
        ("llm:\n  api_key: k\ntools:\n  mcp:\n    execute_timeout: 0\n", "tools.mcp.execute_timeout"),
        ("llm: [1, 2]\n", "llm"),
        ("- just\n- a list\n", "top level"),
    ],
)
def test_load_config_rejects_invalid_values(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, body: str, fragment: str
) -> None:
    monkeypatch.delenv("NANO_AGENT_API_KEY", raising=False)
    cfg_path = tmp_path / "app.yaml"
    cfg_path.write_text(body, encoding="utf-8")

    with pytest.raises(ConfigError) as ei:
        load_config(cfg_path, load_dotenv_file=False)
    assert fragment in str(ei.value)


def test_api_key_falls_back_to_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NANO_AGENT_API_KEY", "from-env")
    cfg_path = tmp_path / "app.yaml"
    cfg_path.write_text("llm:\n  model: m\n", encoding="utf-8")

    cfg = load_config(cfg_path, load_dotenv_file=False)
    assert cfg.llm.api_key.get_secret_value() == "from-env"


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError) as ei:
        load_config(tmp_path / "nope.yaml", load_dotenv_file=False)
    assert "does not exist" in str(ei.value)


def test_find_config_file_prefers_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))

    (tmp_path / "config").mkdir()
    local = tmp_path / "config" / "system_prompt.md"
    local.write_text("local", encoding="utf-8")

    assert find_config_file("system_prompt.md") == local
    local.unlink()
    assert find_config_file("system_prompt.md") == package_dir() / "config" / "system_prompt.md"
    assert find_config_file("does-not-exist.yaml") is None


def test_thinking_budget_below_max_tokens_is_kept(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NANO_AGENT_API_KEY", raising=False)
    cfg_path = tmp_path / "app.yaml"
    cfg_path.write_text("llm:\n  api_key: k\n  max_tokens: 4096\n  thinking_budget: 1024\n", encoding="utf-8")

    cfg = load_config(cfg_path, load_dotenv_file=False)
    assert cfg.llm.thinking_budget == 1024
    assert cfg.llm.max_tokens == 4096


def test_provider_is_not_checked_by_the_loader(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NANO_AGENT_API_KEY", raising=False)
    cfg_path = tmp_path / "app.yaml"
    cfg_path.write_text("llm:\n  api_key: k\n  provider: Gemini\n", encoding="utf-8")

    assert load_config(cfg_path, load_dotenv_file=False).llm.provider == "gemini"
