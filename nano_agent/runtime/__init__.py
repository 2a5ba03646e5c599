"""Process lifecycle and the `nano-agent` console entrypoint."""

from __future__ import annotations

from .lifecycle import AppRuntime, install_signal_handlers, load_system_prompt, resolve_config_path

__all__ = ["AppRuntime", "install_signal_handlers", "load_system_prompt", "resolve_config_path"]
