from __future__ import annotations

from .context import bind_run, set_state, set_step
from .logging import configure_logging, get_logger

__all__ = ["bind_run", "configure_logging", "get_logger", "set_state", "set_step"]
