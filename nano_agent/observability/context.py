from __future__ import annotations

from contextvars import ContextVar


_run_id: ContextVar[str | None] = ContextVar("run_id", default=None)
_step: ContextVar[int | None] = ContextVar("step", default=None)
_state: ContextVar[str | None] = ContextVar("state", default=None)


def bind_run(*, run_id: str) -> None:
    _run_id.set(run_id)
    _step.set(None)
    _state.set(None)


def set_step(step: int) -> None:
    _step.set(step)


def set_state(state: str) -> None:
    _state.set(state)


def snapshot() -> dict[str, object]:
    """Return a snapshot of current observability context for logging."""

    out: dict[str, object] = {}
    if (v := _run_id.get()) is not None:
        out["run_id"] = v
    if (v := _step.get()) is not None:
        out["step"] = v
    if (v := _state.get()) is not None:
        out["state"] = v
    return out
