"""Exponential backoff for fallible async operations.

Callers decide whether retry applies at all (`RetryConfig.enabled`); this module
always performs exactly `max_retries + 1` attempts at most.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from .config import RetryConfig
from .errors import NanoAgentError

T = TypeVar("T")

RetryCallback = Callable[[BaseException, int], None]


class RetryExhaustedError(NanoAgentError):
    def __init__(self, last_error: BaseException, attempts: int):
        super().__init__(f"Retry failed after {attempts} attempts. Last error: {last_error}")
        self.last_error = last_error
        self.attempts = attempts


def calculate_delay(retry_number: int, config: RetryConfig) -> float:
    """Delay in seconds before retry `retry_number` (1-indexed)."""

    if retry_number < 1:
        raise ValueError("retry_number must be >= 1")
    delay = config.initial_delay * (config.exponential_base ** (retry_number - 1))
    return min(delay, config.max_delay)


async def async_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig,
    on_retry: RetryCallback | None = None,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    last_error: BaseException | None = None
    total_attempts = max(0, int(config.max_retries)) + 1

    for attempt in range(1, total_attempts + 1):
        try:
            return await operation()
        except Exception as e:  # noqa: BLE001
            last_error = e
            if attempt == total_attempts:
                break
            if on_retry is not None:
                on_retry(e, attempt)
            await sleep(calculate_delay(attempt, config))

    assert last_error is not None
    raise RetryExhaustedError(last_error, total_attempts) from last_error
