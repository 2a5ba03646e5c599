from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")

Emit = Callable[[T], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class _Failure:
    error: BaseException


_END = object()


class EventChannel(Generic[T]):
    """Bounded producer/consumer channel driven by the consumer.

    The producer coroutine runs in its own task and receives an `emit` callable;
    with the default `maxsize=1` it can run at most one event ahead of the
    consumer. A producer exception is re-raised from `__anext__`. Closing the
    channel (`aclose`, or leaving `async with`) cancels the producer.
    """

    def __init__(self, producer: Callable[[Emit[T]], Awaitable[None]], *, maxsize: int = 1) -> None:
        self._producer = producer
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=max(1, maxsize))
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    def _ensure_started(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def _emit(self, item: T) -> None:
        await self._queue.put(item)

    async def _run(self) -> None:
        try:
            await self._producer(self._emit)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # noqa: BLE001
            await self._queue.put(_Failure(e))
            return
        await self._queue.put(_END)

    def __aiter__(self) -> EventChannel[T]:
        return self

    async def __anext__(self) -> T:
        if self._closed:
            raise StopAsyncIteration
        self._ensure_started()

        item = await self._queue.get()
        if item is _END:
            await self.aclose()
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            await self.aclose()
            raise item.error
        return item  # type: ignore[return-value]

    async def aclose(self) -> None:
        self._closed = True
        task, self._task = self._task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
            await asyncio.wait({task})
        # Suppress "exception was never retrieved" for a cancelled producer.
        if not task.cancelled():
            task.exception()

    async def __aenter__(self) -> EventChannel[T]:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
