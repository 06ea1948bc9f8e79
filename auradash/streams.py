"""Revocable async streams and latest-value channels."""

# purpose: carry ordered snapshot sequences from producers to single-loop consumers
# inputs: values pushed by store adapters and sync engines
# outputs: async iterators that end on close and raise on producer failure
# status: pilot

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Generic, Optional, TypeVar

T = TypeVar("T")

_logger = logging.getLogger(__name__)
_close_tasks: set[asyncio.Task] = set()

_VALUE = "value"
_ERROR = "error"
_END = "end"


class Stream(Generic[T]):
    """Queue-backed async iterator of snapshot values.

    Producers call :meth:`push` and :meth:`fail`; the consumer iterates with
    ``async for`` and revokes the stream with :meth:`close`. Iteration stops
    after close and raises the failure passed to :meth:`fail`.
    """

    def __init__(self, on_close: Optional[Callable[[], Any]] = None) -> None:
        self._queue: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()
        self._on_close = on_close
        self._closed = False
        self._finished = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, value: T) -> None:
        if self._closed or self._finished:
            return
        self._queue.put_nowait((_VALUE, value))

    def fail(self, error: BaseException) -> None:
        if self._closed or self._finished:
            return
        self._finished = True
        self._queue.put_nowait((_ERROR, error))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait((_END, None))
        on_close, self._on_close = self._on_close, None
        if on_close is not None:
            result = on_close()
            if asyncio.iscoroutine(result):
                task = asyncio.ensure_future(result)
                _close_tasks.add(task)
                task.add_done_callback(_close_done)

    def __aiter__(self) -> "Stream[T]":
        return self

    async def __anext__(self) -> T:
        kind, payload = await self._queue.get()
        if kind == _VALUE:
            return payload
        if kind == _ERROR:
            raise payload
        raise StopAsyncIteration

    async def __aenter__(self) -> "Stream[T]":
        return self

    async def __aexit__(self, *_exc: object) -> None:
        self.close()


class StateChannel(Generic[T]):
    """Holds the latest value and fans it out to watcher streams."""

    def __init__(self) -> None:
        self._value: Optional[T] = None
        self._watchers: set[Stream[T]] = set()

    @property
    def value(self) -> Optional[T]:
        return self._value

    def publish(self, value: T) -> None:
        self._value = value
        for watcher in list(self._watchers):
            watcher.push(value)

    def watch(self, replay: bool = True) -> Stream[T]:
        stream: Stream[T] = Stream(on_close=lambda: self._watchers.discard(stream))
        self._watchers.add(stream)
        if replay and self._value is not None:
            stream.push(self._value)
        return stream

    @property
    def watcher_count(self) -> int:
        return len(self._watchers)

    def close(self) -> None:
        for watcher in list(self._watchers):
            watcher.close()
        self._watchers.clear()


async def first_matching(stream: AsyncIterator[T], predicate: Callable[[T], bool]) -> T:
    """Consume ``stream`` until a value satisfies ``predicate``."""

    async for value in stream:
        if predicate(value):
            return value
    raise LookupError("stream ended before a matching value arrived")


def _close_done(task: asyncio.Task) -> None:
    _close_tasks.discard(task)
    if not task.cancelled() and task.exception() is not None:
        _logger.error("Stream close callback failed", exc_info=task.exception())
