"""Cancellable long-press detection."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Generic, Optional, TypeVar

T = TypeVar("T")

LONG_PRESS_SECONDS = 0.5


class LongPressTimer(Generic[T]):
    """Fire ``on_long_press(target)`` when a press is held for ``delay`` seconds.

    The pending timer is released on every exit path: release, leave, a new
    press, and firing.
    """

    def __init__(self, on_long_press: Callable[[T], Any], delay: float = LONG_PRESS_SECONDS) -> None:
        self._on_long_press = on_long_press
        self._delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def press(self, target: T) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire, target)

    def release(self) -> None:
        self.cancel()

    def leave(self) -> None:
        self.cancel()

    def cancel(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()

    def _fire(self, target: T) -> None:
        self._handle = None
        self._on_long_press(target)
