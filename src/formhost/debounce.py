"""Trailing debounce on the running asyncio event loop.

Each call replaces the pending timer, so only the last call in a burst
fires, ``delay`` seconds after that call.
"""

from __future__ import annotations

import asyncio
from typing import Callable


class Debouncer:
    """Coalesce rapid calls into one trailing call of fn."""

    __slots__ = ("_fn", "_delay", "_task")

    def __init__(self, fn: Callable[..., None], delay: float) -> None:
        self._fn = fn
        self._delay = delay
        self._task: asyncio.Task | None = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def task(self) -> asyncio.Task | None:
        """The pending timer task, or None when nothing is scheduled."""
        return self._task

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def __call__(self, *args) -> None:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._fire(args))

    def cancel(self) -> None:
        """Drop the pending call, if any."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _fire(self, args: tuple) -> None:
        await asyncio.sleep(self._delay)
        self._task = None
        self._fn(*args)

    def __repr__(self) -> str:
        state = "pending" if self.pending else "idle"
        return f"Debouncer({getattr(self._fn, '__name__', self._fn)!r}, {self._delay}s, {state})"
