"""Cooperative repeating timer with an explicit cancellation handle."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

log = logging.getLogger("roomrelease.timer")

TickCallback = Callable[[], Awaitable[None]]


class RepeatingTimer:
    """Await ``callback`` every ``interval`` seconds until cancelled.

    Firings never overlap: the next sleep starts only after the previous
    callback returned. ``cancel()`` is idempotent and may be called from
    inside the callback itself, in which case the running callback is
    allowed to finish but no further firing happens.
    """

    def __init__(self, interval: float, callback: TickCallback, name: str = "timer") -> None:
        self._interval = interval
        self._callback = callback
        self._name = name
        self._task: asyncio.Task[None] | None = None
        self._cancelled = False

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError(f"timer {self._name} already started")
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self._name)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        task = self._task
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    @property
    def active(self) -> bool:
        return not self._cancelled and self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while not self._cancelled:
            await asyncio.sleep(self._interval)
            if self._cancelled:
                break
            try:
                await self._callback()
            except Exception:
                log.exception("Timer %s callback failed", self._name)
