"""Cancellable periodic timer on the asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger("ledgerwatch.accounts.polling.timer")


class PeriodicTimer:
    """Invoke a synchronous callback every ``interval_s`` seconds.

    The first firing happens one full interval after ``start()``.  The
    callback runs inside the timer task, so it must not block; long work
    belongs in a task spawned by the callback.  ``cancel()`` is synchronous
    and no firing happens after it returns.
    """

    def __init__(
        self, interval_s: float, callback: Callable[[], None], name: str | None = None
    ) -> None:
        self._interval_s = interval_s
        self._callback = callback
        self._name = name or f"timer-{interval_s:g}s"
        self._task: asyncio.Task | None = None

    @property
    def interval_s(self) -> float:
        return self._interval_s

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start firing.  Requires a running event loop.

        Raises:
            RuntimeError: If called outside a running event loop.
        """
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._loop(), name=self._name)

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_s)
            try:
                self._callback()
            except Exception:
                logger.exception("Timer %s callback failed", self._name)
