"""One refresh cadence: a timer plus the set of keys that share it.

State machine::

    EMPTY  ──add──▶  ARMED  ──pause──▶  PAUSED
      ▲               │  ▲               │
      └──last key─────┘  └─────arm───────┘
         removed

- A group with no members never holds a live timer.
- Any membership change on an armed group cancels and recreates the timer,
  so a key that just joined is serviced one interval from now.
- Ticks never overlap.  A firing that arrives while a tick is in flight is
  queued and runs right after it, as long as the group is still armed.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable

from src.accounts.base import AccountKey
from src.accounts.polling.timer import PeriodicTimer

logger = logging.getLogger("ledgerwatch.accounts.polling.frequency_group")


class GroupState(str, Enum):
    EMPTY = "empty"
    ARMED = "armed"
    PAUSED = "paused"


TickHandler = Callable[["FrequencyGroup"], Awaitable[None]]


class FrequencyGroup:
    """Keys refreshed at one interval, driven by one PeriodicTimer.

    Attributes:
        interval_ms: Refresh interval in milliseconds.
        members:     Keys currently owned by this group.
    """

    def __init__(
        self,
        interval_ms: int,
        on_tick: TickHandler,
        on_task: Callable[[asyncio.Task], None] | None = None,
    ) -> None:
        self.interval_ms = interval_ms
        self.members: set[AccountKey] = set()
        self._on_tick = on_tick
        # Sees every tick task as it is created, before it first runs.
        self._on_task = on_task
        self._timer: PeriodicTimer | None = None
        self._tick_task: asyncio.Task | None = None
        self._tick_queued = False
        self.ticks_started = 0

    def __repr__(self) -> str:
        return (
            f"FrequencyGroup(interval_ms={self.interval_ms}, "
            f"members={len(self.members)}, state={self.state.value})"
        )

    @property
    def state(self) -> GroupState:
        if not self.members:
            return GroupState.EMPTY
        if self._timer is not None and self._timer.running:
            return GroupState.ARMED
        return GroupState.PAUSED

    @property
    def tick_in_flight(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    @property
    def tick_task(self) -> asyncio.Task | None:
        return self._tick_task

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def add(self, key: AccountKey, *, arm: bool = True) -> bool:
        """Add a key.  Re-arms the timer when ``arm`` is set.

        Returns:
            True if the key was not already a member.
        """
        if key in self.members:
            return False
        self.members.add(key)
        if arm:
            self.arm()
        return True

    def discard(self, key: AccountKey, *, arm: bool = True) -> bool:
        """Remove a key.  Disarms when the group empties, else re-arms.

        Returns:
            True if the key was a member.
        """
        if key not in self.members:
            return False
        self.members.discard(key)
        if not self.members:
            self.disarm()
        elif arm:
            self.arm()
        return True

    def snapshot(self) -> list[AccountKey]:
        """Return a copy of the member list, safe against mid-tick changes."""
        return list(self.members)

    # ------------------------------------------------------------------
    # Timer lifecycle
    # ------------------------------------------------------------------

    def arm(self) -> None:
        """Cancel any live timer and start a fresh one.

        No-op for an empty group.  Outside a running event loop the group
        stays paused until armed again from inside the loop.
        """
        if not self.members:
            return
        self.disarm()
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; group %dms left paused", self.interval_ms)
            return
        self._timer = PeriodicTimer(
            self.interval_ms / 1000.0, self._fire, name=f"cadence-{self.interval_ms}ms"
        )
        self._timer.start()
        logger.debug("Armed group %dms (%d keys)", self.interval_ms, len(self.members))

    def disarm(self) -> None:
        """Cancel the timer and any queued firing.  An in-flight tick finishes."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._tick_queued = False

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def _fire(self) -> None:
        if self.tick_in_flight:
            self._tick_queued = True
            return
        self._tick_task = asyncio.get_running_loop().create_task(
            self._run_ticks(), name=f"tick-{self.interval_ms}ms"
        )
        if self._on_task is not None:
            self._on_task(self._tick_task)

    async def _run_ticks(self) -> None:
        while True:
            self.ticks_started += 1
            try:
                await self._on_tick(self)
            except Exception:
                logger.exception("Tick for group %dms failed", self.interval_ms)
            if not self._tick_queued or self.state is not GroupState.ARMED:
                self._tick_queued = False
                return
            self._tick_queued = False

    def describe(self) -> dict:
        return {
            "interval_ms": self.interval_ms,
            "state": self.state.value,
            "members": len(self.members),
            "tick_in_flight": self.tick_in_flight,
            "ticks_started": self.ticks_started,
        }
