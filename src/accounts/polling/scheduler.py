"""Cadence-aware batch poller for remote account snapshots.

Keeps a dynamic set of watched keys fresh in memory while letting each key
ask for its own refresh cadence.  Keys sharing a cadence live in one
FrequencyGroup with one timer.  Each tick:

1. Snapshot the group's members and resolve them in the registry
2. Skip keys another in-flight tick is already fetching
3. Split the keys into chunks (transport batch size) and the chunks into
   waves (max concurrent fetches)
4. Fetch each wave concurrently through the injected RemoteBatchReader
5. Deliver records whose version advanced or bytes changed

A failed chunk only withholds delivery for its own keys.  The failure is
logged and reported on the error channel; the next tick is the retry.

Usage::

    scheduler = CadenceScheduler(reader, default_cadence_ms=1000)
    cb_id = scheduler.watch(user_key, on_user_update, cadence_ms=500)
    scheduler.set_cadence(user_key, 200)
    ...
    scheduler.stop()
    await scheduler.drain()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence
from uuid import uuid4

from src.accounts.base import (
    AccountKey,
    AccountSnapshot,
    CallbackError,
    ChunkFetchError,
    ErrorCallback,
    FetchedAccount,
    LedgerWatchError,
    RemoteBatchReader,
    UpdateCallback,
)
from src.accounts.polling.chunking import DEFAULT_CHUNK_SIZE, DEFAULT_WAVE_SIZE, plan_waves
from src.accounts.polling.frequency_group import FrequencyGroup, GroupState
from src.accounts.registry import WatchRegistry

logger = logging.getLogger("ledgerwatch.accounts.polling.scheduler")

DEFAULT_CADENCE_MS = 1000


def _require_positive(name: str, value: int) -> int:
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


class CadenceScheduler:
    """Multiplex per-key refresh cadences onto bounded batch reads.

    All public methods except ``load()`` and ``drain()`` are synchronous and
    must be called on the event loop thread.  They apply fully before
    returning, so the next tick never sees a half-applied change.

    Timers need a running event loop.  Keys watched before the loop runs
    wait in paused groups until ``start()`` is called inside the loop.
    """

    def __init__(
        self,
        reader: RemoteBatchReader,
        default_cadence_ms: int = DEFAULT_CADENCE_MS,
        max_keys_per_chunk: int = DEFAULT_CHUNK_SIZE,
        max_concurrent_chunks: int = DEFAULT_WAVE_SIZE,
    ) -> None:
        """Initialize the scheduler.

        Args:
            reader:                Batched-get transport.
            default_cadence_ms:    Cadence for keys watched without one.
            max_keys_per_chunk:    Max keys per transport call (further capped
                                   by ``reader.max_batch_size``).
            max_concurrent_chunks: Max transport calls in flight per tick.
        """
        self._reader = reader
        self._default_cadence_ms = _require_positive("default_cadence_ms", default_cadence_ms)
        self._max_keys_per_chunk = _require_positive("max_keys_per_chunk", max_keys_per_chunk)
        self._max_concurrent_chunks = _require_positive(
            "max_concurrent_chunks", max_concurrent_chunks
        )

        self._registry = WatchRegistry()
        self._groups: dict[int, FrequencyGroup] = {}
        self._cadences: dict[AccountKey, int] = {}
        self._error_callbacks: dict[str, ErrorCallback] = {}
        # key → cadence of the tick fetching it (None for load())
        self._fetching: dict[AccountKey, int | None] = {}
        self._tick_tasks: set[asyncio.Task] = set()
        self._paused = False
        self._most_recent_version = 0

    @classmethod
    def from_settings(cls, reader: RemoteBatchReader, settings=None) -> "CadenceScheduler":
        """Build a scheduler from application Settings."""
        if settings is None:
            from src.config import get_settings

            settings = get_settings()
        return cls(
            reader,
            default_cadence_ms=settings.default_cadence_ms,
            max_keys_per_chunk=settings.max_keys_per_chunk,
            max_concurrent_chunks=settings.max_concurrent_chunks,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def default_cadence_ms(self) -> int:
        return self._default_cadence_ms

    @property
    def running(self) -> bool:
        """False between ``stop()`` and the next ``start()``."""
        return not self._paused

    @property
    def most_recent_version(self) -> int:
        """Highest version seen in any successful chunk."""
        return self._most_recent_version

    @property
    def chunk_size(self) -> int:
        return min(self._max_keys_per_chunk, self._reader.max_batch_size)

    @property
    def groups(self) -> dict[int, FrequencyGroup]:
        """Live cadence groups by interval (read-only view)."""
        return dict(self._groups)

    # ------------------------------------------------------------------
    # Watching
    # ------------------------------------------------------------------

    def watch(
        self, key: AccountKey, on_update: UpdateCallback, cadence_ms: int | None = None
    ) -> str:
        """Register a handler for a key.

        Args:
            key:        Remote record key.
            on_update:  Handler called with (data, version) when the key changes.
            cadence_ms: Refresh interval for the key.  When given for a key
                        already watched at another cadence, the key moves.

        Returns:
            Callback id for ``unwatch``.
        """
        if cadence_ms is not None:
            _require_positive("cadence_ms", cadence_ms)
        callback_id = self._registry.add(key, on_update, cadence_ms)

        target = self._registry.frequency_of(key) or self._default_cadence_ms
        current = self._cadences.get(key)
        if current != target:
            self._move(key, current, target)
        return callback_id

    def unwatch(self, key: AccountKey, callback_id: str | None = None) -> None:
        """Remove one handler, or all handlers of a key when no id is given.

        Unknown keys and ids are ignored.  When the key's last handler goes,
        the key leaves its cadence group.
        """
        if not self._registry.remove(key, callback_id):
            return
        cadence = self._cadences.pop(key, None)
        if cadence is not None:
            self._leave(key, cadence)

    def set_cadence(self, key: AccountKey, cadence_ms: int) -> None:
        """Move a watched key to another cadence.

        No-op for unwatched keys and unchanged cadences.  The target group is
        re-armed so the key is serviced one interval from now.  A tick of the
        old group still in flight withholds delivery for the moved key.
        """
        _require_positive("cadence_ms", cadence_ms)
        entry = self._registry.get(key)
        if entry is None:
            return
        entry.cadence_ms = cadence_ms
        current = self._cadences.get(key)
        if current == cadence_ms:
            return
        self._move(key, current, cadence_ms)
        logger.debug("Moved %s from %sms to %dms", key, current, cadence_ms)

    def cadence_of(self, key: AccountKey) -> int | None:
        """Return the cadence a watched key is refreshed at, or None."""
        return self._cadences.get(key)

    def explicit_cadence_of(self, key: AccountKey) -> int | None:
        """Return the cadence requested for a key, or None if it follows the default."""
        return self._registry.frequency_of(key)

    def get_snapshot(self, key: AccountKey) -> AccountSnapshot | None:
        """Return the bytes + version last delivered for a key."""
        entry = self._registry.get(key)
        return entry.snapshot if entry is not None else None

    def update_default_cadence(self, cadence_ms: int) -> None:
        """Change the default cadence and move keys that follow it."""
        _require_positive("cadence_ms", cadence_ms)
        old = self._default_cadence_ms
        if old == cadence_ms:
            return
        self._default_cadence_ms = cadence_ms
        moved = 0
        for entry in self._registry:
            if entry.cadence_ms is None and self._cadences.get(entry.key) != cadence_ms:
                self._move(entry.key, self._cadences.get(entry.key), cadence_ms)
                moved += 1
        logger.info("Default cadence %dms → %dms (%d keys moved)", old, cadence_ms, moved)

    def reset_cadences(self) -> None:
        """Drop every explicit cadence; all keys return to the default."""
        for entry in self._registry:
            entry.cadence_ms = None
            if self._cadences.get(entry.key) != self._default_cadence_ms:
                self._move(entry.key, self._cadences.get(entry.key), self._default_cadence_ms)

    # ------------------------------------------------------------------
    # Error channel
    # ------------------------------------------------------------------

    def add_error_callback(self, callback: ErrorCallback) -> str:
        """Subscribe to transport and handler failures.  Returns an id."""
        callback_id = str(uuid4())
        self._error_callbacks[callback_id] = callback
        return callback_id

    def remove_error_callback(self, callback_id: str) -> None:
        self._error_callbacks.pop(callback_id, None)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Arm every non-empty group that is not already armed."""
        self._paused = False
        for group in self._groups.values():
            if group.state is GroupState.PAUSED:
                group.arm()
        logger.info("Scheduler started (%d groups)", len(self._groups))

    def stop(self) -> None:
        """Cancel every timer, keeping registrations and group membership.

        Ticks already in flight run to completion; ``drain()`` awaits them.
        """
        self._paused = True
        for group in self._groups.values():
            group.disarm()
        logger.info("Scheduler stopped (%d groups paused)", len(self._groups))

    def clear(self) -> None:
        """Cancel every timer and forget every group and watched key."""
        for group in self._groups.values():
            group.disarm()
        self._groups.clear()
        self._cadences.clear()
        self._registry.clear()
        logger.info("Scheduler cleared")

    async def drain(self) -> None:
        """Wait for every in-flight tick to finish."""
        while self._tick_tasks:
            await asyncio.gather(*list(self._tick_tasks), return_exceptions=True)

    async def load(self) -> None:
        """Fetch every watched key once, outside the timers."""
        keys = self._claim(self._registry.keys(), None)
        if not keys:
            return
        try:
            await self._refresh(keys, None)
        finally:
            self._release(keys)

    def status(self) -> dict:
        return {
            "running": self.running,
            "default_cadence_ms": self._default_cadence_ms,
            "watched_keys": len(self._registry),
            "most_recent_version": self._most_recent_version,
            "groups": [
                self._groups[interval].describe() for interval in sorted(self._groups)
            ],
        }

    # ------------------------------------------------------------------
    # Group bookkeeping
    # ------------------------------------------------------------------

    def _move(self, key: AccountKey, old: int | None, new: int) -> None:
        if old is not None:
            self._leave(key, old)
        group = self._groups.get(new)
        if group is None:
            group = FrequencyGroup(new, self._tick, on_task=self._track)
            self._groups[new] = group
            logger.debug("Created group %dms", new)
        self._cadences[key] = new
        group.add(key, arm=not self._paused)

    def _leave(self, key: AccountKey, cadence: int) -> None:
        group = self._groups.get(cadence)
        if group is None:
            return
        group.discard(key, arm=not self._paused)
        if group.state is GroupState.EMPTY:
            del self._groups[cadence]
            logger.debug("Collapsed empty group %dms", cadence)

    # ------------------------------------------------------------------
    # Tick: fetch + dispatch
    # ------------------------------------------------------------------

    def _track(self, task: asyncio.Task) -> None:
        # Tracked at creation: drain() must see ticks that have not started yet.
        self._tick_tasks.add(task)
        task.add_done_callback(self._tick_tasks.discard)

    async def _tick(self, group: FrequencyGroup) -> None:
        keys = self._claim(group.snapshot(), group.interval_ms)
        try:
            if keys:
                logger.debug("Tick %dms: %d keys", group.interval_ms, len(keys))
                await self._refresh(keys, group.interval_ms)
        finally:
            self._release(keys)

    def _claim(self, keys: Sequence[AccountKey], owner: int | None) -> list[AccountKey]:
        claimed = []
        for key in keys:
            if key not in self._registry or key in self._fetching:
                continue
            self._fetching[key] = owner
            claimed.append(key)
        return claimed

    def _release(self, keys: Sequence[AccountKey]) -> None:
        for key in keys:
            self._fetching.pop(key, None)

    async def _refresh(self, keys: list[AccountKey], owner: int | None) -> None:
        for wave in plan_waves(keys, self.chunk_size, self._max_concurrent_chunks):
            await asyncio.gather(*(self._fetch_chunk(chunk, owner) for chunk in wave))

    async def _fetch_chunk(self, keys: list[AccountKey], owner: int | None) -> None:
        try:
            results = await self._reader.fetch_many(keys)
        except Exception as exc:
            logger.warning(
                "Chunk fetch failed (%d keys, cadence=%s): %s", len(keys), owner, exc
            )
            self._report(ChunkFetchError(keys, owner, exc))
            return
        self._dispatch(results, keys, owner)

    def _dispatch(
        self,
        results: Sequence[FetchedAccount],
        requested: Sequence[AccountKey],
        owner: int | None,
    ) -> None:
        wanted = set(requested)
        for record in results:
            if record.key not in wanted:
                continue
            wanted.discard(record.key)
            if record.version > self._most_recent_version:
                self._most_recent_version = record.version

            # Moved to another cadence mid-tick: the new group delivers.
            if owner is not None and self._cadences.get(record.key) != owner:
                continue
            entry = self._registry.get(record.key)
            if entry is None or not entry.should_deliver(record.data, record.version):
                continue
            entry.record(record.data, record.version)

            for callback_id, callback in list(entry.callbacks.items()):
                if callback_id not in entry.callbacks:
                    continue
                try:
                    callback(record.data, record.version)
                except Exception as exc:
                    logger.exception("Update handler %s for %s raised", callback_id, record.key)
                    self._report(CallbackError(record.key, callback_id, exc))

    def _report(self, error: LedgerWatchError) -> None:
        for callback in list(self._error_callbacks.values()):
            try:
                callback(error)
            except Exception:
                logger.exception("Error callback raised while reporting %r", error)
