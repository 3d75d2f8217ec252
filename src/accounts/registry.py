"""Watch registry: which keys are watched, by whom, and what they last saw.

Each watched key carries an ordered map of callback id → handler plus the
bytes/version last delivered to those handlers.  The registry knows nothing
about timers; the scheduler owns cadence groups and consults the registry to
resolve keys at tick time.

Usage::

    registry = WatchRegistry()
    cb_id = registry.add("Acc1...", on_update, cadence_ms=500)
    registry.frequency_of("Acc1...")   # 500
    registry.remove("Acc1...", cb_id)  # True: last handler gone, entry deleted
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator
from uuid import uuid4

from src.accounts.base import AccountKey, AccountSnapshot, UpdateCallback

logger = logging.getLogger("ledgerwatch.accounts.registry")


@dataclass
class WatchedKey:
    """Registry entry for one watched key.

    Attributes:
        key:          Remote record key.
        callbacks:    Insertion-ordered map of callback id → handler.
        last_data:    Bytes last delivered to the handlers (None = never delivered).
        last_version: Version last delivered to the handlers.
        cadence_ms:   Explicitly requested cadence, or None to follow the
                      scheduler default.
    """

    key: AccountKey
    callbacks: dict[str, UpdateCallback] = field(default_factory=dict)
    last_data: bytes | None = None
    last_version: int | None = None
    cadence_ms: int | None = None

    @property
    def delivered(self) -> bool:
        return self.last_version is not None

    def should_deliver(self, data: bytes | None, version: int) -> bool:
        """Return True if a fetched record is news for this key's handlers.

        Absent accounts (``data is None``) are never delivered.  A version
        older than the last delivered one is a lagging read and is ignored.
        Otherwise the record is delivered when the key was never delivered,
        the version advanced, or the bytes differ.
        """
        if data is None:
            return False
        if self.last_version is None:
            return True
        if version < self.last_version:
            return False
        return version > self.last_version or data != self.last_data

    def record(self, data: bytes, version: int) -> None:
        self.last_data = data
        self.last_version = version

    @property
    def snapshot(self) -> AccountSnapshot | None:
        if self.last_data is None or self.last_version is None:
            return None
        return AccountSnapshot(data=self.last_data, version=self.last_version)


class WatchRegistry:
    """Map of watched keys to their handlers and last-seen state."""

    def __init__(self) -> None:
        self._entries: dict[AccountKey, WatchedKey] = {}

    def add(
        self, key: AccountKey, callback: UpdateCallback, cadence_ms: int | None = None
    ) -> str:
        """Register a handler for a key.

        New keys start with no cached bytes.  An explicit cadence overrides
        any cadence previously recorded for the key.

        Args:
            key:        Remote record key.
            callback:   Handler called with (data, version).
            cadence_ms: Explicit refresh interval, or None for the default.

        Returns:
            A fresh callback id, unique across all keys.
        """
        entry = self._entries.get(key)
        if entry is None:
            entry = WatchedKey(key=key)
            self._entries[key] = entry
            logger.debug("Registered new key %s", key)
        if cadence_ms is not None:
            entry.cadence_ms = cadence_ms

        callback_id = str(uuid4())
        entry.callbacks[callback_id] = callback
        return callback_id

    def remove(self, key: AccountKey, callback_id: str | None = None) -> bool:
        """Remove one handler, or every handler when no id is given.

        Unknown keys and ids are ignored.

        Returns:
            True if the key's entry was deleted (its handler set emptied).
        """
        entry = self._entries.get(key)
        if entry is None:
            return False
        if callback_id is None:
            entry.callbacks.clear()
        else:
            entry.callbacks.pop(callback_id, None)

        if entry.callbacks:
            return False
        del self._entries[key]
        logger.debug("Dropped key %s (no handlers left)", key)
        return True

    def frequency_of(self, key: AccountKey) -> int | None:
        """Return the explicit cadence recorded for a key, if any."""
        entry = self._entries.get(key)
        return entry.cadence_ms if entry is not None else None

    def get(self, key: AccountKey) -> WatchedKey | None:
        return self._entries.get(key)

    def keys(self) -> list[AccountKey]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[WatchedKey]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)
