"""In-process transport backed by a dict.

Used for local development and as the fake ledger in tests.  Accounts can
be written at any time, individual keys can be made to fail their whole
chunk, and every call is logged with the number of calls in flight.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from src.accounts.base import AccountKey, FetchedAccount, RemoteBatchReader, TransportError

logger = logging.getLogger("ledgerwatch.accounts.readers.memory")


class InMemoryReader(RemoteBatchReader):
    """RemoteBatchReader over an in-memory account table.

    Attributes:
        calls:         Key lists of every fetch_many call, in call order.
        max_in_flight: Peak number of concurrent fetch_many calls observed.
    """

    def __init__(
        self, latency_s: float = 0.0, max_batch_size: int = 100, version: int = 1
    ) -> None:
        self.max_batch_size = max_batch_size
        self._latency_s = latency_s
        self._accounts: dict[AccountKey, bytes] = {}
        self._failing: set[AccountKey] = set()
        self._version = version
        self._in_flight = 0
        self.calls: list[list[AccountKey]] = []
        self.in_flight_at_start: list[int] = []
        self.max_in_flight = 0

    @classmethod
    def from_settings(cls, settings=None) -> "InMemoryReader":
        return cls()

    @property
    def version(self) -> int:
        return self._version

    def set_account(self, key: AccountKey, data: bytes, version: int | None = None) -> None:
        """Write an account.  Without an explicit version the ledger advances by one."""
        self._version = version if version is not None else self._version + 1
        self._accounts[key] = data

    def delete_account(self, key: AccountKey) -> None:
        self._accounts.pop(key, None)

    def fail_on(self, *keys: AccountKey) -> None:
        """Make any chunk containing one of these keys raise TransportError."""
        self._failing.update(keys)

    def recover(self, *keys: AccountKey) -> None:
        """Stop failing the given keys, or every key when none are given."""
        if keys:
            self._failing.difference_update(keys)
        else:
            self._failing.clear()

    def keys_fetched(self) -> list[AccountKey]:
        return [key for call in self.calls for key in call]

    async def fetch_many(self, keys: Sequence[AccountKey]) -> list[FetchedAccount]:
        if len(keys) > self.max_batch_size:
            raise TransportError(
                f"Batch of {len(keys)} keys exceeds max_batch_size={self.max_batch_size}"
            )
        self.calls.append(list(keys))
        self._in_flight += 1
        self.in_flight_at_start.append(self._in_flight)
        self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            if self._latency_s:
                await asyncio.sleep(self._latency_s)
            else:
                await asyncio.sleep(0)
            failing = self._failing.intersection(keys)
            if failing:
                raise TransportError(f"Simulated failure for {sorted(failing)}")
            version = self._version
            return [
                FetchedAccount(key=key, data=self._accounts.get(key), version=version)
                for key in keys
            ]
        finally:
            self._in_flight -= 1
