"""Shared fixtures and helpers for the account poller tests."""

from __future__ import annotations

import pytest

from src.accounts.polling.scheduler import CadenceScheduler
from src.accounts.readers.memory import InMemoryReader

# Cadence long enough that no real timer fires while a test runs; ticks in
# those tests are driven by hand.
IDLE_CADENCE_MS = 60_000

KEY_A = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
KEY_B = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
KEY_C = "4Nd1mBQtrMJVYVfKf2PJy9NZUZdTAsp7D4xWLs4gDB4T"


class Recorder:
    """Update handler that records every (data, version) it receives."""

    def __init__(self) -> None:
        self.calls: list[tuple[bytes, int]] = []

    def __call__(self, data: bytes, version: int) -> None:
        self.calls.append((data, version))

    @property
    def count(self) -> int:
        return len(self.calls)

    @property
    def last(self) -> tuple[bytes, int] | None:
        return self.calls[-1] if self.calls else None


async def tick(scheduler: CadenceScheduler, cadence_ms: int) -> None:
    """Run one tick of the group at ``cadence_ms`` to completion."""
    await scheduler._tick(scheduler.groups[cadence_ms])


@pytest.fixture
def reader() -> InMemoryReader:
    ledger = InMemoryReader()
    ledger.set_account(KEY_A, b"\x01alpha")
    ledger.set_account(KEY_B, b"\x02bravo")
    ledger.set_account(KEY_C, b"\x03charlie")
    return ledger


@pytest.fixture
def scheduler(reader: InMemoryReader) -> CadenceScheduler:
    return CadenceScheduler(reader, default_cadence_ms=IDLE_CADENCE_MS)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()
