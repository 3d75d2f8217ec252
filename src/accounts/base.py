"""Base classes and shared data models for the ledgerwatch account poller.

Every transport must subclass RemoteBatchReader and return FetchedAccount
records.  These types are the contract between the scheduler, the watch
registry and callback consumers.  Decoding the returned bytes into domain
objects is left to the consumers.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Sequence

logger = logging.getLogger("ledgerwatch.accounts")

# Remote record keys are opaque strings (base58 account addresses on Solana).
AccountKey = str

# on_update(data, version)
UpdateCallback = Callable[[bytes, int], None]

# on_error(error)
ErrorCallback = Callable[["LedgerWatchError"], None]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class LedgerWatchError(Exception):
    """Base class for every error raised or reported by ledgerwatch."""


class TransportError(LedgerWatchError):
    """Raised by a RemoteBatchReader when a batch read fails as a unit."""


class ChunkFetchError(LedgerWatchError):
    """Reported on the error channel when one chunk fetch fails.

    Attributes:
        keys:       The keys in the failed chunk.
        cadence_ms: Cadence of the group whose tick issued the chunk
                    (None for a one-shot ``load()``).
    """

    def __init__(
        self, keys: Sequence[AccountKey], cadence_ms: int | None, cause: BaseException
    ) -> None:
        super().__init__(
            f"Chunk fetch of {len(keys)} key(s) failed"
            f" (cadence={cadence_ms}): {cause}"
        )
        self.keys = list(keys)
        self.cadence_ms = cadence_ms
        self.__cause__ = cause


class CallbackError(LedgerWatchError):
    """Reported on the error channel when an on_update handler raises."""

    def __init__(self, key: AccountKey, callback_id: str, cause: BaseException) -> None:
        super().__init__(f"Update handler {callback_id} for {key} raised: {cause!r}")
        self.key = key
        self.callback_id = callback_id
        self.__cause__ = cause


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FetchedAccount:
    """One record returned by a batch read.

    Attributes:
        key:     The remote record key.
        data:    Raw account bytes, or None when the account does not exist.
        version: Monotonic marker for the read (the RPC context slot).
    """

    key: AccountKey
    data: bytes | None
    version: int


@dataclass(frozen=True)
class AccountSnapshot:
    """The last bytes + version delivered to the handlers of a key."""

    data: bytes
    version: int


# ---------------------------------------------------------------------------
# Transport interface
# ---------------------------------------------------------------------------


class RemoteBatchReader(ABC):
    """Abstract batched-get transport injected into the scheduler.

    Subclasses must implement:
        - fetch_many(keys) → list of FetchedAccount

    A single call either returns results for its keys or raises; there is no
    partial-success contract within one call.  Retries, timeouts and endpoint
    failover are the transport's business.
    """

    # Largest number of keys a single fetch_many call may carry.
    max_batch_size: int = 100

    @abstractmethod
    async def fetch_many(self, keys: Sequence[AccountKey]) -> list[FetchedAccount]:
        """Read the current bytes and version for each key.

        Args:
            keys: At most ``max_batch_size`` keys.

        Returns:
            One FetchedAccount per key that the remote side answered for.

        Raises:
            TransportError: If the batch could not be read.
        """

    async def aclose(self) -> None:
        """Release transport resources.  Default: nothing to release."""
        return None
