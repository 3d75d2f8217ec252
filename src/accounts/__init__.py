"""ledgerwatch remote account poller.

This package keeps a large, changing set of remote ledger account snapshots
fresh in memory while letting each watched key choose its refresh cadence.

Subpackages:
    polling/ — Cadence groups, periodic timers, chunked fetch + dispatch
    readers/ — Transports (JSON-RPC getMultipleAccounts, in-memory ledger)

Core modules:
    base     — RemoteBatchReader ABC, record models and errors
    registry — Watched keys, their handlers and last-delivered state
"""

from src.accounts.base import (
    AccountSnapshot,
    CallbackError,
    ChunkFetchError,
    FetchedAccount,
    LedgerWatchError,
    RemoteBatchReader,
    TransportError,
)
from src.accounts.polling.scheduler import CadenceScheduler
from src.accounts.registry import WatchedKey, WatchRegistry

__all__ = [
    "CadenceScheduler",
    "RemoteBatchReader",
    "FetchedAccount",
    "AccountSnapshot",
    "WatchRegistry",
    "WatchedKey",
    "LedgerWatchError",
    "TransportError",
    "ChunkFetchError",
    "CallbackError",
]
