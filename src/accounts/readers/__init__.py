"""Transports for the ledgerwatch account poller.

Each reader implements the RemoteBatchReader ABC:
- fetch_many(keys) → list[FetchedAccount], failing as a unit

Available readers:
    JsonRpcBatchReader — getMultipleAccounts over httpx with endpoint failover
    InMemoryReader     — dict-backed ledger for development and tests
"""

from src.accounts.readers.json_rpc import JsonRpcBatchReader
from src.accounts.readers.memory import InMemoryReader

__all__ = [
    "JsonRpcBatchReader",
    "InMemoryReader",
]

# Registry: reader slug → reader class
READER_REGISTRY: dict[str, type] = {
    "json_rpc": JsonRpcBatchReader,
    "memory": InMemoryReader,
}


def get_reader(name: str) -> "type":
    """Return the reader class for a given slug.

    Args:
        name: e.g. 'json_rpc', 'memory'

    Returns:
        The reader class (not an instance).

    Raises:
        KeyError: If the slug is not registered.
    """
    if name not in READER_REGISTRY:
        raise KeyError(
            f"No reader registered as '{name}'. Available: {list(READER_REGISTRY)}"
        )
    return READER_REGISTRY[name]
