"""Two-level chunking of a tick's key list.

A tick's keys are split into chunks (one transport call each, bounded by the
transport's max batch size) and the chunks into waves (bounded by the number
of chunk fetches allowed in flight at once).

    25 keys, chunk_size=10, wave_size=2  →  [[10, 10], [5]]
"""

from __future__ import annotations

from typing import Sequence, TypeVar

T = TypeVar("T")

# 99 keys per getMultipleAccounts call (the RPC caps at 100), 10 calls in
# flight per tick.
DEFAULT_CHUNK_SIZE = 99
DEFAULT_WAVE_SIZE = 10


def chunk(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into consecutive lists of at most ``size`` elements.

    Args:
        items: Sequence to split.
        size:  Maximum length of each chunk.  Must be positive.

    Returns:
        List of chunks, order preserved.  Empty input gives an empty list.

    Raises:
        ValueError: If size is not positive.
    """
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def plan_waves(
    keys: Sequence[T], chunk_size: int, wave_size: int
) -> list[list[list[T]]]:
    """Partition keys into waves of chunks.

    Args:
        keys:       Keys to fetch in one tick.
        chunk_size: Max keys per transport call.
        wave_size:  Max chunk fetches in flight together.

    Returns:
        List of waves; each wave is a list of chunks.
    """
    return chunk(chunk(keys, chunk_size), wave_size)
