"""Polling infrastructure for ledgerwatch.

Modules:
    scheduler       — CadenceScheduler: watch/unwatch/set_cadence, tick fetch + dispatch
    frequency_group — One cadence: member keys, timer state machine, non-overlapping ticks
    timer           — Cancellable periodic asyncio timer
    chunking        — Chunk and wave partitioning of a tick's keys
"""
