"""Pydantic response models for the read-only polling status endpoints."""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from src.models.base import LedgerWatchBase


class GroupStateName(str, Enum):
    empty = "empty"
    armed = "armed"
    paused = "paused"


class FrequencyGroupRead(LedgerWatchBase):
    interval_ms: int = Field(gt=0)
    state: GroupStateName
    members: int = Field(ge=0)
    tick_in_flight: bool = False
    ticks_started: int = Field(default=0, ge=0)


class WatchedAccountRead(LedgerWatchBase):
    key: str
    cadence_ms: int
    explicit_cadence: bool
    version: int | None = None
    data_base64: str | None = None


class PollingStatusRead(LedgerWatchBase):
    running: bool
    default_cadence_ms: int
    watched_keys: int
    most_recent_version: int
    groups: list[FrequencyGroupRead] = []


class HealthRead(LedgerWatchBase):
    status: str
    version: str
    environment: str
    scheduler_running: bool
    watched_keys: int
    timestamp: str
