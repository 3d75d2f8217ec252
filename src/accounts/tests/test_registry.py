"""Tests for the watch registry and change detection."""

from __future__ import annotations

from src.accounts.registry import WatchedKey, WatchRegistry
from src.accounts.tests.conftest import KEY_A, KEY_B, Recorder


class TestWatchRegistry:
    def test_add_returns_distinct_ids(self) -> None:
        registry = WatchRegistry()
        first = registry.add(KEY_A, Recorder())
        second = registry.add(KEY_A, Recorder())
        assert first != second
        assert len(registry.get(KEY_A).callbacks) == 2

    def test_new_key_has_no_cached_bytes(self) -> None:
        registry = WatchRegistry()
        registry.add(KEY_A, Recorder())
        entry = registry.get(KEY_A)
        assert entry.last_data is None
        assert entry.snapshot is None
        assert not entry.delivered

    def test_frequency_of_explicit_cadence(self) -> None:
        registry = WatchRegistry()
        registry.add(KEY_A, Recorder(), cadence_ms=500)
        registry.add(KEY_B, Recorder())
        assert registry.frequency_of(KEY_A) == 500
        assert registry.frequency_of(KEY_B) is None
        assert registry.frequency_of("unknown") is None

    def test_later_explicit_cadence_overrides(self) -> None:
        registry = WatchRegistry()
        registry.add(KEY_A, Recorder(), cadence_ms=500)
        registry.add(KEY_A, Recorder())
        assert registry.frequency_of(KEY_A) == 500
        registry.add(KEY_A, Recorder(), cadence_ms=200)
        assert registry.frequency_of(KEY_A) == 200

    def test_remove_one_callback_keeps_entry(self) -> None:
        registry = WatchRegistry()
        first = registry.add(KEY_A, Recorder())
        registry.add(KEY_A, Recorder())
        assert registry.remove(KEY_A, first) is False
        assert KEY_A in registry

    def test_remove_last_callback_deletes_entry(self) -> None:
        registry = WatchRegistry()
        cb_id = registry.add(KEY_A, Recorder())
        assert registry.remove(KEY_A, cb_id) is True
        assert KEY_A not in registry
        assert len(registry) == 0

    def test_remove_without_id_drops_all_callbacks(self) -> None:
        registry = WatchRegistry()
        registry.add(KEY_A, Recorder())
        registry.add(KEY_A, Recorder())
        assert registry.remove(KEY_A) is True
        assert KEY_A not in registry

    def test_remove_unknown_is_noop(self) -> None:
        registry = WatchRegistry()
        cb_id = registry.add(KEY_A, Recorder())
        assert registry.remove(KEY_B) is False
        assert registry.remove(KEY_A, "not-an-id") is False
        assert registry.get(KEY_A).callbacks.keys() == {cb_id}

    def test_clear(self) -> None:
        registry = WatchRegistry()
        registry.add(KEY_A, Recorder())
        registry.add(KEY_B, Recorder())
        registry.clear()
        assert registry.keys() == []


class TestShouldDeliver:
    def test_first_delivery(self) -> None:
        assert WatchedKey(key=KEY_A).should_deliver(b"x", 10)

    def test_absent_account_never_delivered(self) -> None:
        assert not WatchedKey(key=KEY_A).should_deliver(None, 10)

    def test_same_bytes_same_version_skipped(self) -> None:
        entry = WatchedKey(key=KEY_A)
        entry.record(b"x", 10)
        assert not entry.should_deliver(b"x", 10)

    def test_newer_version_delivered(self) -> None:
        entry = WatchedKey(key=KEY_A)
        entry.record(b"x", 10)
        assert entry.should_deliver(b"x", 11)

    def test_changed_bytes_same_version_delivered(self) -> None:
        entry = WatchedKey(key=KEY_A)
        entry.record(b"x", 10)
        assert entry.should_deliver(b"y", 10)

    def test_older_version_ignored(self) -> None:
        entry = WatchedKey(key=KEY_A)
        entry.record(b"x", 10)
        assert not entry.should_deliver(b"y", 9)

    def test_snapshot_after_record(self) -> None:
        entry = WatchedKey(key=KEY_A)
        entry.record(b"x", 10)
        assert entry.snapshot.data == b"x"
        assert entry.snapshot.version == 10
