"""Tests for SessionStore — TTL tables, destructive reads, reaper."""

import asyncio
import threading

from prometheus_client import REGISTRY

from signoff.broker.store import SessionStore, Table


def _reaped(table: str) -> float:
    return REGISTRY.get_sample_value("signoff_entries_reaped_total", {"table": table}) or 0.0


class TestPutGet:
    def test_get_returns_live_value(self, store):
        store.put(Table.PENDING, "t1", "v1", ttl=600)
        assert store.get(Table.PENDING, "t1") == "v1"

    def test_get_is_not_destructive(self, store):
        store.put(Table.PENDING, "t1", "v1", ttl=600)
        store.get(Table.PENDING, "t1")
        assert store.get(Table.PENDING, "t1") == "v1"

    def test_tables_are_independent(self, store):
        store.put(Table.PENDING, "t1", "session", ttl=600)
        assert store.get(Table.DECISIONS, "t1") is None

    def test_put_overwrites(self, store):
        store.put(Table.PENDING, "t1", "old", ttl=600)
        store.put(Table.PENDING, "t1", "new", ttl=600)
        assert store.get(Table.PENDING, "t1") == "new"

    def test_unknown_key(self, store):
        assert store.get(Table.PENDING, "missing") is None


class TestExpiry:
    def test_entry_visible_until_ttl(self, store, clock):
        store.put(Table.PENDING, "t1", "v1", ttl=600)
        clock.advance(600)
        assert store.get(Table.PENDING, "t1") == "v1"

    def test_expired_entry_is_absent_and_dropped(self, store, clock):
        store.put(Table.PENDING, "t1", "v1", ttl=600)
        clock.advance(601)
        assert store.get(Table.PENDING, "t1") is None
        assert store.size(Table.PENDING) == 0

    def test_take_of_expired_entry_returns_none(self, store, clock):
        store.put(Table.DECISIONS, "t1", "v1", ttl=10)
        clock.advance(11)
        assert store.take(Table.DECISIONS, "t1") is None
        assert store.size(Table.DECISIONS) == 0


class TestTake:
    def test_take_returns_value_once(self, store):
        store.put(Table.DECISIONS, "t1", "outcome", ttl=600)
        assert store.take(Table.DECISIONS, "t1") == "outcome"
        assert store.take(Table.DECISIONS, "t1") is None

    def test_concurrent_takes_hand_out_one_value(self):
        store = SessionStore()
        store.put(Table.DECISIONS, "t1", "outcome", ttl=600)
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(store.take(Table.DECISIONS, "t1"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("outcome") == 1
        assert results.count(None) == 7


    def test_take_drops_key_from_other_tables(self, store):
        store.put(Table.DECISIONS, "t1", "outcome", ttl=600)
        store.put(Table.PENDING, "t1", "session", ttl=600)

        assert store.take(Table.DECISIONS, "t1", drop=(Table.PENDING,)) == "outcome"
        assert store.stats() == {"pending": 0, "decisions": 0}

    def test_failed_take_leaves_other_tables_alone(self, store, clock):
        store.put(Table.DECISIONS, "t1", "outcome", ttl=10)
        store.put(Table.PENDING, "t1", "session", ttl=600)
        clock.advance(11)

        assert store.take(Table.DECISIONS, "t1", drop=(Table.PENDING,)) is None
        assert store.take(Table.DECISIONS, "missing", drop=(Table.PENDING,)) is None
        assert store.get(Table.PENDING, "t1") == "session"


class TestPutIfAbsent:
    def test_first_write_wins(self, store):
        assert store.put_if_absent(Table.DECISIONS, "t1", "a", ttl=600) is True
        assert store.put_if_absent(Table.DECISIONS, "t1", "b", ttl=600) is False
        assert store.get(Table.DECISIONS, "t1") == "a"

    def test_expired_entry_can_be_replaced(self, store, clock):
        store.put_if_absent(Table.DECISIONS, "t1", "a", ttl=10)
        clock.advance(11)
        assert store.put_if_absent(Table.DECISIONS, "t1", "b", ttl=10) is True
        assert store.get(Table.DECISIONS, "t1") == "b"


class TestDeleteAndStats:
    def test_delete(self, store):
        store.put(Table.PENDING, "t1", "v", ttl=600)
        assert store.delete(Table.PENDING, "t1") is True
        assert store.delete(Table.PENDING, "t1") is False

    def test_stats(self, store):
        store.put(Table.PENDING, "a", 1, ttl=600)
        store.put(Table.PENDING, "b", 2, ttl=600)
        store.put(Table.DECISIONS, "a", 3, ttl=600)
        assert store.stats() == {"pending": 2, "decisions": 1}


class TestSweep:
    def test_sweep_removes_only_expired(self, store, clock):
        store.put(Table.PENDING, "old", 1, ttl=10)
        store.put(Table.DECISIONS, "old", 1, ttl=10)
        store.put(Table.PENDING, "fresh", 2, ttl=600)
        clock.advance(11)

        assert store.sweep() == 2
        assert store.stats() == {"pending": 1, "decisions": 0}
        assert store.get(Table.PENDING, "fresh") == 2

    def test_sweep_counts_reaped_entries(self, store, clock):
        before = _reaped("pending")
        store.put(Table.PENDING, "old", 1, ttl=10)
        clock.advance(11)
        store.sweep()
        assert _reaped("pending") == before + 1

    def test_sweep_with_nothing_expired(self, store):
        store.put(Table.PENDING, "fresh", 2, ttl=600)
        assert store.sweep() == 0


class TestReaper:
    async def test_start_and_stop(self, clock):
        store = SessionStore(reaper_interval=0.01, clock=clock)
        await store.start()
        assert store.running is True
        await store.stop()
        assert store.running is False

    async def test_start_is_idempotent(self, clock):
        store = SessionStore(reaper_interval=0.01, clock=clock)
        await store.start()
        task = store._reaper_task
        await store.start()
        assert store._reaper_task is task
        await store.stop()

    async def test_reaper_sweeps_periodically(self, clock):
        store = SessionStore(reaper_interval=0.01, clock=clock)
        store.put(Table.PENDING, "old", 1, ttl=10)
        clock.advance(11)
        await store.start()
        try:
            for _ in range(50):
                if store.size(Table.PENDING) == 0:
                    break
                await asyncio.sleep(0.01)
        finally:
            await store.stop()
        assert store.size(Table.PENDING) == 0

    async def test_stop_without_start_is_noop(self, store):
        await store.stop()
        assert store.running is False
