"""
In-Memory Session/Result Store
==============================

TTL-bounded key-value store holding the broker's two tables:

- ``Table.PENDING``: token -> PendingSession, read during callback verification
- ``Table.DECISIONS``: token -> Decision, consumed by exactly one poll

Every operation runs under a single lock, so ``take`` hands a decision to at
most one caller even when polls race. Expired entries are treated as absent
by every read path and physically removed either on that read or by the
periodic reaper.

Limitations:
- Not persistent (entries lost on restart)
- Single-process only (no shared state between instances)
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from signoff.core.structured_logger import get_logger
from signoff.observability.metrics import ENTRIES_REAPED, set_store_sizes

logger = get_logger("SessionStore")


class Table(str, Enum):
    PENDING = "pending"
    DECISIONS = "decisions"


@dataclass
class _Entry:
    value: Any
    expires_at: float


class SessionStore:
    """Lock-guarded TTL tables with lazy expiry and a background reaper."""

    def __init__(
        self,
        reaper_interval: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.reaper_interval = reaper_interval
        self._clock = clock
        self._tables: dict[Table, dict[str, _Entry]] = {table: {} for table in Table}
        self._lock = threading.Lock()
        self._reaper_task: asyncio.Task | None = None
        self._running = False

    def now(self) -> float:
        return self._clock()

    # ------------------------------------------------------------------
    # Table operations
    # ------------------------------------------------------------------

    def put(self, table: Table, key: str, value: Any, ttl: float) -> None:
        """Upsert ``value`` with expiry ``now + ttl``."""
        with self._lock:
            self._tables[table][key] = _Entry(value, self._clock() + ttl)

    def put_if_absent(self, table: Table, key: str, value: Any, ttl: float) -> bool:
        """Write only if no live entry exists for ``key``."""
        with self._lock:
            rows = self._tables[table]
            now = self._clock()
            existing = rows.get(key)
            if existing is not None and now <= existing.expires_at:
                return False
            rows[key] = _Entry(value, now + ttl)
            return True

    def get(self, table: Table, key: str) -> Any | None:
        """Non-destructive read; expired entries are dropped and reported absent."""
        with self._lock:
            rows = self._tables[table]
            entry = rows.get(key)
            if entry is None:
                return None
            if self._clock() > entry.expires_at:
                del rows[key]
                return None
            return entry.value

    def take(self, table: Table, key: str, drop: Iterable[Table] = ()) -> Any | None:
        """Destructive read: the entry is gone after the first call.

        When the read succeeds, ``key`` is also removed from every table in
        ``drop`` under the same lock.
        """
        with self._lock:
            entry = self._tables[table].pop(key, None)
            if entry is None or self._clock() > entry.expires_at:
                return None
            for other in drop:
                self._tables[other].pop(key, None)
            return entry.value

    def delete(self, table: Table, key: str) -> bool:
        with self._lock:
            return self._tables[table].pop(key, None) is not None

    def size(self, table: Table) -> int:
        with self._lock:
            return len(self._tables[table])

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {table.value: len(rows) for table, rows in self._tables.items()}

    # ------------------------------------------------------------------
    # Reaper
    # ------------------------------------------------------------------

    def sweep(self) -> int:
        """Remove every expired entry from both tables; return how many."""
        removed: dict[Table, int] = {}
        with self._lock:
            now = self._clock()
            for table, rows in self._tables.items():
                expired = [key for key, entry in rows.items() if now > entry.expires_at]
                for key in expired:
                    del rows[key]
                removed[table] = len(expired)
            sizes = {table.value: len(rows) for table, rows in self._tables.items()}

        for table, count in removed.items():
            if count:
                ENTRIES_REAPED.labels(table=table.value).inc(count)
        set_store_sizes(sizes)

        total = sum(removed.values())
        if total:
            logger.info("Reaped %d expired entries", total, **{t.value: n for t, n in removed.items()})
        return total

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._reaper_task = asyncio.create_task(self._reaper_loop(), name="store-reaper")
        logger.info("Reaper started", interval_seconds=self.reaper_interval)

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._reaper_task:
            self._reaper_task.cancel()
            try:
                await self._reaper_task
            except asyncio.CancelledError:
                pass
            self._reaper_task = None
        logger.info("Reaper stopped")

    @property
    def running(self) -> bool:
        return self._running

    async def _reaper_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.reaper_interval)
                self.sweep()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in reaper loop: %s", e, exc_info=True)
