from __future__ import annotations

import asyncio
import unittest

from src.app.handlers.services.activity_snapshot import (
    ACTIVE_GROUPS_CACHE_KEY,
    ActivitySnapshot,
    ActivitySnapshotCache,
)
from src.app.handlers.services.background_tasks import BackgroundTasks
from src.storage.models import GroupActivity


class _FakeStore:
    def __init__(self, groups: list[GroupActivity]) -> None:
        self.groups = groups
        self.entries: dict[str, tuple[str, int]] = {}
        self.list_calls: list[tuple[int, float, int]] = []

    def list_active_groups(self, threshold: int, window_hours: float = 24, current_ms: int | None = None):
        self.list_calls.append((threshold, window_hours, current_ms))
        return list(self.groups)

    def get_cache_entry(self, key: str, current_ms: int | None = None):
        entry = self.entries.get(key)
        if entry is None or entry[1] <= current_ms:
            return None
        return entry[0]

    def set_cache_entry(self, key: str, value: str, expires_at_ms: int) -> None:
        self.entries[key] = (value, expires_at_ms)


class _Clock:
    def __init__(self, start: int) -> None:
        self.value = start

    def __call__(self) -> int:
        return self.value


class ActivitySnapshotCacheTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.groups = [GroupActivity(100, 50), GroupActivity(200, 40)]
        self.store = _FakeStore(self.groups)
        self.clock = _Clock(1_000_000)
        self.background = BackgroundTasks()
        self.cache = ActivitySnapshotCache(self.store, ttl_seconds=10, background=self.background, clock=self.clock)

    async def test_miss_queries_store_and_writes_back_in_background(self) -> None:
        snapshot = await self.cache.get_active_groups(10)

        self.assertEqual(list(snapshot.groups), self.groups)
        self.assertFalse(snapshot.from_cache)
        self.assertEqual(self.store.list_calls, [(10, 24, 1_000_000)])
        await self.background.drain()
        self.assertIn(ACTIVE_GROUPS_CACHE_KEY, self.store.entries)
        self.assertEqual(self.store.entries[ACTIVE_GROUPS_CACHE_KEY][1], 1_010_000)

    async def test_hit_serves_snapshot_verbatim(self) -> None:
        await self.cache.get_active_groups(10)
        await self.background.drain()
        self.store.groups = [GroupActivity(300, 99)]
        self.clock.value += 5_000

        snapshot = await self.cache.get_active_groups(10)

        self.assertTrue(snapshot.from_cache)
        self.assertEqual(list(snapshot.groups), self.groups)
        self.assertEqual(len(self.store.list_calls), 1)

    async def test_expired_entry_is_recomputed(self) -> None:
        await self.cache.get_active_groups(10)
        await self.background.drain()
        self.store.groups = [GroupActivity(300, 99)]
        self.clock.value += 10_000

        snapshot = await self.cache.get_active_groups(10)

        self.assertEqual([g.group_id for g in snapshot.groups], [300])
        self.assertEqual(len(self.store.list_calls), 2)

    async def test_entry_older_than_current_ttl_is_recomputed(self) -> None:
        long_lived = ActivitySnapshotCache(self.store, ttl_seconds=1000, background=self.background, clock=self.clock)
        await long_lived.get_active_groups(10)
        await self.background.drain()
        self.store.groups = [GroupActivity(300, 99)]
        self.clock.value += 20_000

        snapshot = await self.cache.get_active_groups(10)

        self.assertFalse(snapshot.from_cache)
        self.assertEqual([g.group_id for g in snapshot.groups], [300])

    async def test_failed_write_back_does_not_fail_the_read(self) -> None:
        def _broken_set(*_args, **_kwargs) -> None:
            raise RuntimeError("cache down")

        self.store.set_cache_entry = _broken_set
        with self.assertLogs("src.app.handlers.services.background_tasks", level="ERROR"):
            snapshot = await self.cache.get_active_groups(10)
            await self.background.drain()
            await asyncio.sleep(0)
        self.assertEqual(list(snapshot.groups), self.groups)

    async def test_unreadable_entry_is_treated_as_miss(self) -> None:
        self.store.entries[ACTIVE_GROUPS_CACHE_KEY] = ("not json", 2_000_000)

        snapshot = await self.cache.get_active_groups(10)

        self.assertFalse(snapshot.from_cache)
        self.assertEqual(len(self.store.list_calls), 1)


class ActivitySnapshotTests(unittest.TestCase):
    def test_json_round_trip_keeps_order(self) -> None:
        snapshot = ActivitySnapshot(
            groups=(GroupActivity(5, 9), GroupActivity(1, 9), GroupActivity(7, 3)),
            taken_at_ms=10,
            expires_at_ms=20,
        )
        restored = ActivitySnapshot.from_json(snapshot.to_json(), ttl_ms=10)
        self.assertEqual(restored.groups, snapshot.groups)
        self.assertEqual(restored.expires_at_ms, 20)
        self.assertTrue(restored.from_cache)

    def test_stale_at_expiry(self) -> None:
        snapshot = ActivitySnapshot(groups=(), taken_at_ms=0, expires_at_ms=100)
        self.assertFalse(snapshot.is_stale(99))
        self.assertTrue(snapshot.is_stale(100))


if __name__ == "__main__":
    unittest.main()
