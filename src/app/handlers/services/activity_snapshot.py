"""Cached list of groups active enough for the daily summary.

The snapshot is authoritative for a whole scheduling cycle: once computed it
is served verbatim until it expires, even if the store changes meanwhile.
Stale membership is acceptable; shard membership that shifts mid-cycle is not,
which is why the ordering (count desc, group id asc) is fixed and the list is
never recomputed on a hit.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from src.app.handlers.services.background_tasks import BackgroundTasks
from src.storage.database import now_ms
from src.storage.models import GroupActivity

if TYPE_CHECKING:
    from src.storage.database import Database


LOGGER = logging.getLogger(__name__)

ACTIVE_GROUPS_CACHE_KEY = "active_groups"
ACTIVITY_WINDOW_HOURS = 24


@dataclass(frozen=True)
class ActivitySnapshot:
    groups: tuple[GroupActivity, ...]
    taken_at_ms: int
    expires_at_ms: int
    from_cache: bool = False

    def is_stale(self, current_ms: int) -> bool:
        return current_ms >= self.expires_at_ms

    def to_json(self) -> str:
        return json.dumps(
            {
                "taken_at_ms": self.taken_at_ms,
                "groups": [{"group_id": g.group_id, "message_count": g.message_count} for g in self.groups],
            }
        )

    @classmethod
    def from_json(cls, raw: str, ttl_ms: int) -> "ActivitySnapshot":
        data = json.loads(raw)
        groups = tuple(
            GroupActivity(group_id=int(item["group_id"]), message_count=int(item["message_count"]))
            for item in data["groups"]
        )
        taken_at_ms = int(data["taken_at_ms"])
        return cls(groups=groups, taken_at_ms=taken_at_ms, expires_at_ms=taken_at_ms + ttl_ms, from_cache=True)


class ActivitySnapshotCache:
    def __init__(
        self,
        db: "Database",
        ttl_seconds: int,
        background: BackgroundTasks | None = None,
        clock: Callable[[], int] = now_ms,
        cache_key: str = ACTIVE_GROUPS_CACHE_KEY,
    ) -> None:
        self.db = db
        self.ttl_ms = int(ttl_seconds) * 1000
        self.background = background or BackgroundTasks()
        self.clock = clock
        self.cache_key = cache_key

    async def get_active_groups(self, threshold: int) -> ActivitySnapshot:
        current = self.clock()
        cached = await self._load(current)
        if cached is not None:
            LOGGER.debug("Using cached active groups (%s groups)", len(cached.groups))
            return cached

        LOGGER.debug("Fetching active groups from the store")
        groups = await asyncio.to_thread(
            self.db.list_active_groups,
            threshold,
            ACTIVITY_WINDOW_HOURS,
            current,
        )
        snapshot = ActivitySnapshot(
            groups=tuple(groups),
            taken_at_ms=current,
            expires_at_ms=current + self.ttl_ms,
        )
        self.background.spawn(self._store(snapshot), label="cache-active-groups")
        return snapshot

    async def _load(self, current: int) -> ActivitySnapshot | None:
        raw = await asyncio.to_thread(self.db.get_cache_entry, self.cache_key, current)
        if raw is None:
            return None
        try:
            snapshot = ActivitySnapshot.from_json(raw, self.ttl_ms)
        except (ValueError, KeyError, TypeError):
            LOGGER.warning("Discarding unreadable active-groups cache entry")
            return None
        # The stored expiry may outlive a TTL that has since been shortened.
        if snapshot.is_stale(current):
            LOGGER.debug("Cached active groups from %s are past the TTL", snapshot.taken_at_ms)
            return None
        return snapshot

    async def _store(self, snapshot: ActivitySnapshot) -> None:
        await asyncio.to_thread(
            self.db.set_cache_entry,
            self.cache_key,
            snapshot.to_json(),
            snapshot.expires_at_ms,
        )
