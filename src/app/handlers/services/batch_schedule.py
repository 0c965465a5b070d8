from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Sequence, TypeVar
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

T = TypeVar("T")

RETENTION_HOUR_LOCAL = 0


def local_now(timezone_name: str, now: datetime | None = None) -> datetime:
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    try:
        target_tz = ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        target_tz = timezone.utc
    return moment.astimezone(target_tz)


def shard_index_for(moment: datetime, interval_minutes: int, shard_count: int) -> int:
    """Shard handled by the tick at ``moment``: ``floor(minute / interval) % shard_count``."""

    return (moment.minute // interval_minutes) % shard_count


def select_shard(groups: Sequence[T], shard_index: int, shard_count: int) -> list[tuple[int, T]]:
    """Return ``(position, group)`` pairs whose position modulo shard count is the shard."""

    return [(position, group) for position, group in enumerate(groups) if position % shard_count == shard_index]


def in_retention_window(moment: datetime, interval_minutes: int, hour: int = RETENTION_HOUR_LOCAL) -> bool:
    """True for exactly one tick per day: the first tick of ``hour``."""

    return moment.hour == hour and moment.minute < interval_minutes


def tick_times(day_start: datetime, interval_minutes: int) -> list[datetime]:
    """All tick instants of one day starting at ``day_start``."""

    count = (24 * 60) // interval_minutes
    return [day_start + timedelta(minutes=interval_minutes * step) for step in range(count)]
