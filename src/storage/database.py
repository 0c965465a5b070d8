import logging
import sqlite3
import threading
import time
from typing import Any, Iterable

from src.storage.models import IMAGE_CONTENT_PREFIX, GroupActivity, MessageRecord


LOGGER = logging.getLogger(__name__)

MAX_FETCH_BY_COUNT = 4000
MAX_SEARCH_RESULTS = 2000
HOUR_MS = 60 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


class Database:
    def __init__(self, db_path: str):
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        with self._lock:
            self._conn.execute("PRAGMA journal_mode=WAL;")
        self._init_schema()

    def _init_schema(self) -> None:
        statements = [
            """
            CREATE TABLE IF NOT EXISTS messages (
                id TEXT PRIMARY KEY,
                group_id INTEGER NOT NULL,
                group_name TEXT NOT NULL DEFAULT 'anonymous',
                user_name TEXT NOT NULL,
                content TEXT NOT NULL,
                message_id INTEGER NOT NULL,
                timestamp INTEGER NOT NULL
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS cache_entries (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                expires_at_ms INTEGER NOT NULL
            );
            """,
            "CREATE INDEX IF NOT EXISTS idx_messages_group_time ON messages(group_id, timestamp);",
            "CREATE INDEX IF NOT EXISTS idx_messages_time ON messages(timestamp);",
        ]
        with self._lock:
            for stmt in statements:
                self._conn.execute(stmt)
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _execute(self, query: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        with self._lock:
            cursor = self._conn.execute(query, tuple(params))
            self._conn.commit()
            return cursor

    def _fetch_all(self, query: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(query, tuple(params)).fetchall()

    def _fetch_records(self, label: str, query: str, params: Iterable[Any]) -> list[MessageRecord]:
        try:
            rows = self._fetch_all(query, params)
        except (sqlite3.Error, OverflowError):
            LOGGER.exception("Message query failed (%s)", label)
            return []
        return [_row_to_record(row) for row in rows]

    def save_message(self, record: MessageRecord) -> bool:
        try:
            self._execute(
                """
                INSERT OR REPLACE INTO messages(
                    id,
                    group_id,
                    group_name,
                    user_name,
                    content,
                    message_id,
                    timestamp
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.group_id,
                    record.group_name,
                    record.user_name,
                    record.content,
                    record.message_id,
                    record.timestamp,
                ),
            )
        except sqlite3.Error:
            LOGGER.exception("Failed to save message %s", record.id)
            return False
        return True

    def fetch_messages_since_hours(
        self,
        group_id: int,
        hours: float,
        current_ms: int | None = None,
    ) -> list[MessageRecord]:
        since = (current_ms if current_ms is not None else now_ms()) - int(hours * HOUR_MS)
        return self._fetch_records(
            "by_hours",
            """
            SELECT *
            FROM messages
            WHERE group_id = ? AND timestamp >= ?
            ORDER BY timestamp ASC
            """,
            (int(group_id), since),
        )

    def fetch_latest_messages(self, group_id: int, limit: int) -> list[MessageRecord]:
        capped = max(0, min(int(limit), MAX_FETCH_BY_COUNT))
        return self._fetch_records(
            "by_count",
            """
            WITH latest_n AS (
                SELECT * FROM messages
                WHERE group_id = ?
                ORDER BY timestamp DESC
                LIMIT ?
            )
            SELECT * FROM latest_n
            ORDER BY timestamp ASC
            """,
            (int(group_id), capped),
        )

    def search_messages(self, group_id: int, pattern: str) -> list[MessageRecord]:
        return self._fetch_records(
            "search",
            """
            SELECT * FROM messages
            WHERE group_id = ? AND content GLOB ?
            ORDER BY timestamp DESC
            LIMIT ?
            """,
            (int(group_id), pattern, MAX_SEARCH_RESULTS),
        )

    def list_active_groups(
        self,
        threshold: int,
        window_hours: float = 24,
        current_ms: int | None = None,
    ) -> list[GroupActivity]:
        since = (current_ms if current_ms is not None else now_ms()) - int(window_hours * HOUR_MS)
        try:
            rows = self._fetch_all(
                """
                WITH message_counts AS (
                    SELECT group_id, COUNT(*) AS message_count
                    FROM messages
                    WHERE timestamp >= ?
                    GROUP BY group_id
                )
                SELECT group_id, message_count
                FROM message_counts
                WHERE message_count > ?
                ORDER BY message_count DESC, group_id ASC
                """,
                (since, int(threshold)),
            )
        except (sqlite3.Error, OverflowError):
            LOGGER.exception("Active group query failed")
            return []
        return [GroupActivity(group_id=int(row["group_id"]), message_count=int(row["message_count"])) for row in rows]

    def trim_group_histories(self, keep_per_group: int) -> int:
        cursor = self._execute(
            """
            DELETE FROM messages
            WHERE id IN (
                SELECT id
                FROM (
                    SELECT
                        id,
                        ROW_NUMBER() OVER (
                            PARTITION BY group_id
                            ORDER BY timestamp DESC
                        ) AS row_num
                    FROM messages
                ) ranked
                WHERE row_num > ?
            )
            """,
            (int(keep_per_group),),
        )
        return cursor.rowcount

    def delete_old_images(self, retention_hours: float, current_ms: int | None = None) -> int:
        cutoff = (current_ms if current_ms is not None else now_ms()) - int(retention_hours * HOUR_MS)
        cursor = self._execute(
            "DELETE FROM messages WHERE timestamp < ? AND content LIKE ?",
            (cutoff, IMAGE_CONTENT_PREFIX + "%"),
        )
        return cursor.rowcount

    def get_cache_entry(self, key: str, current_ms: int | None = None) -> str | None:
        current = current_ms if current_ms is not None else now_ms()
        try:
            rows = self._fetch_all(
                "SELECT value, expires_at_ms FROM cache_entries WHERE key = ?",
                (key,),
            )
        except sqlite3.Error:
            LOGGER.exception("Cache lookup failed for %s", key)
            return None
        if not rows:
            return None
        row = rows[0]
        if int(row["expires_at_ms"]) <= current:
            return None
        return str(row["value"])

    def set_cache_entry(self, key: str, value: str, expires_at_ms: int) -> None:
        self._execute(
            """
            INSERT INTO cache_entries(key, value, expires_at_ms)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value=excluded.value, expires_at_ms=excluded.expires_at_ms
            """,
            (key, value, int(expires_at_ms)),
        )


def _row_to_record(row: sqlite3.Row) -> MessageRecord:
    return MessageRecord(
        id=str(row["id"]),
        group_id=int(row["group_id"]),
        group_name=str(row["group_name"] or ""),
        user_name=str(row["user_name"] or ""),
        content=str(row["content"] or ""),
        message_id=int(row["message_id"]),
        timestamp=int(row["timestamp"]),
    )
