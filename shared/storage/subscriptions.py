"""Keyword subscriptions backed by SQLite."""

from __future__ import annotations

import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from shared.logging.logger import get_logger
from shared.storage.paths import get_state_path

log = get_logger("shared.storage.subscriptions")

DEFAULT_DB_NAME = "subscriptions.db"


@dataclass(frozen=True)
class Subscription:
    user_id: str
    channel_id: str
    keyword: str
    created_at: int


class SubscriptionStore:
    """
    Rows are unique on (user_id, channel_id, keyword). Reads return rows in
    registration order.
    """

    def __init__(self, db_path: Path | str | None = None) -> None:
        self._db_path = Path(db_path) if db_path else get_state_path(DEFAULT_DB_NAME)
        self._lock = threading.Lock()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # SQLite setup
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS convention_subscriptions (
                    user_id TEXT NOT NULL,
                    channel_id TEXT NOT NULL,
                    keyword TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    PRIMARY KEY (user_id, channel_id, keyword)
                )
                """
            )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def upsert(
        self,
        *,
        user_id: str,
        channel_id: str,
        keyword: str,
        created_at: Optional[int] = None,
    ) -> Subscription:
        if not keyword or not keyword.strip():
            raise ValueError("keyword is required")

        row = Subscription(
            user_id=str(user_id),
            channel_id=str(channel_id),
            keyword=keyword.strip(),
            created_at=int(created_at if created_at is not None else time.time() * 1000),
        )
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO convention_subscriptions (user_id, channel_id, keyword, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, channel_id, keyword)
                DO UPDATE SET created_at = excluded.created_at
                """,
                (row.user_id, row.channel_id, row.keyword, row.created_at),
            )
        log.debug(f"Subscription upserted: {row}")
        return row

    def list(self, *, user_id: str, channel_id: str) -> List[Subscription]:
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                """
                SELECT user_id, channel_id, keyword, created_at
                FROM convention_subscriptions
                WHERE user_id = ? AND channel_id = ?
                ORDER BY created_at ASC, rowid ASC
                """,
                (str(user_id), str(channel_id)),
            ).fetchall()

        return [
            Subscription(
                user_id=r["user_id"],
                channel_id=r["channel_id"],
                keyword=r["keyword"],
                created_at=int(r["created_at"]),
            )
            for r in rows
        ]

    def remove(
        self,
        *,
        user_id: str,
        channel_id: str,
        keyword: Optional[str] = None,
    ) -> int:
        """
        Delete one keyword, or every keyword when none is given. Returns the
        number of rows removed.
        """
        query = "DELETE FROM convention_subscriptions WHERE user_id = ? AND channel_id = ?"
        params: list = [str(user_id), str(channel_id)]
        if keyword is not None:
            query += " AND keyword = ?"
            params.append(keyword.strip())

        with self._lock, self._connect() as conn:
            cursor = conn.execute(query, params)
            deleted = cursor.rowcount

        log.debug(
            f"Removed {deleted} subscription(s) user={user_id} channel={channel_id} "
            f"keyword={keyword!r}"
        )
        return deleted
