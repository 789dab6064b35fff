"""Delivered-notification ledger.

The cursor already guarantees an item is returned once; this table is a
second line of defence keyed by the payload's unique key, so a cursor
reset never re-announces posts that were already delivered.
"""

import logging
from datetime import datetime

from cafewatch.notify.schemas import NotificationPayload
from cafewatch.storage.database import Database, rows_affected

logger = logging.getLogger(__name__)

NOTIFICATION_HISTORY_DDL = """
CREATE TABLE IF NOT EXISTS notification_history (
    unique_key    TEXT PRIMARY KEY,
    source_id     BIGINT NOT NULL,
    platform      TEXT NOT NULL,
    item_id       TEXT NOT NULL,
    title         TEXT NOT NULL,
    body          TEXT NOT NULL DEFAULT '',
    url           TEXT NOT NULL DEFAULT '',
    delivered     BOOLEAN NOT NULL DEFAULT FALSE,
    created_at    TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_notification_history_source
    ON notification_history(source_id, platform, created_at DESC);
"""


class NotificationHistory:
    """Repository for the ``notification_history`` table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        await self._db.execute(NOTIFICATION_HISTORY_DDL)
        logger.info("notification_history table ensured")

    async def claim(self, payload: NotificationPayload) -> bool:
        """Insert a row for the payload's key.

        Returns:
            True if the key was new, False if it was already recorded.
        """
        sql = """
            INSERT INTO notification_history (
                unique_key, source_id, platform, item_id, title, body, url
            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (unique_key) DO NOTHING
        """
        status = await self._db.execute(
            sql,
            payload.unique_key,
            payload.source_id,
            payload.platform,
            payload.item_id,
            payload.title,
            payload.body,
            payload.url,
        )
        return rows_affected(status) > 0

    async def mark_delivered(self, unique_key: str) -> None:
        await self._db.execute(
            "UPDATE notification_history SET delivered = TRUE WHERE unique_key = $1",
            unique_key,
        )

    async def recent(self, limit: int = 50, source_id: int | None = None) -> list[dict]:
        """Most recent history rows, newest first."""
        if source_id is not None:
            rows = await self._db.fetch(
                """
                SELECT * FROM notification_history
                WHERE source_id = $1
                ORDER BY created_at DESC LIMIT $2
                """,
                source_id, limit,
            )
        else:
            rows = await self._db.fetch(
                "SELECT * FROM notification_history ORDER BY created_at DESC LIMIT $1",
                limit,
            )
        return [_row_to_dict(r) for r in rows]


def _row_to_dict(row) -> dict:
    created: datetime | None = row["created_at"]
    return {
        "unique_key": row["unique_key"],
        "source_id": row["source_id"],
        "platform": row["platform"],
        "item_id": row["item_id"],
        "title": row["title"],
        "body": row["body"],
        "url": row["url"],
        "delivered": row["delivered"],
        "created_at": created.isoformat() if created else None,
    }
