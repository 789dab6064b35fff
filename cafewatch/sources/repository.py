"""Database repository for the monitored_sources table."""

import logging

from cafewatch.sources.schemas import MonitoredSource
from cafewatch.storage.database import Database, rows_affected

logger = logging.getLogger(__name__)

MONITORED_SOURCES_DDL = """
CREATE TABLE IF NOT EXISTS monitored_sources (
    source_id          BIGSERIAL PRIMARY KEY,
    platform           TEXT NOT NULL,
    author_handle      TEXT NOT NULL,
    group_id           TEXT NOT NULL,
    display_name       TEXT NOT NULL DEFAULT '',
    profile_image_url  TEXT,
    notify             BOOLEAN NOT NULL DEFAULT TRUE,
    is_active          BOOLEAN NOT NULL DEFAULT TRUE,
    created_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (platform, group_id, author_handle)
);

CREATE INDEX IF NOT EXISTS idx_monitored_sources_platform_active
    ON monitored_sources(platform, is_active) WHERE is_active = TRUE;
"""

_UPSERT_SQL = """
INSERT INTO monitored_sources (
    platform, author_handle, group_id, display_name, profile_image_url, notify, is_active
) VALUES ($1, $2, $3, $4, $5, $6, $7)
ON CONFLICT (platform, group_id, author_handle) DO UPDATE SET
    display_name = EXCLUDED.display_name,
    profile_image_url = EXCLUDED.profile_image_url,
    notify = EXCLUDED.notify,
    is_active = EXCLUDED.is_active,
    updated_at = NOW()
RETURNING *
"""


def _record_to_source(record) -> MonitoredSource:
    """Convert an asyncpg Record to a MonitoredSource."""
    return MonitoredSource(
        source_id=record["source_id"],
        platform=record["platform"],
        author_handle=record["author_handle"],
        group_id=record["group_id"],
        display_name=record["display_name"],
        profile_image_url=record["profile_image_url"],
        notify=record["notify"],
        is_active=record["is_active"],
        created_at=record["created_at"],
        updated_at=record["updated_at"],
    )


class SourcesRepository:
    """CRUD operations for the monitored_sources table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the monitored_sources table and indexes (idempotent)."""
        await self._db.execute(MONITORED_SOURCES_DDL)
        logger.info("monitored_sources table ensured")

    async def upsert(self, source: MonitoredSource) -> MonitoredSource:
        """Insert or update a source; returns it with its assigned id."""
        row = await self._db.fetchrow(
            _UPSERT_SQL,
            source.platform,
            source.author_handle,
            source.group_id,
            source.display_name,
            source.profile_image_url,
            source.notify,
            source.is_active,
        )
        return _record_to_source(row) if row else source

    async def get(self, source_id: int) -> MonitoredSource | None:
        row = await self._db.fetchrow(
            "SELECT * FROM monitored_sources WHERE source_id = $1", source_id,
        )
        return _record_to_source(row) if row else None

    async def list_sources(
        self,
        platform: str | None = None,
        active_only: bool = False,
    ) -> list[MonitoredSource]:
        conditions: list[str] = []
        params: list = []

        if active_only:
            conditions.append("is_active = TRUE")
        if platform:
            params.append(platform)
            conditions.append(f"platform = ${len(params)}")

        where_clause = " WHERE " + " AND ".join(conditions) if conditions else ""
        rows = await self._db.fetch(
            f"SELECT * FROM monitored_sources{where_clause} ORDER BY source_id",
            *params,
        )
        return [_record_to_source(r) for r in rows]

    async def get_active_by_platform(self, platform: str) -> list[MonitoredSource]:
        """All active sources of a platform in scan order (by id)."""
        return await self.list_sources(platform=platform, active_only=True)

    async def deactivate(self, source_id: int) -> bool:
        """Soft-deactivate a source. Returns True if a row was updated."""
        status = await self._db.execute(
            """
            UPDATE monitored_sources SET is_active = FALSE, updated_at = NOW()
            WHERE source_id = $1 AND is_active = TRUE
            """,
            source_id,
        )
        return rows_affected(status) > 0

    async def set_notify(self, source_id: int, enabled: bool) -> bool:
        """Toggle notifications for a source. Returns True if it exists."""
        status = await self._db.execute(
            """
            UPDATE monitored_sources SET notify = $2, updated_at = NOW()
            WHERE source_id = $1
            """,
            source_id, enabled,
        )
        return rows_affected(status) > 0

    async def count(self) -> int:
        return await self._db.fetchval("SELECT COUNT(*) FROM monitored_sources") or 0
