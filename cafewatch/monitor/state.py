"""Cursor persistence for the scan engine.

One row per (source_id, platform) in ``monitor_states``. A row with a NULL
``last_content_id`` (or no row) means the source has never been baselined.
Writes come only from the orchestrator's sequential flow, so there is a
single writer per source and no locking beyond the upsert itself.
"""

import logging
from typing import Protocol

from cafewatch.monitor.schemas import MonitorState, MonitorStatus
from cafewatch.storage.database import Database, rows_affected

logger = logging.getLogger(__name__)

MONITOR_STATES_DDL = """
CREATE TABLE IF NOT EXISTS monitor_states (
    source_id        BIGINT NOT NULL,
    platform         TEXT NOT NULL,
    last_content_id  TEXT,
    last_check_time  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    last_status      TEXT NOT NULL DEFAULT 'uninitialized',
    PRIMARY KEY (source_id, platform)
);

CREATE INDEX IF NOT EXISTS idx_monitor_states_platform
    ON monitor_states(platform);
"""

_UPSERT_SQL = """
INSERT INTO monitor_states (source_id, platform, last_content_id, last_check_time, last_status)
VALUES ($1, $2, $3, NOW(), $4)
ON CONFLICT (source_id, platform) DO UPDATE SET
    last_content_id = EXCLUDED.last_content_id,
    last_check_time = EXCLUDED.last_check_time,
    last_status = EXCLUDED.last_status
RETURNING source_id, platform, last_content_id, last_check_time, last_status
"""

_SELECT_SQL = """
SELECT source_id, platform, last_content_id, last_check_time, last_status
FROM monitor_states
WHERE source_id = $1 AND platform = $2
"""


class StateStore(Protocol):
    """Capability the engine needs from cursor storage."""

    async def get(self, source_id: int, platform: str) -> MonitorState | None: ...

    async def set(
        self,
        source_id: int,
        platform: str,
        content_id: str | None,
        status: MonitorStatus,
    ) -> MonitorState: ...

    async def needs_baseline(self, source_id: int, platform: str) -> bool: ...

    async def reset(self, source_id: int, platform: str) -> bool: ...


def _record_to_state(record) -> MonitorState:
    """Convert an asyncpg Record to a MonitorState."""
    status_value = record["last_status"]
    try:
        status = MonitorStatus(status_value)
    except ValueError:
        logger.warning(
            "Unknown last_status %r for source %s (%s)",
            status_value, record["source_id"], record["platform"],
        )
        status = MonitorStatus.UNINITIALIZED
    return MonitorState(
        source_id=record["source_id"],
        platform=record["platform"],
        last_content_id=record["last_content_id"],
        last_check_time=record["last_check_time"],
        last_status=status,
    )


class MonitorStateStore:
    """PostgreSQL-backed cursor store."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the monitor_states table and indexes (idempotent)."""
        await self._db.execute(MONITOR_STATES_DDL)
        logger.info("monitor_states table ensured")

    async def get(self, source_id: int, platform: str) -> MonitorState | None:
        row = await self._db.fetchrow(_SELECT_SQL, source_id, platform)
        return _record_to_state(row) if row else None

    async def set(
        self,
        source_id: int,
        platform: str,
        content_id: str | None,
        status: MonitorStatus,
    ) -> MonitorState:
        """Upsert the cursor with the current timestamp."""
        row = await self._db.fetchrow(
            _UPSERT_SQL,
            source_id,
            platform,
            content_id,
            MonitorStatus(status).value,
        )
        logger.debug(
            "Cursor stored for source %s/%s: %s (%s)",
            source_id, platform, content_id, MonitorStatus(status).value,
        )
        if row is None:
            return MonitorState(
                source_id=source_id,
                platform=platform,
                last_content_id=content_id,
                last_status=MonitorStatus(status),
            )
        return _record_to_state(row)

    async def needs_baseline(self, source_id: int, platform: str) -> bool:
        """True when no row exists or the row has no cursor."""
        state = await self.get(source_id, platform)
        return state is None or not state.has_cursor

    async def reset(self, source_id: int, platform: str) -> bool:
        """Delete one cursor so the next cycle baselines the source again.

        Returns True if a row was deleted.
        """
        status = await self._db.execute(
            "DELETE FROM monitor_states WHERE source_id = $1 AND platform = $2",
            source_id, platform,
        )
        deleted = rows_affected(status) > 0
        logger.info(
            "Monitor state reset for source %s/%s (deleted=%s)",
            source_id, platform, deleted,
        )
        return deleted

    async def reset_platform(self, platform: str) -> int:
        """Delete every cursor for a platform. Returns the number deleted."""
        status = await self._db.execute(
            "DELETE FROM monitor_states WHERE platform = $1", platform,
        )
        count = rows_affected(status)
        logger.info("Cleared %d monitor states for platform %s", count, platform)
        return count

    async def list_states(self, platform: str | None = None) -> list[MonitorState]:
        if platform:
            rows = await self._db.fetch(
                "SELECT * FROM monitor_states WHERE platform = $1 ORDER BY source_id",
                platform,
            )
        else:
            rows = await self._db.fetch(
                "SELECT * FROM monitor_states ORDER BY platform, source_id"
            )
        return [_record_to_state(r) for r in rows]
