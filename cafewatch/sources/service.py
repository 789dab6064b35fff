"""Source registry service with caching and seed support."""

import json
import logging
import time
from pathlib import Path

from cafewatch.monitor.schemas import SourceDescriptor
from cafewatch.sources.config import SourcesConfig
from cafewatch.sources.repository import SourcesRepository
from cafewatch.sources.schemas import MonitoredSource
from cafewatch.storage.database import Database

logger = logging.getLogger(__name__)


def _parse_seed_entry(entry: dict) -> MonitoredSource:
    """Convert a JSON seed entry to a MonitoredSource."""
    return MonitoredSource(
        platform=entry.get("platform", "cafe"),
        author_handle=entry["author_handle"],
        group_id=str(entry["group_id"]),
        display_name=entry.get("display_name", ""),
        profile_image_url=entry.get("profile_image_url"),
        notify=entry.get("notify", True),
        is_active=entry.get("is_active", True),
    )


class SourcesService:
    """Cached access to the sources each cycle scans.

    Wraps SourcesRepository with a per-platform TTL cache so the service
    loop does not hit the database on every cycle.
    """

    def __init__(
        self,
        database: Database,
        config: SourcesConfig | None = None,
    ) -> None:
        self._config = config or SourcesConfig()
        self._repo = SourcesRepository(database)
        self._cache: dict[str, tuple[float, list[SourceDescriptor]]] = {}

    @property
    def repository(self) -> SourcesRepository:
        """Access the underlying repository for direct DB operations."""
        return self._repo

    async def get_active_sources(self, platform: str) -> list[SourceDescriptor]:
        """Active sources of a platform as scan descriptors (cached)."""
        now = time.monotonic()
        cached = self._cache.get(platform)
        if cached is not None and (now - cached[0]) < self._config.cache_ttl_seconds:
            return cached[1]

        sources = await self._repo.get_active_by_platform(platform)
        descriptors = [s.to_descriptor() for s in sources]
        self._cache[platform] = (now, descriptors)
        return descriptors

    async def add_source(self, source: MonitoredSource) -> MonitoredSource:
        stored = await self._repo.upsert(source)
        self.invalidate_cache()
        logger.info(
            "Source stored: %s/%s in %s (id=%s)",
            stored.platform, stored.author_handle, stored.group_id, stored.source_id,
        )
        return stored

    async def disable_source(self, source_id: int) -> bool:
        changed = await self._repo.deactivate(source_id)
        self.invalidate_cache()
        return changed

    async def set_notify(self, source_id: int, enabled: bool) -> bool:
        changed = await self._repo.set_notify(source_id, enabled)
        self.invalidate_cache()
        return changed

    def invalidate_cache(self) -> None:
        """Force-clear the cache so next access hits the DB."""
        self._cache.clear()

    async def seed_from_json(self, path: Path) -> int:
        """Load sources from a JSON list into the database.

        Returns the number of sources upserted.
        """
        with open(path, encoding="utf-8") as f:
            entries = json.load(f)

        count = 0
        for entry in entries:
            await self._repo.upsert(_parse_seed_entry(entry))
            count += 1
        self.invalidate_cache()
        logger.info("Seeded %d sources from %s", count, path)
        return count

    async def ensure_seeded(self) -> None:
        """Seed from the configured file if the table is empty."""
        if not self._config.seed_on_init or self._config.seed_file is None:
            return

        existing = await self._repo.count()
        if existing > 0:
            logger.debug("monitored_sources has %d rows, skipping seed", existing)
            return

        logger.info("monitored_sources empty, seeding from %s", self._config.seed_file)
        await self.seed_from_json(self._config.seed_file)
