"""Tests for the monitored-source repository and service."""

import json
from datetime import datetime, timezone

import pytest

from cafewatch.sources.config import SourcesConfig
from cafewatch.sources.repository import MONITORED_SOURCES_DDL, SourcesRepository
from cafewatch.sources.schemas import MonitoredSource
from cafewatch.sources.service import SourcesService

NOW = datetime(2025, 8, 4, 3, 0, tzinfo=timezone.utc)


def _record(source_id: int = 1, **overrides) -> dict:
    record = {
        "source_id": source_id,
        "platform": "cafe",
        "author_handle": f"writer{source_id}",
        "group_id": "10050146",
        "display_name": "",
        "profile_image_url": None,
        "notify": True,
        "is_active": True,
        "created_at": NOW,
        "updated_at": NOW,
    }
    record.update(overrides)
    return record


class TestMonitoredSource:
    """Tests for MonitoredSource."""

    def test_to_descriptor(self):
        source = MonitoredSource(
            platform="cafe",
            author_handle="홍길동",
            group_id="10050146",
            display_name="길동",
            notify=False,
            source_id=3,
        )
        descriptor = source.to_descriptor()
        assert descriptor.source_id == 3
        assert descriptor.name == "길동"
        assert descriptor.notify is False
        assert descriptor.enabled is True

    def test_unsaved_source_has_no_descriptor(self):
        with pytest.raises(ValueError):
            MonitoredSource(platform="cafe", author_handle="a", group_id="1").to_descriptor()


class TestSourcesRepository:
    """Tests for SourcesRepository SQL binding."""

    @pytest.mark.asyncio
    async def test_create_table(self, mock_database):
        await SourcesRepository(mock_database).create_table()
        mock_database.execute.assert_awaited_once_with(MONITORED_SOURCES_DDL)

    @pytest.mark.asyncio
    async def test_upsert_returns_assigned_id(self, mock_database):
        mock_database.fetchrow.return_value = _record(9, author_handle="홍길동")

        stored = await SourcesRepository(mock_database).upsert(
            MonitoredSource(platform="cafe", author_handle="홍길동", group_id="10050146")
        )

        assert stored.source_id == 9
        sql, *params = mock_database.fetchrow.call_args[0]
        assert "ON CONFLICT (platform, group_id, author_handle)" in sql
        assert params[:3] == ["cafe", "홍길동", "10050146"]

    @pytest.mark.asyncio
    async def test_list_active_by_platform(self, mock_database):
        mock_database.fetch.return_value = [_record(1), _record(2)]

        sources = await SourcesRepository(mock_database).get_active_by_platform("cafe")

        assert [s.source_id for s in sources] == [1, 2]
        sql, platform = mock_database.fetch.call_args[0]
        assert "is_active = TRUE" in sql
        assert "platform = $1" in sql
        assert "ORDER BY source_id" in sql
        assert platform == "cafe"

    @pytest.mark.asyncio
    async def test_list_all(self, mock_database):
        await SourcesRepository(mock_database).list_sources()
        sql = mock_database.fetch.call_args[0][0]
        assert "WHERE" not in sql

    @pytest.mark.asyncio
    async def test_deactivate(self, mock_database):
        mock_database.execute.return_value = "UPDATE 1"
        assert await SourcesRepository(mock_database).deactivate(1) is True

        mock_database.execute.return_value = "UPDATE 0"
        assert await SourcesRepository(mock_database).deactivate(1) is False

    @pytest.mark.asyncio
    async def test_set_notify(self, mock_database):
        mock_database.execute.return_value = "UPDATE 1"
        assert await SourcesRepository(mock_database).set_notify(1, False) is True
        assert mock_database.execute.call_args[0][1:] == (1, False)


class TestSourcesService:
    """Tests for SourcesService caching and seeding."""

    @pytest.mark.asyncio
    async def test_active_sources_are_cached(self, mock_database):
        mock_database.fetch.return_value = [_record(1)]
        service = SourcesService(mock_database, SourcesConfig(cache_ttl_seconds=300))

        first = await service.get_active_sources("cafe")
        second = await service.get_active_sources("cafe")

        assert first == second
        assert first[0].author_handle == "writer1"
        assert mock_database.fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_zero_ttl_disables_cache(self, mock_database):
        service = SourcesService(mock_database, SourcesConfig(cache_ttl_seconds=0))

        await service.get_active_sources("cafe")
        await service.get_active_sources("cafe")

        assert mock_database.fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_mutations_invalidate_cache(self, mock_database):
        mock_database.execute.return_value = "UPDATE 1"
        service = SourcesService(mock_database, SourcesConfig(cache_ttl_seconds=300))

        await service.get_active_sources("cafe")
        await service.disable_source(1)
        await service.get_active_sources("cafe")

        assert mock_database.fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_seed_when_empty(self, mock_database, tmp_path):
        seed = tmp_path / "sources.json"
        seed.write_text(
            json.dumps(
                [
                    {"author_handle": "홍길동", "group_id": 10050146},
                    {"author_handle": "임꺽정", "group_id": "10050146", "notify": False},
                ]
            ),
            encoding="utf-8",
        )
        mock_database.fetchval.return_value = 0
        service = SourcesService(mock_database, SourcesConfig(seed_file=seed))

        await service.ensure_seeded()

        assert mock_database.fetchrow.await_count == 2
        params = mock_database.fetchrow.call_args_list[1][0][1:]
        assert params[:3] == ("cafe", "임꺽정", "10050146")
        assert params[5] is False

    @pytest.mark.asyncio
    async def test_seed_skipped_when_populated(self, mock_database, tmp_path):
        seed = tmp_path / "sources.json"
        seed.write_text("[]", encoding="utf-8")
        mock_database.fetchval.return_value = 3
        service = SourcesService(mock_database, SourcesConfig(seed_file=seed))

        await service.ensure_seeded()

        mock_database.fetchrow.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_seed_without_file_is_noop(self, mock_database):
        await SourcesService(mock_database, SourcesConfig(seed_file=None)).ensure_seeded()
        mock_database.fetchval.assert_not_awaited()
