"""Tests for the event bus and the monitor service loop."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from cafewatch.monitor.auth import AuthStatusCache
from cafewatch.monitor.config import MonitorConfig
from cafewatch.monitor.events import MonitorEvent, MonitorEventBus, MonitorEventType
from cafewatch.monitor.orchestrator import SourceScanOrchestrator
from cafewatch.monitor.schemas import SourceDescriptor
from cafewatch.monitor.service import MonitorService
from cafewatch.notify.dispatcher import DispatchSummary


class TestMonitorEventBus:
    """Tests for MonitorEventBus."""

    def test_publish_fans_out(self):
        bus = MonitorEventBus()
        a, b = bus.subscribe(), bus.subscribe()

        bus.emit(MonitorEventType.CYCLE_STARTED, cycle_id="abc")

        assert a.get_nowait().data == {"cycle_id": "abc"}
        assert b.get_nowait().type is MonitorEventType.CYCLE_STARTED

    def test_full_queue_drops_oldest(self):
        bus = MonitorEventBus(max_queue_size=2)
        queue = bus.subscribe()

        for i in range(3):
            bus.emit(MonitorEventType.SOURCE_SCANNED, source_id=i)

        assert [queue.get_nowait().data["source_id"] for _ in range(2)] == [1, 2]

    def test_max_subscribers(self):
        bus = MonitorEventBus(max_subscribers=1)
        assert bus.subscribe() is not None
        assert bus.subscribe() is None

    def test_unsubscribe(self):
        bus = MonitorEventBus()
        queue = bus.subscribe()
        bus.unsubscribe(queue)

        bus.emit(MonitorEventType.CYCLE_STARTED)

        assert queue.empty()
        assert bus.subscriber_count == 0

    def test_publish_without_subscribers(self):
        bus = MonitorEventBus()
        bus.publish(MonitorEvent(type=MonitorEventType.CYCLE_COMPLETED))
        assert bus.subscriber_count == 0

    def test_to_dict(self):
        event = MonitorEvent(type=MonitorEventType.NOTIFICATION_SENT, data={"url": "x"})
        payload = event.to_dict()
        assert payload["type"] == "notification_sent"
        assert payload["data"] == {"url": "x"}
        assert "timestamp" in payload


def _descriptor(source_id: int, notify: bool = True) -> SourceDescriptor:
    return SourceDescriptor(
        source_id=source_id,
        platform="cafe",
        author_handle=f"writer{source_id}",
        group_id="10050146",
        notify=notify,
    )


@pytest.fixture
def sources_provider():
    provider = AsyncMock()
    provider.get_active_sources = AsyncMock(return_value=[_descriptor(1), _descriptor(2)])
    return provider


@pytest.fixture
def dispatcher():
    mock = AsyncMock()
    mock.notify_items = AsyncMock(return_value=DispatchSummary(delivered=1))
    return mock


@pytest.fixture
def service(page_fetcher, state_store, probe, fast_config, metrics, sources_provider, dispatcher):
    auth = AuthStatusCache(probe, metrics=metrics)
    orchestrator = SourceScanOrchestrator(
        page_fetcher, state_store, auth, config=fast_config, metrics=metrics
    )
    closeable = AsyncMock()
    svc = MonitorService(
        orchestrator,
        sources_provider,
        dispatcher,
        auth,
        config=fast_config,
        closeables=[closeable],
    )
    svc.test_closeable = closeable
    return svc


class TestMonitorService:
    """Tests for MonitorService."""

    @pytest.mark.asyncio
    async def test_run_once_dispatches_per_source(
        self, service, page_fetcher, state_store, dispatcher, items
    ):
        state_store.seed(1, "cafe", "10")
        state_store.seed(2, "cafe", "20")
        page_fetcher.set_page(1, 1, items(11, 10))
        page_fetcher.set_page(2, 1, items(20))

        report = await service.run_once()

        assert [i.id for i in report.new_items] == ["11"]
        dispatcher.notify_items.assert_awaited_once()
        source, new_items = dispatcher.notify_items.call_args[0]
        assert source.source_id == 1
        assert [i.id for i in new_items] == ["11"]
        assert service.last_report is report

    @pytest.mark.asyncio
    async def test_run_once_loads_platform_sources(self, service, sources_provider):
        await service.run_once()
        sources_provider.get_active_sources.assert_awaited_once_with("cafe")

    @pytest.mark.asyncio
    async def test_start_runs_until_stopped(self, service, sources_provider):
        task = asyncio.create_task(service.start())
        while sources_provider.get_active_sources.await_count == 0:
            await asyncio.sleep(0)

        assert service.is_running
        await service.stop()
        await asyncio.wait_for(task, timeout=5)

        assert not service.is_running
        service.test_closeable.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cycle_error_does_not_stop_loop(self, service, sources_provider):
        sources_provider.get_active_sources.side_effect = RuntimeError("db down")

        task = asyncio.create_task(service.start())
        while sources_provider.get_active_sources.await_count == 0:
            await asyncio.sleep(0)
        health = await service.health_check()
        await service.stop()
        await asyncio.wait_for(task, timeout=5)

        assert health["last_error"] == "db down"
        assert health["running"] is True

    @pytest.mark.asyncio
    async def test_health_check_shape(self, service):
        await service.run_once()
        health = await service.health_check()

        assert health["cycles_run"] == 1
        assert health["cycle_in_progress"] is False
        assert health["auth"]["is_authenticated"] is True
        assert health["last_cycle"]["sources_scanned"] == 2

    @pytest.mark.asyncio
    async def test_build_monitor_service_wiring(self, mock_database):
        from cafewatch.monitor.service import build_monitor_service

        events = MonitorEventBus()
        svc = build_monitor_service(
            mock_database,
            config=MonitorConfig(),
            events=events,
            dispatcher=MagicMock(),
        )

        assert svc.events is events
        assert svc.orchestrator.is_cycle_running is False
        await svc.close()


class TestShutdown:
    """shutdown() drains in-flight cycles before releasing clients."""

    @pytest.mark.asyncio
    async def test_waits_for_manual_cycle(self, service, page_fetcher, state_store, dispatcher, items):
        state_store.seed(1, "cafe", "10")
        page_fetcher.set_page(1, 1, items(11, 10))
        order: list[str] = []
        release = asyncio.Event()

        async def slow_notify(source, new_items):
            await release.wait()
            order.append("dispatched")
            return DispatchSummary(delivered=len(new_items))

        dispatcher.notify_items.side_effect = slow_notify
        service.test_closeable.close.side_effect = lambda: order.append("closed")

        task = service.run_in_background()
        while dispatcher.notify_items.await_count == 0:
            await asyncio.sleep(0)
        asyncio.get_running_loop().call_later(0.05, release.set)

        await asyncio.wait_for(service.shutdown(), timeout=5)

        assert task.done()
        assert order == ["dispatched", "closed"]

    @pytest.mark.asyncio
    async def test_waits_for_loop_task(self, service, sources_provider):
        loop_task = asyncio.create_task(service.start())
        while sources_provider.get_active_sources.await_count == 0:
            await asyncio.sleep(0)

        await asyncio.wait_for(service.shutdown(loop_task), timeout=5)

        assert loop_task.done()
        assert not service.is_running
        service.test_closeable.close.assert_awaited()

    @pytest.mark.asyncio
    async def test_manual_cycle_error_is_contained(self, service, sources_provider):
        sources_provider.get_active_sources.side_effect = RuntimeError("db down")

        task = service.run_in_background()
        await asyncio.wait_for(task, timeout=5)

        assert task.exception() is None
