"""
Dependency injection for FastAPI endpoints.
"""

import asyncio

from cafewatch.monitor.events import MonitorEventBus
from cafewatch.monitor.state import MonitorStateStore
from cafewatch.monitor.service import MonitorService, build_monitor_service
from cafewatch.notify.history import NotificationHistory
from cafewatch.storage.database import Database

# Global instances (initialized on first request)
_database: Database | None = None
_event_bus: MonitorEventBus | None = None
_monitor_service: MonitorService | None = None


async def get_database() -> Database:
    """Get the shared database, connecting on first use."""
    global _database

    if _database is None:
        _database = Database()
        await _database.connect()

    return _database


def get_event_bus() -> MonitorEventBus:
    global _event_bus

    if _event_bus is None:
        _event_bus = MonitorEventBus()

    return _event_bus


async def get_monitor_service() -> MonitorService:
    """
    Get the monitor service instance.

    Creates a singleton wired to the shared database and event bus.
    """
    global _monitor_service

    if _monitor_service is None:
        database = await get_database()
        _monitor_service = build_monitor_service(database, events=get_event_bus())

    return _monitor_service


async def get_state_store() -> MonitorStateStore:
    return MonitorStateStore(await get_database())


async def get_notification_history() -> NotificationHistory:
    return NotificationHistory(await get_database())


async def cleanup_dependencies(loop_task: asyncio.Task | None = None) -> None:
    """
    Stop the service and close connections on shutdown.

    The database closes only after the monitor loop and any manual cycle
    have finished their last writes.
    """
    global _database, _monitor_service, _event_bus

    if _monitor_service is not None:
        await _monitor_service.shutdown(loop_task)
        _monitor_service = None
    elif loop_task is not None:
        await asyncio.gather(loop_task, return_exceptions=True)

    if _database is not None:
        await _database.close()
        _database = None

    _event_bus = None
