"""Shared fixtures for API tests."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from cafewatch.api.app import create_app
from cafewatch.api.auth import verify_api_key
from cafewatch.api.dependencies import (
    get_database,
    get_monitor_service,
    get_notification_history,
    get_state_store,
)
from cafewatch.monitor.auth import AuthStatus

CHECKED_AT = datetime(2025, 8, 4, 3, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_state_store():
    """Mock MonitorStateStore."""
    store = AsyncMock()
    store.list_states = AsyncMock(return_value=[])
    store.reset = AsyncMock(return_value=True)
    store.reset_platform = AsyncMock(return_value=0)
    return store


@pytest.fixture
def mock_history():
    """Mock NotificationHistory."""
    history = AsyncMock()
    history.recent = AsyncMock(return_value=[])
    return history


@pytest.fixture
def mock_service():
    """Mock MonitorService with a logged-in auth cache."""
    service = MagicMock()
    service.auth.is_authenticated = True
    service.auth.status = AuthStatus(is_authenticated=True, last_checked_at=CHECKED_AT)
    service.auth.check_status = AsyncMock(return_value=True)
    service.orchestrator.is_cycle_running = False
    service.health_check = AsyncMock(return_value={"running": True, "cycles_run": 3})
    report = MagicMock()
    report.to_dict.return_value = {"cycle_id": "abc", "new_items": 0}
    service.run_once = AsyncMock(return_value=report)
    service.stop = AsyncMock()
    return service


@pytest.fixture
def mock_db():
    """Mock Database."""
    db = AsyncMock()
    db.health_check = AsyncMock(return_value=True)
    return db


@pytest.fixture
def client(mock_state_store, mock_history, mock_service, mock_db):
    """FastAPI TestClient with dependency overrides."""
    app = create_app()

    app.dependency_overrides[verify_api_key] = lambda: "test-key"
    app.dependency_overrides[get_state_store] = lambda: mock_state_store
    app.dependency_overrides[get_notification_history] = lambda: mock_history
    app.dependency_overrides[get_monitor_service] = lambda: mock_service
    app.dependency_overrides[get_database] = lambda: mock_db

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
