"""Monitor operator endpoints: cursors, login state, manual cycles."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from cafewatch.api.auth import verify_api_key
from cafewatch.api.dependencies import (
    get_monitor_service,
    get_notification_history,
    get_state_store,
)
from cafewatch.api.models import (
    AuthStatusResponse,
    ErrorResponse,
    MonitorStateItem,
    MonitorStatesResponse,
    NotificationItem,
    NotificationsResponse,
    ResetStateResponse,
    RunCycleResponse,
)
from cafewatch.monitor.schemas import MonitorState
from cafewatch.monitor.service import MonitorService
from cafewatch.monitor.state import MonitorStateStore
from cafewatch.notify.history import NotificationHistory

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/monitor")

DEFAULT_PLATFORM = "cafe"


def _state_to_item(state: MonitorState) -> MonitorStateItem:
    return MonitorStateItem(
        source_id=state.source_id,
        platform=state.platform,
        last_content_id=state.last_content_id,
        last_check_time=state.last_check_time.isoformat() if state.last_check_time else None,
        last_status=state.last_status.value,
    )


@router.get(
    "/states",
    response_model=MonitorStatesResponse,
    responses={401: {"model": ErrorResponse}},
    summary="List stored cursors",
)
async def list_states(
    platform: str | None = Query(default=None, description="Filter by platform"),
    api_key: str = Depends(verify_api_key),
    store: MonitorStateStore = Depends(get_state_store),
) -> MonitorStatesResponse:
    states = await store.list_states(platform)
    return MonitorStatesResponse(
        states=[_state_to_item(s) for s in states],
        total=len(states),
    )


@router.delete(
    "/states/{source_id}",
    response_model=ResetStateResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Reset one cursor so the source is baselined again",
)
async def reset_state(
    source_id: int,
    platform: str = Query(default=DEFAULT_PLATFORM),
    api_key: str = Depends(verify_api_key),
    store: MonitorStateStore = Depends(get_state_store),
) -> ResetStateResponse:
    if not await store.reset(source_id, platform):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No cursor for source {source_id} on {platform}",
        )
    logger.info("Cursor reset via API", source_id=source_id, platform=platform)
    return ResetStateResponse(source_id=source_id, platform=platform, deleted=1)


@router.delete(
    "/states",
    response_model=ResetStateResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Reset every cursor of a platform",
)
async def reset_platform(
    platform: str = Query(default=DEFAULT_PLATFORM),
    api_key: str = Depends(verify_api_key),
    store: MonitorStateStore = Depends(get_state_store),
) -> ResetStateResponse:
    deleted = await store.reset_platform(platform)
    logger.info("Platform cursors reset via API", platform=platform, deleted=deleted)
    return ResetStateResponse(platform=platform, deleted=deleted)


@router.get(
    "/auth",
    response_model=AuthStatusResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Cached login state",
)
async def get_auth_status(
    api_key: str = Depends(verify_api_key),
    service: MonitorService = Depends(get_monitor_service),
) -> AuthStatusResponse:
    return AuthStatusResponse(**service.auth.status.to_dict())


@router.post(
    "/auth/check",
    response_model=AuthStatusResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Re-check the login state now",
)
async def check_auth(
    api_key: str = Depends(verify_api_key),
    service: MonitorService = Depends(get_monitor_service),
) -> AuthStatusResponse:
    # Returns the cached value if another check is already running
    await service.auth.check_status()
    return AuthStatusResponse(**service.auth.status.to_dict())


@router.post(
    "/run",
    response_model=RunCycleResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={401: {"model": ErrorResponse}},
    summary="Trigger one scan cycle in the background",
)
async def run_cycle(
    api_key: str = Depends(verify_api_key),
    service: MonitorService = Depends(get_monitor_service),
) -> RunCycleResponse:
    in_progress = service.orchestrator.is_cycle_running
    service.run_in_background()

    return RunCycleResponse(accepted=True, cycle_in_progress=in_progress)


@router.get(
    "/notifications",
    response_model=NotificationsResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Recently sent notifications",
)
async def list_notifications(
    limit: int = Query(default=50, ge=1, le=500),
    source_id: int | None = Query(default=None),
    api_key: str = Depends(verify_api_key),
    history: NotificationHistory = Depends(get_notification_history),
) -> NotificationsResponse:
    rows = await history.recent(limit=limit, source_id=source_id)
    return NotificationsResponse(
        notifications=[NotificationItem(**r) for r in rows],
        total=len(rows),
    )
