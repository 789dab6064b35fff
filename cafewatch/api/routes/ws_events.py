"""WebSocket endpoint for live monitor events.

Clients connect to ``/ws/events`` and receive every MonitorEvent as a JSON
message (cycle started/completed, source scanned, login state changes,
notifications sent).

Auth is via ``api_key`` query parameter since browsers cannot set
custom headers on WebSocket upgrade requests.
"""

import asyncio
import json
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from cafewatch.api.auth import valid_api_keys
from cafewatch.api.dependencies import get_event_bus
from cafewatch.config.settings import get_settings
from cafewatch.monitor.events import MonitorEvent, MonitorEventType

logger = logging.getLogger(__name__)

router = APIRouter()


def _validate_api_key(api_key: str | None) -> bool:
    """Query-param variant of ``verify_api_key``; True in dev mode."""
    settings = get_settings()
    if not settings.api_keys:
        return True
    if api_key is None:
        return False
    valid_keys = valid_api_keys()
    return bool(valid_keys) and api_key in valid_keys


@router.websocket("/ws/events")
async def ws_events(
    ws: WebSocket,
    event_type: str | None = Query(default=None, alias="type"),
    api_key: str | None = Query(default=None),
) -> None:
    """Stream monitor events.

    Query parameters:
        type: Only forward events of this type (e.g. notification_sent).
        api_key: API key for authentication.
    """
    settings = get_settings()

    if not settings.ws_events_enabled:
        await ws.close(code=1008, reason="WebSocket events not enabled")
        return

    if not _validate_api_key(api_key):
        await ws.close(code=1008, reason="Invalid or missing API key")
        return

    if event_type and event_type not in {t.value for t in MonitorEventType}:
        await ws.close(code=1008, reason=f"Invalid event type: {event_type}")
        return

    bus = get_event_bus()
    queue = bus.subscribe()
    if queue is None:
        await ws.close(code=1008, reason="Max connections reached")
        return

    await ws.accept()

    async def _forward() -> None:
        while True:
            event: MonitorEvent = await queue.get()
            if event_type and event.type.value != event_type:
                continue
            await ws.send_text(json.dumps(event.to_dict(), ensure_ascii=False, default=str))

    sender = asyncio.create_task(_forward())
    try:
        while True:
            try:
                raw = await ws.receive_text()
            except WebSocketDisconnect:
                break
            # Accept client-initiated pings
            try:
                msg = json.loads(raw)
                if isinstance(msg, dict) and msg.get("type") == "ping":
                    await ws.send_text(json.dumps({"type": "pong"}))
            except json.JSONDecodeError:
                pass
    finally:
        sender.cancel()
        bus.unsubscribe(queue)
        logger.debug("Event stream client disconnected")
