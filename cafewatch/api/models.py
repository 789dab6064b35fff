"""
Request and response models for the monitor API.
"""

from pydantic import BaseModel, Field


class ComponentHealth(BaseModel):
    """Health of one infrastructure component."""

    status: str = Field(..., description="healthy or unhealthy")
    latency_ms: float | None = Field(default=None)
    details: dict = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(
        ...,
        description="Overall service status: healthy, degraded, or unhealthy",
    )
    authenticated: bool = Field(
        default=False,
        description="Cached login state of the shared session",
    )
    components: dict[str, ComponentHealth] = Field(default_factory=dict)
    monitor: dict = Field(default_factory=dict, description="Monitor service stats")
    version: str = Field(..., description="Service version")


class MonitorStateItem(BaseModel):
    source_id: int
    platform: str
    last_content_id: str | None = None
    last_check_time: str | None = None
    last_status: str


class MonitorStatesResponse(BaseModel):
    states: list[MonitorStateItem]
    total: int


class ResetStateResponse(BaseModel):
    source_id: int | None = None
    platform: str
    deleted: int = Field(..., description="Number of cursors removed")


class AuthStatusResponse(BaseModel):
    is_authenticated: bool
    last_checked_at: str | None = None
    refresh_in_progress: bool = False
    last_error: str | None = None


class RunCycleResponse(BaseModel):
    accepted: bool
    cycle_in_progress: bool = Field(
        ...,
        description="A cycle was already running; the new one queues behind it",
    )


class NotificationItem(BaseModel):
    unique_key: str
    source_id: int
    platform: str
    item_id: str
    title: str
    body: str
    url: str
    delivered: bool
    created_at: str | None = None


class NotificationsResponse(BaseModel):
    notifications: list[NotificationItem]
    total: int


class ErrorResponse(BaseModel):
    detail: str
