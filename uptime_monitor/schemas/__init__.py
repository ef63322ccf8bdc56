"""Pydantic schemas for API request/response validation."""

from uptime_monitor.schemas.monitor import (
    UserCreate,
    UserResponse,
    MonitorCreate,
    MonitorUpdate,
    MonitorResponse,
    MonitorListResponse,
    CheckNowResponse,
)
from uptime_monitor.schemas.stats import (
    MonitorStatsResponse,
    StatusHistoryResponse,
    NotificationLogListResponse,
    HealthResponse,
)

__all__ = [
    "UserCreate",
    "UserResponse",
    "MonitorCreate",
    "MonitorUpdate",
    "MonitorResponse",
    "MonitorListResponse",
    "CheckNowResponse",
    "MonitorStatsResponse",
    "StatusHistoryResponse",
    "NotificationLogListResponse",
    "HealthResponse",
]
