"""Pydantic schemas for history, statistics and health endpoints."""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class MonitorStatsResponse(BaseModel):
    """Schema for aggregate statistics over a trailing window."""
    monitor_id: int
    window_hours: int
    total_checks: int
    up_checks: int
    down_checks: int
    avg_response_time: Optional[float] = None
    min_response_time: Optional[int] = None
    max_response_time: Optional[int] = None
    uptime_percentage: float


class StatusCheckResponse(BaseModel):
    """Schema for a single status check."""
    id: int
    monitor_id: int
    status: str
    response_time: Optional[int] = None
    checked_at: datetime
    error_message: Optional[str] = None

    model_config = {"from_attributes": True}


class StatusHistoryResponse(BaseModel):
    """Schema for a page of status history."""
    monitor_id: int
    checks: List[StatusCheckResponse]
    total: int


class NotificationLogResponse(BaseModel):
    """Schema for a single notification attempt."""
    id: int
    monitor_id: int
    user_email: str
    notification_type: str
    success: bool
    error_message: Optional[str] = None
    sent_at: datetime

    model_config = {"from_attributes": True}


class NotificationLogListResponse(BaseModel):
    """Schema for a monitor's notification log."""
    monitor_id: int
    notifications: List[NotificationLogResponse]
    total: int


class HealthResponse(BaseModel):
    """Schema for health check response."""
    status: str = Field(default="healthy")
    version: str
    timestamp: str
    scheduler: str = Field(default="running")
    next_sweep: Optional[str] = None
    last_sweep: Optional[str] = None
