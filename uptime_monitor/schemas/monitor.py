"""Pydantic schemas for user and monitor operations."""

import re
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

URL_PATTERN = re.compile(r"^(https?://)?([\da-z.-]+)\.([a-z.]{2,6})([/\w .?=&%~+#:-]*)/?$", re.IGNORECASE)
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_url(url: str) -> bool:
    """Whether ``url`` looks like a monitorable web address (scheme optional)."""
    return bool(URL_PATTERN.match(url))


class UserCreate(BaseModel):
    """Schema for registering a user."""
    email: str = Field(..., max_length=255, description="Address receiving alerts")

    @field_validator('email')
    @classmethod
    def email_must_be_valid(cls, v):
        v = v.strip().lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError('Please enter a valid email address')
        return v


class UserResponse(BaseModel):
    """Schema for user response."""
    id: int
    email: str
    created_at: datetime

    model_config = {"from_attributes": True}


class MonitorCreate(BaseModel):
    """Schema for creating a monitor."""
    user_id: int = Field(..., description="Owning user")
    url: str = Field(..., min_length=1, max_length=2048, description="URL to monitor, scheme optional")
    name: Optional[str] = Field(default=None, max_length=255, description="Display name")
    notifications_enabled: bool = Field(default=True, description="Send alerts on transitions")

    @field_validator('url')
    @classmethod
    def strip_url(cls, v):
        return v.strip()


class MonitorUpdate(BaseModel):
    """Schema for updating a monitor (all fields optional)."""
    name: Optional[str] = Field(None, max_length=255)
    notifications_enabled: Optional[bool] = None


class MonitorResponse(BaseModel):
    """Schema for monitor response."""
    id: int
    user_id: int
    url: str
    name: Optional[str] = None
    status: str
    last_checked: Optional[datetime] = None
    response_time: Optional[int] = None
    notifications_enabled: bool
    last_notification_sent: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class MonitorListResponse(BaseModel):
    """Schema for list of monitors."""
    monitors: List[MonitorResponse]
    total: int


class CheckNowResponse(BaseModel):
    """Schema for an on-demand check."""
    monitor_id: int
    status: str
    response_time: Optional[int] = None
    status_code: Optional[int] = None
    error_message: Optional[str] = None
    checked_at: datetime
