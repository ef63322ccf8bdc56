"""Database models for Uptime Monitor."""

from uptime_monitor.models.user import User
from uptime_monitor.models.monitor import Monitor, MonitorStatus
from uptime_monitor.models.status_check import StatusCheck
from uptime_monitor.models.notification_log import NotificationLog, NotificationKind

__all__ = [
    "User",
    "Monitor",
    "MonitorStatus",
    "StatusCheck",
    "NotificationLog",
    "NotificationKind",
]
