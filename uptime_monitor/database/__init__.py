"""Database module for Uptime Monitor."""

from uptime_monitor.database.base import Base
from uptime_monitor.database.session import get_db, async_session, configure_database

__all__ = ["Base", "get_db", "async_session", "configure_database"]
