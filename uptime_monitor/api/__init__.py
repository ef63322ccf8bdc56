"""API routers."""

from uptime_monitor.api import health, monitors, stats, users

__all__ = ["health", "monitors", "stats", "users"]
