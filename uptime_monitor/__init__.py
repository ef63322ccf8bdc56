"""Uptime Monitor - URL monitoring with status history and email alerts."""

__version__ = "1.0.0"
