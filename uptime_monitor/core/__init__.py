"""Core checking and notification engine."""

from uptime_monitor.core.prober import URLProber, ProbeResult
from uptime_monitor.core.history import HistoryRecorder
from uptime_monitor.core.transitions import TransitionNotifier, next_state, format_duration
from uptime_monitor.core.scheduler import MonitorScheduler, SchedulerState

__all__ = [
    "URLProber",
    "ProbeResult",
    "HistoryRecorder",
    "TransitionNotifier",
    "next_state",
    "format_duration",
    "MonitorScheduler",
    "SchedulerState",
]
