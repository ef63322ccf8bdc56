"""Scheduler running periodic sweeps over all monitors using APScheduler."""

import asyncio
import dataclasses
import enum
import time
from datetime import datetime
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker

from uptime_monitor.config import Config
from uptime_monitor.core.exceptions import StoreUnavailable
from uptime_monitor.core.history import HistoryRecorder
from uptime_monitor.core.metrics import metrics_collector
from uptime_monitor.core.notifier import Notifier
from uptime_monitor.core.prober import ProbeResult, URLProber
from uptime_monitor.core.store import MonitorRecord, MonitorStore
from uptime_monitor.core.transitions import TransitionNotifier
from uptime_monitor.models.monitor import MonitorStatus
from uptime_monitor.utils.logger import get_logger

logger = get_logger(__name__)


class SchedulerState(str, enum.Enum):
    """Lifecycle state of the monitor scheduler."""
    STOPPED = "stopped"
    RUNNING = "running"


class MonitorScheduler:
    """
    Owns the repeating sweep over every registered monitor.

    Each sweep checks monitors one at a time (probe, record, detect) with a
    fixed delay between them. Sweeps never overlap. Stopping clears the
    timer without interrupting a sweep that is already running.
    """

    JOB_ID = "monitor_sweep"

    def __init__(
        self,
        prober: URLProber,
        history: HistoryRecorder,
        detector: TransitionNotifier,
        store: MonitorStore,
        interval_ms: int = 5 * 60 * 1000,
        check_delay: float = 1.0
    ):
        """
        Initialize monitor scheduler.

        Args:
            prober: Prober performing the HTTP checks
            history: Recorder persisting check results
            detector: Transition detector sending alerts
            store: Store loading monitors
            interval_ms: Sweep interval in milliseconds
            check_delay: Delay between two monitors of a sweep, in seconds
        """
        self.prober = prober
        self.history = history
        self.detector = detector
        self.store = store
        self.interval_ms = interval_ms
        self.check_delay = check_delay
        self.scheduler = AsyncIOScheduler()
        self.state = SchedulerState.STOPPED
        self.last_sweep_at: Optional[datetime] = None
        self._sweep_lock = asyncio.Lock()
        self._monitor_locks: Dict[int, asyncio.Lock] = {}

        logger.info(
            "Monitor scheduler initialized",
            extra={"interval_ms": interval_ms, "check_delay": check_delay}
        )

    @classmethod
    def from_config(
        cls,
        config: Config,
        notifier: Notifier,
        session_factory: Optional[async_sessionmaker] = None
    ) -> "MonitorScheduler":
        """Wire prober, recorder, store and detector from configuration."""
        monitoring = config.monitoring
        store = MonitorStore(session_factory)
        history = HistoryRecorder(session_factory)
        prober = URLProber(
            timeout=monitoring.probe_timeout,
            max_redirects=monitoring.max_redirects,
            user_agent=monitoring.user_agent
        )
        return cls(
            prober=prober,
            history=history,
            detector=TransitionNotifier(
                notifier, store, history, enabled=config.notifications.enabled
            ),
            store=store,
            interval_ms=monitoring.interval_ms,
            check_delay=monitoring.check_delay
        )

    @property
    def is_running(self) -> bool:
        return self.state == SchedulerState.RUNNING

    async def start(self) -> None:
        """Run one sweep immediately, then every ``interval_ms``."""
        if self.is_running:
            logger.warning("Monitor scheduler is already running")
            return

        await self.prober.start()

        self.scheduler.add_job(
            self.sweep,
            trigger=IntervalTrigger(seconds=self.interval_ms / 1000),
            id=self.JOB_ID,
            name="Sweep all monitors",
            next_run_time=datetime.now(),
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        if not self.scheduler.running:
            self.scheduler.start()

        self.state = SchedulerState.RUNNING
        logger.info(
            "Monitor scheduler started",
            extra={"interval_seconds": self.interval_ms / 1000}
        )

    async def stop(self) -> None:
        """Clear the repeating timer. A sweep in progress runs to completion."""
        if not self.is_running:
            logger.warning("Monitor scheduler is not running")
            return

        if self.scheduler.get_job(self.JOB_ID):
            self.scheduler.remove_job(self.JOB_ID)

        self.state = SchedulerState.STOPPED
        logger.info("Monitor scheduler stopped")

    async def close(self) -> None:
        """Stop, shut APScheduler down and release the HTTP session."""
        if self.is_running:
            await self.stop()

        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        await self.prober.close()

    async def sweep(self) -> int:
        """
        Check every monitor once, sequentially.

        A failure while checking one monitor is logged and the sweep moves
        on to the next one.

        Returns:
            int: Number of monitors loaded for this sweep
        """
        async with self._sweep_lock:
            started = time.monotonic()

            try:
                monitors = await self.store.list_monitors()
            except StoreUnavailable as e:
                logger.error(
                    "Could not load monitors, skipping sweep",
                    extra={"error": str(e)}
                )
                return 0

            logger.info("Checking monitors", extra={"count": len(monitors)})

            failed = 0
            for index, monitor in enumerate(monitors):
                if index and self.check_delay:
                    await asyncio.sleep(self.check_delay)

                try:
                    if await self.refresh_and_check(monitor.id) is None:
                        logger.debug(
                            "Monitor removed during sweep",
                            extra={"monitor_id": monitor.id}
                        )
                except Exception as e:
                    failed += 1
                    logger.exception(
                        "Error while checking monitor",
                        extra={
                            "monitor_id": monitor.id,
                            "url": monitor.url,
                            "error": str(e)
                        }
                    )

            duration = time.monotonic() - started
            self.last_sweep_at = datetime.utcnow()
            metrics_collector.record_sweep(len(monitors), duration)

            logger.info(
                "Completed checking monitors",
                extra={
                    "count": len(monitors),
                    "failed": failed,
                    "duration_seconds": round(duration, 3)
                }
            )
            return len(monitors)

    def _monitor_lock(self, monitor_id: int) -> asyncio.Lock:
        return self._monitor_locks.setdefault(monitor_id, asyncio.Lock())

    def forget_monitor(self, monitor_id: int) -> None:
        """Drop per-monitor state of a deleted monitor."""
        self._monitor_locks.pop(monitor_id, None)

    async def refresh_and_check(self, monitor_id: int) -> Optional[ProbeResult]:
        """
        Re-read a monitor and check it against its current stored state.

        Checks of the same monitor are serialized, so a sweep and an
        on-demand check never both act on the same prior state.

        Returns:
            ProbeResult: Result of the check, or None if the monitor is gone
        """
        async with self._monitor_lock(monitor_id):
            monitor = await self.store.get_monitor(monitor_id)
            if monitor is None:
                return None
            return await self.check_monitor(monitor)

    async def check_monitor(self, monitor: MonitorRecord) -> ProbeResult:
        """
        Probe one monitor, persist the result and process the transition.

        Args:
            monitor: Snapshot whose status is the state before this check

        Returns:
            ProbeResult: Result of the probe
        """
        result = await self.prober.probe(monitor.url)
        metrics_collector.record_probe(monitor.id, result.status.value, result.latency_ms)

        await self.history.record(
            monitor.id,
            result.status,
            result.latency_ms,
            result.error_detail,
            checked_at=result.checked_at
        )
        await self.history.update_current_status(
            monitor.id,
            result.status,
            result.latency_ms,
            checked_at=result.checked_at
        )
        await self.detector.handle(monitor, result.status, now=result.checked_at)

        return result

    async def check_new_monitor(self, monitor_id: int) -> Optional[ProbeResult]:
        """
        Initial check of a freshly created monitor, outside the periodic sweep.

        The prior state is taken as ``pending`` so the first result only sets
        the baseline. Errors are logged, never raised.

        Args:
            monitor_id: ID of the created monitor

        Returns:
            ProbeResult: Result of the check, or None if it could not run
        """
        try:
            monitor = await self.store.get_monitor(monitor_id)
            if monitor is None:
                logger.warning(
                    "Monitor not found for initial check",
                    extra={"monitor_id": monitor_id}
                )
                return None

            async with self._monitor_lock(monitor_id):
                result = await self.check_monitor(
                    dataclasses.replace(monitor, status=MonitorStatus.PENDING)
                )
            logger.info(
                "Initial status check completed",
                extra={"monitor_id": monitor_id, "status": result.status.value}
            )
            return result

        except Exception as e:
            logger.exception(
                "Error during initial status check",
                extra={"monitor_id": monitor_id, "error": str(e)}
            )
            return None

    def get_status(self) -> Dict[str, Any]:
        """Scheduler state and next planned sweep, for the health endpoint."""
        job = self.scheduler.get_job(self.JOB_ID) if self.is_running else None
        next_run = getattr(job, "next_run_time", None) if job else None
        return {
            "state": self.state.value,
            "interval_ms": self.interval_ms,
            "next_run_time": next_run.isoformat() if next_run else None,
            "last_sweep_at": self.last_sweep_at.isoformat() if self.last_sweep_at else None,
        }
