"""History recorder: status-check history, cached monitor status and uptime stats."""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func, and_, case, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from uptime_monitor.core.store import store_session
from uptime_monitor.database.session import async_session
from uptime_monitor.models.monitor import Monitor, MonitorStatus
from uptime_monitor.models.status_check import StatusCheck
from uptime_monitor.utils.logger import get_logger

logger = get_logger(__name__)


class HistoryRecorder:
    """
    Appends status checks and aggregates them over a trailing window.

    Every write is a single statement committed on its own session, so the
    recorder tolerates concurrent reads and writes from the API layer.
    """

    DEFAULT_WINDOW_HOURS = 24

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        """
        Initialize history recorder.

        Args:
            session_factory: Async session factory (defaults to the application's)
        """
        self.session_factory = session_factory or async_session

    async def record(
        self,
        monitor_id: int,
        status: MonitorStatus,
        latency_ms: Optional[int],
        error_detail: Optional[str],
        checked_at: Optional[datetime] = None
    ) -> StatusCheck:
        """
        Append one status-check record.

        Args:
            monitor_id: Monitor that was checked
            status: ``up`` or ``down``
            latency_ms: Observed latency (nullable)
            error_detail: Error detail for down checks
            checked_at: Check timestamp (defaults to now)

        Returns:
            StatusCheck: The stored record

        Raises:
            StoreUnavailable: If the store failed
        """
        check = StatusCheck(
            monitor_id=monitor_id,
            status=MonitorStatus(status).value,
            response_time=latency_ms,
            error_message=error_detail,
            checked_at=checked_at or datetime.utcnow()
        )
        async with store_session(self.session_factory) as db:
            db.add(check)
            await db.commit()

        logger.debug(
            "Status check recorded",
            extra={
                "monitor_id": monitor_id,
                "status": check.status,
                "response_time": latency_ms
            }
        )
        return check

    async def update_current_status(
        self,
        monitor_id: int,
        status: MonitorStatus,
        latency_ms: Optional[int],
        checked_at: Optional[datetime] = None
    ) -> None:
        """
        Overwrite the monitor's cached status, latency and last-checked fields.

        Raises:
            StoreUnavailable: If the store failed
        """
        async with store_session(self.session_factory) as db:
            await db.execute(
                update(Monitor)
                .where(Monitor.id == monitor_id)
                .values(
                    status=MonitorStatus(status).value,
                    response_time=latency_ms,
                    last_checked=checked_at or datetime.utcnow()
                )
            )
            await db.commit()

    async def last_down_at(
        self,
        monitor_id: int,
        before: Optional[datetime] = None
    ) -> Optional[datetime]:
        """
        Timestamp of the most recent ``down`` record at or before ``before``.

        Returns:
            datetime: Timestamp, or None if the history holds no down record
        """
        before = before or datetime.utcnow()
        async with store_session(self.session_factory) as db:
            result = await db.execute(
                select(func.max(StatusCheck.checked_at)).where(
                    and_(
                        StatusCheck.monitor_id == monitor_id,
                        StatusCheck.status == MonitorStatus.DOWN.value,
                        StatusCheck.checked_at <= before
                    )
                )
            )
            return result.scalar()

    async def stats(
        self,
        monitor_id: int,
        window_hours: int = DEFAULT_WINDOW_HOURS
    ) -> Dict[str, Any]:
        """
        Aggregate statistics over the trailing window.

        Latency aggregates only consider ``up`` checks. With no checks in the
        window the uptime percentage is 0.

        Args:
            monitor_id: Monitor ID
            window_hours: Window length in hours

        Returns:
            dict: Counts, latency aggregates and uptime percentage

        Example:
            ```python
            stats = await recorder.stats(monitor_id=1, window_hours=24)
            print(f"Uptime: {stats['uptime_percentage']}%")
            ```
        """
        since = datetime.utcnow() - timedelta(hours=window_hours)
        up_latency = case(
            (StatusCheck.status == MonitorStatus.UP.value, StatusCheck.response_time),
            else_=None
        )

        async with store_session(self.session_factory) as db:
            result = await db.execute(
                select(
                    func.count(StatusCheck.id),
                    func.sum(case((StatusCheck.status == MonitorStatus.UP.value, 1), else_=0)),
                    func.sum(case((StatusCheck.status == MonitorStatus.DOWN.value, 1), else_=0)),
                    func.avg(up_latency),
                    func.min(up_latency),
                    func.max(up_latency),
                ).where(
                    and_(
                        StatusCheck.monitor_id == monitor_id,
                        StatusCheck.checked_at > since
                    )
                )
            )
            total, up, down, avg_latency, min_latency, max_latency = result.one()

        total = total or 0
        up = up or 0
        down = down or 0

        if total == 0:
            logger.debug(
                "No checks in stats window",
                extra={"monitor_id": monitor_id, "window_hours": window_hours}
            )
            uptime_percentage = 0.0
        else:
            uptime_percentage = round(up / total * 100, 2)

        return {
            "monitor_id": monitor_id,
            "window_hours": window_hours,
            "total_checks": total,
            "up_checks": up,
            "down_checks": down,
            "avg_response_time": round(float(avg_latency), 2) if avg_latency is not None else None,
            "min_response_time": min_latency,
            "max_response_time": max_latency,
            "uptime_percentage": uptime_percentage,
        }

    async def history(
        self,
        monitor_id: int,
        limit: int = 100,
        offset: int = 0
    ) -> Tuple[List[StatusCheck], int]:
        """
        Page through a monitor's history, newest first.

        Returns:
            tuple: (records, total record count)
        """
        async with store_session(self.session_factory) as db:
            count_result = await db.execute(
                select(func.count(StatusCheck.id)).where(StatusCheck.monitor_id == monitor_id)
            )
            total = count_result.scalar() or 0

            result = await db.execute(
                select(StatusCheck)
                .where(StatusCheck.monitor_id == monitor_id)
                .order_by(StatusCheck.checked_at.desc(), StatusCheck.id.desc())
                .offset(offset)
                .limit(limit)
            )
            return list(result.scalars().all()), total
