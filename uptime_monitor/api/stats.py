"""Statistics, history and notification-log API routes."""

from fastapi import APIRouter, Depends, HTTPException, Query, status, Request
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from uptime_monitor.core.history import HistoryRecorder
from uptime_monitor.core.rate_limiter import limiter
from uptime_monitor.database.session import get_db
from uptime_monitor.models.monitor import Monitor
from uptime_monitor.models.notification_log import NotificationLog
from uptime_monitor.schemas.stats import (
    MonitorStatsResponse,
    StatusCheckResponse,
    StatusHistoryResponse,
    NotificationLogResponse,
    NotificationLogListResponse
)
from uptime_monitor.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def get_history_recorder(request: Request) -> HistoryRecorder:
    """Recorder shared with the running scheduler, or a fresh one."""
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None:
        return scheduler.history
    return HistoryRecorder()


async def _ensure_monitor(db: AsyncSession, monitor_id: int) -> None:
    result = await db.execute(select(Monitor.id).where(Monitor.id == monitor_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Monitor {monitor_id} not found"
        )


@router.get("/monitors/{monitor_id}/stats", response_model=MonitorStatsResponse)
@limiter.limit("200/minute")
async def get_monitor_stats(
    request: Request,
    monitor_id: int,
    hours: int = Query(default=HistoryRecorder.DEFAULT_WINDOW_HOURS, ge=1, le=720),
    db: AsyncSession = Depends(get_db),
    history: HistoryRecorder = Depends(get_history_recorder)
):
    """
    Get uptime statistics for a monitor over the last ``hours`` hours.

    Args:
        monitor_id: Monitor ID
        hours: Window length (1 to 720)
    """
    await _ensure_monitor(db, monitor_id)

    stats = await history.stats(monitor_id, window_hours=hours)

    logger.info(
        "Retrieved monitor stats",
        extra={
            "monitor_id": monitor_id,
            "window_hours": hours,
            "uptime": stats["uptime_percentage"]
        }
    )
    return MonitorStatsResponse(**stats)


@router.get("/monitors/{monitor_id}/history", response_model=StatusHistoryResponse)
@limiter.limit("200/minute")
async def get_monitor_history(
    request: Request,
    monitor_id: int,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    history: HistoryRecorder = Depends(get_history_recorder)
):
    """Page through a monitor's status history, newest first."""
    await _ensure_monitor(db, monitor_id)

    checks, total = await history.history(monitor_id, limit=limit, offset=offset)

    return StatusHistoryResponse(
        monitor_id=monitor_id,
        checks=[StatusCheckResponse.model_validate(c) for c in checks],
        total=total
    )


@router.get("/monitors/{monitor_id}/notifications", response_model=NotificationLogListResponse)
@limiter.limit("100/minute")
async def get_monitor_notifications(
    request: Request,
    monitor_id: int,
    limit: int = Query(default=50, ge=1, le=500),
    db: AsyncSession = Depends(get_db)
):
    """List notification attempts for a monitor, newest first."""
    await _ensure_monitor(db, monitor_id)

    count_result = await db.execute(
        select(func.count(NotificationLog.id)).where(NotificationLog.monitor_id == monitor_id)
    )
    total = count_result.scalar() or 0

    result = await db.execute(
        select(NotificationLog)
        .where(NotificationLog.monitor_id == monitor_id)
        .order_by(NotificationLog.sent_at.desc(), NotificationLog.id.desc())
        .limit(limit)
    )

    return NotificationLogListResponse(
        monitor_id=monitor_id,
        notifications=[NotificationLogResponse.model_validate(n) for n in result.scalars().all()],
        total=total
    )
