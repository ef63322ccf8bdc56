"""Monitor management API routes."""

from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status, Request, Query
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from uptime_monitor.core.metrics import metrics_collector
from uptime_monitor.core.rate_limiter import limiter
from uptime_monitor.database.session import get_db
from uptime_monitor.models.monitor import Monitor, MonitorStatus
from uptime_monitor.models.user import User
from uptime_monitor.schemas.monitor import (
    MonitorCreate,
    MonitorUpdate,
    MonitorResponse,
    MonitorListResponse,
    CheckNowResponse,
    is_valid_url
)
from uptime_monitor.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


async def _get_monitor_or_404(db: AsyncSession, monitor_id: int) -> Monitor:
    result = await db.execute(select(Monitor).where(Monitor.id == monitor_id))
    monitor = result.scalar_one_or_none()

    if not monitor:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Monitor {monitor_id} not found"
        )
    return monitor


@router.get("/monitors", response_model=MonitorListResponse)
@limiter.limit("100/minute")
async def list_monitors(
    request: Request,
    user_id: Optional[int] = Query(None, description="Only monitors owned by this user"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db)
):
    """
    List monitors, optionally restricted to one user.

    Args:
        request: FastAPI request object
        user_id: Owner filter
        skip: Number of records to skip
        limit: Maximum number of records to return
        db: Database session
    """
    query = select(Monitor)
    if user_id is not None:
        query = query.where(Monitor.user_id == user_id)

    result = await db.execute(query.order_by(Monitor.id).offset(skip).limit(limit))
    monitors = result.scalars().all()

    count_result = await db.execute(
        select(Monitor.id) if user_id is None
        else select(Monitor.id).where(Monitor.user_id == user_id)
    )
    total = len(count_result.all())

    return MonitorListResponse(
        monitors=[MonitorResponse.model_validate(m) for m in monitors],
        total=total
    )


@router.post("/monitors", response_model=MonitorResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("50/minute")
async def create_monitor(
    request: Request,
    monitor_data: MonitorCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a URL for monitoring.

    The monitor starts ``pending``; an initial check runs in the background
    right after the response is sent.

    Raises:
        HTTPException: 400 for a malformed URL or one the user already
            monitors, 404 for an unknown user
    """
    if not is_valid_url(monitor_data.url):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please enter a valid URL"
        )

    user_result = await db.execute(select(User).where(User.id == monitor_data.user_id))
    if not user_result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {monitor_data.user_id} not found"
        )

    existing = await db.execute(
        select(Monitor).where(
            and_(Monitor.user_id == monitor_data.user_id, Monitor.url == monitor_data.url)
        )
    )
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This URL is already being monitored"
        )

    monitor = Monitor(
        user_id=monitor_data.user_id,
        url=monitor_data.url,
        name=monitor_data.name,
        status=MonitorStatus.PENDING.value,
        notifications_enabled=monitor_data.notifications_enabled
    )
    db.add(monitor)
    # Committed here so the background check can load the row
    await db.commit()
    await db.refresh(monitor)

    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None:
        background_tasks.add_task(scheduler.check_new_monitor, monitor.id)

    logger.info(
        "Created monitor",
        extra={"monitor_id": monitor.id, "user_id": monitor.user_id, "url": monitor.url}
    )
    return MonitorResponse.model_validate(monitor)


@router.get("/monitors/{monitor_id}", response_model=MonitorResponse)
@limiter.limit("100/minute")
async def get_monitor(
    request: Request,
    monitor_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Get a monitor by ID."""
    monitor = await _get_monitor_or_404(db, monitor_id)
    return MonitorResponse.model_validate(monitor)


@router.patch("/monitors/{monitor_id}", response_model=MonitorResponse)
@limiter.limit("50/minute")
async def update_monitor(
    request: Request,
    monitor_id: int,
    monitor_data: MonitorUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Rename a monitor or toggle its notifications."""
    monitor = await _get_monitor_or_404(db, monitor_id)

    update_data = monitor_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(monitor, field, value)

    await db.commit()
    await db.refresh(monitor)

    logger.info(
        "Updated monitor",
        extra={"monitor_id": monitor_id, "fields": sorted(update_data)}
    )
    return MonitorResponse.model_validate(monitor)


@router.delete("/monitors/{monitor_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("50/minute")
async def delete_monitor(
    request: Request,
    monitor_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Delete a monitor together with its history and notification log."""
    monitor = await _get_monitor_or_404(db, monitor_id)

    await db.delete(monitor)
    await db.commit()
    metrics_collector.forget_monitor(monitor_id)
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.forget_monitor(monitor_id)

    logger.info("Deleted monitor", extra={"monitor_id": monitor_id})


@router.post("/monitors/{monitor_id}/check", response_model=CheckNowResponse)
@limiter.limit("10/minute")
async def check_monitor_now(
    request: Request,
    monitor_id: int
):
    """
    Check a monitor immediately, outside the periodic sweep.

    The result is recorded and transitions notify exactly as in a sweep.
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scheduler is not available"
        )

    result = await scheduler.refresh_and_check(monitor_id)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Monitor {monitor_id} not found"
        )

    return CheckNowResponse(
        monitor_id=monitor_id,
        status=result.status.value,
        response_time=result.latency_ms,
        status_code=result.status_code,
        error_message=result.error_detail,
        checked_at=result.checked_at
    )
