"""Health check and metrics endpoints."""

from datetime import datetime
from fastapi import APIRouter, HTTPException, Request, Response, status

from uptime_monitor import __version__
from uptime_monitor.core.metrics import metrics_collector, CONTENT_TYPE_LATEST
from uptime_monitor.schemas.stats import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint.

    Reports the version and whether the sweep scheduler is running.
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    scheduler_status = scheduler.get_status() if scheduler else {}

    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.utcnow().isoformat(),
        scheduler=scheduler_status.get("state", "stopped"),
        next_sweep=scheduler_status.get("next_run_time"),
        last_sweep=scheduler_status.get("last_sweep_at")
    )


@router.get("/metrics")
async def metrics(request: Request):
    """Prometheus metrics in text exposition format."""
    config = getattr(request.app.state, "config", None)
    if config is not None and not config.prometheus.enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Metrics are disabled")

    return Response(
        content=metrics_collector.generate_metrics(),
        media_type=CONTENT_TYPE_LATEST
    )
