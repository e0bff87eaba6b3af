# geobench/api/routes/monitoring.py
"""Status, monitoring switch and metric history routes."""

from typing import Any

from fastapi import APIRouter, Depends, Query

from geobench.api.deps import get_engine
from geobench.api.models.responses import ActionResponse
from geobench.core.engine import TelemetryEngine

router = APIRouter(tags=["Monitoring"])


@router.get("/status", response_model=dict[str, Any], summary="Current service status")
async def get_status(engine: TelemetryEngine = Depends(get_engine)) -> dict[str, Any]:
    """Monitoring flag, latest snapshot, benchmark pointer and live source checks."""
    return await engine.queries.status()


@router.post("/monitoring/start", response_model=ActionResponse, summary="Start performance monitoring")
async def start_monitoring(engine: TelemetryEngine = Depends(get_engine)) -> ActionResponse:
    if await engine.monitor.start():
        return ActionResponse(success=True, message="Monitoring started")
    return ActionResponse(success=False, message="Monitoring already running")


@router.post("/monitoring/stop", response_model=ActionResponse, summary="Stop performance monitoring")
async def stop_monitoring(engine: TelemetryEngine = Depends(get_engine)) -> ActionResponse:
    if await engine.monitor.stop():
        return ActionResponse(success=True, message="Monitoring stopped")
    return ActionResponse(success=False, message="Monitoring not running")


@router.get("/metrics/{name}/history", response_model=dict[str, Any], summary="Range history of one metric")
async def metric_history(
    name: str,
    minutes: int = Query(60, ge=1, le=24 * 60, description="How far back to look"),
    step: str = Query("15s", description="Prometheus resolution step"),
    engine: TelemetryEngine = Depends(get_engine),
) -> dict[str, Any]:
    return await engine.queries.metric_history(name, minutes=minutes, step=step)
