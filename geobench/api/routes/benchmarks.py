# geobench/api/routes/benchmarks.py
"""Benchmark control and history routes."""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from geobench.api.deps import get_engine
from geobench.api.models.requests import BenchmarkImportRequest, BenchmarkStartRequest
from geobench.api.models.responses import ActionResponse, ErrorResponse
from geobench.core.engine import TelemetryEngine
from geobench.core.exceptions import APIValidationError

router = APIRouter(prefix="/benchmarks", tags=["Benchmarks"])


@router.post(
    "",
    response_model=ActionResponse,
    summary="Start a benchmark",
    responses={409: {"model": ErrorResponse, "description": "A benchmark is already running"}},
)
async def start_benchmark(
    request: Optional[BenchmarkStartRequest] = None,
    engine: TelemetryEngine = Depends(get_engine),
) -> ActionResponse:
    """Launch a run in the background and return its ID immediately."""
    config = request.to_config() if request else {}
    run_id = await engine.queries.start_benchmark(config)
    return ActionResponse(success=True, message="Benchmark started", id=run_id)


@router.post(
    "/cancel",
    response_model=ActionResponse,
    summary="Cancel the running benchmark",
    responses={409: {"model": ErrorResponse, "description": "No benchmark is running"}},
)
async def cancel_benchmark(engine: TelemetryEngine = Depends(get_engine)) -> ActionResponse:
    run_id = await engine.orchestrator.cancel()
    return ActionResponse(success=True, message="Benchmark cancellation requested", id=run_id)


@router.post("/import", response_model=ActionResponse, summary="Record an external benchmark result")
async def import_benchmark(
    request: BenchmarkImportRequest,
    engine: TelemetryEngine = Depends(get_engine),
) -> ActionResponse:
    if request.start_time and request.end_time and request.end_time.timestamp() < request.start_time.timestamp():
        raise APIValidationError("end_time is before start_time", field="end_time")
    run_id = engine.orchestrator.import_run(request.model_dump())
    return ActionResponse(success=True, message="Benchmark recorded", id=run_id)


@router.get("/history", response_model=dict[str, Any], summary="Benchmark history and aggregates")
async def benchmark_history(
    region: Optional[str] = Query(None, description="Region filter, 'all' for none"),
    workload: Optional[str] = Query(None, description="Workload filter, 'all' for none"),
    time_window: Optional[str] = Query(None, alias="time", description="24h, 7d, 30d or all"),
    engine: TelemetryEngine = Depends(get_engine),
) -> dict[str, Any]:
    return engine.queries.history(region=region, workload=workload, time_window=time_window)


@router.get(
    "/{run_id}",
    response_model=dict[str, Any],
    summary="Benchmark details",
    responses={404: {"model": ErrorResponse, "description": "Unknown run ID"}},
)
async def benchmark_details(run_id: str, engine: TelemetryEngine = Depends(get_engine)) -> dict[str, Any]:
    return engine.queries.benchmark_details(run_id)
