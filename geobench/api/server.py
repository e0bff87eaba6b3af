# geobench/api/server.py
"""
FastAPI Server for GeoBench

Provides REST API and WebSocket endpoints for:
- Benchmark control (start, cancel, import) and history
- Monitoring status and the monitoring switch
- Live updates over /ws
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from geobench import __version__
from geobench.api.models.responses import HealthResponse
from geobench.api.routes import benchmarks_router, monitoring_router
from geobench.config.settings import Settings, get_settings
from geobench.core.engine import TelemetryEngine
from geobench.core.exceptions import HTTP_STATUS_BY_CODE, APIException, GeoBenchException
from geobench.core.runtime import RUNTIME_ID, get_runtime_info
from geobench.utils.logger import logger, setup_logger


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use; the cached settings when omitted
        transport: Optional httpx transport for the metric backends
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan handler."""
        logger.info("=" * 60)
        logger.info("Starting GeoBench API server...")
        logger.info(f"Runtime ID: {RUNTIME_ID}")
        logger.info("=" * 60)

        engine = TelemetryEngine(settings, transport=transport)
        await engine.initialize()
        app.state.engine = engine

        yield

        logger.info("Shutting down GeoBench API server...")
        await engine.shutdown()
        logger.info("GeoBench API server shutdown complete")

    app = FastAPI(
        title="GeoBench API",
        description="Benchmark orchestration and performance telemetry",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    cors = settings.api.cors
    if cors.enabled:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors.origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all API requests and responses."""
        start_time = time.time()
        request_id = f"{int(start_time * 1000)}"

        logger.info(f">>> REQUEST [{request_id}] {request.method} {request.url.path}")
        if request.query_params:
            logger.debug(f"    Query params: {dict(request.query_params)}")

        try:
            response = await call_next(request)
            process_time = (time.time() - start_time) * 1000

            logger.info(f"<<< RESPONSE [{request_id}] {response.status_code} ({process_time:.2f}ms)")

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{process_time:.2f}ms"
            response.headers["X-Runtime-ID"] = RUNTIME_ID

            return response
        except Exception as e:
            process_time = (time.time() - start_time) * 1000
            logger.error(f"<<< ERROR [{request_id}] {type(e).__name__}: {e} ({process_time:.2f}ms)")
            raise

    app.include_router(benchmarks_router, prefix="/api/v1")
    app.include_router(monitoring_router, prefix="/api/v1")

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health(request: Request) -> Any:
        """Health check endpoint."""
        engine: Optional[TelemetryEngine] = getattr(request.app.state, "engine", None)
        if engine is None:
            return HealthResponse(status="starting", version=__version__, runtime=get_runtime_info(), components={})

        current = engine.orchestrator.current
        return HealthResponse(
            status="healthy" if engine.is_initialized else "degraded",
            version=__version__,
            runtime=get_runtime_info(),
            components={
                "monitoring": {"active": engine.monitor.is_monitoring, "ticks": engine.monitor.ticks},
                "benchmark": {"running": current is not None, "current_id": current.id if current else None},
                "sources": engine.store.snapshot()["sources"],
                "websocket": engine.hub.get_stats(),
            },
        )

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        """WebSocket endpoint for real-time updates."""
        hub = websocket.app.state.engine.hub
        client_id = await hub.connect(websocket)

        if client_id is None:
            return

        try:
            while True:
                data = await websocket.receive_text()
                await hub.handle_client_message(client_id, data)

        except WebSocketDisconnect:
            await hub.disconnect(client_id)
        except RuntimeError as e:
            message = str(e)
            if "WebSocket is not connected" in message or "accept" in message:
                await hub.disconnect(client_id)
                return
            logger.error(f"WebSocket error for {client_id}: {e}")
            await hub.disconnect(client_id)
        except Exception as e:
            logger.error(f"WebSocket error for {client_id}: {e}")
            await hub.disconnect(client_id)

    @app.exception_handler(GeoBenchException)
    async def geobench_exception_handler(request: Request, exc: GeoBenchException) -> JSONResponse:
        """
        Convert known GeoBenchException subclasses to HTTP responses.

        Conflicts and lookups map to 409/404; recoverable errors to 503;
        anything else to 500.
        """
        if isinstance(exc, APIException):
            status_code = exc.status_code
        else:
            status_code = HTTP_STATUS_BY_CODE.get(exc.code, 503 if exc.recoverable else 500)

        if status_code < 500:
            logger.warning(f"[{exc.code}] {exc.message} ({request.method} {request.url.path})")
        else:
            logger.error(f"[{exc.code}] {exc.message} ({request.method} {request.url.path})")
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unexpected exceptions."""
        if isinstance(exc, HTTPException):
            return await http_exception_handler(request, exc)

        logger.opt(exception=exc).error(f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "INTERNAL_ERROR",
                "message": str(exc),
                "type": type(exc).__name__,
            },
        )

    return app


async def start_server(settings: Optional[Settings] = None) -> None:
    """Start the API server."""
    import uvicorn

    settings = settings or get_settings()
    setup_logger(
        level=settings.logging.level,
        log_file=settings.logging.file,
        rotation=settings.logging.rotation,
        retention=settings.logging.retention,
    )

    config = uvicorn.Config(
        app=create_app(settings),
        host=settings.api.host,
        port=settings.api.port,
        log_level="info",
        reload=False,
    )
    server = uvicorn.Server(config)
    await server.serve()


if __name__ == "__main__":
    asyncio.run(start_server())
