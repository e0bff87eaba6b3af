# geobench/api/deps.py
"""API Dependencies - Dependency injection for FastAPI routes."""

from fastapi import Request

from geobench.core.engine import TelemetryEngine


def get_engine(request: Request) -> TelemetryEngine:
    """The engine created by the application lifespan."""
    return request.app.state.engine
