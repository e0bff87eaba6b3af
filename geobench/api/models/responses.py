# geobench/api/models/responses.py
"""API Response Models."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(..., description="Error code")
    message: str = Field(..., description="Error message")
    context: dict[str, Any] = Field(default_factory=dict, description="Additional error details")
    recoverable: bool = Field(False, description="Whether retrying may succeed")

    class Config:
        json_schema_extra = {
            "example": {
                "error": "BENCHMARK_ALREADY_RUNNING",
                "message": "Benchmark already running",
                "context": {"run_id": "benchmark_1700000000000_a1b2c3d4e5"},
                "recoverable": False,
            }
        }


class ActionResponse(BaseModel):
    """Outcome of a control action."""

    success: bool = Field(..., description="Whether the action took effect")
    message: str = Field("", description="Human readable outcome")
    id: Optional[str] = Field(None, description="Run ID the action refers to")


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Overall health status")
    version: str = Field(..., description="Application version")
    runtime: dict[str, Any] = Field(default_factory=dict, description="Runtime identity")
    components: dict[str, Any] = Field(..., description="Component health status")
