"""API models."""

from geobench.api.models.requests import BenchmarkImportRequest, BenchmarkStartRequest
from geobench.api.models.responses import ActionResponse, ErrorResponse, HealthResponse

__all__ = [
    "BenchmarkImportRequest",
    "BenchmarkStartRequest",
    "ActionResponse",
    "ErrorResponse",
    "HealthResponse",
]
