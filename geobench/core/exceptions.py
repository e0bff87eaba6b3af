# geobench/core/exceptions.py
"""
Exception Hierarchy for GeoBench

Defines all custom exceptions used throughout the application.
"""

from typing import Any, Optional


class GeoBenchException(Exception):
    """
    Base exception for all GeoBench errors.

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        context: Additional context about the error
        recoverable: Whether the error can be automatically recovered from
    """

    def __init__(
        self,
        message: str,
        code: str = "GEOBENCH_ERROR",
        context: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context or {}
        self.recoverable = recoverable

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


# ============================================
# Metric Source Exceptions
# ============================================
class SourceException(GeoBenchException):
    """Base exception for metric backend errors."""

    def __init__(
        self,
        message: str,
        code: str = "SOURCE_ERROR",
        source: Optional[str] = None,
        **kwargs: Any,
    ):
        context = kwargs.pop("context", {})
        if source:
            context["source"] = source
        super().__init__(message, code=code, context=context, **kwargs)
        self.source = source


class SourceUnavailableError(SourceException):
    """Raised when a metric backend does not answer in time or at all."""

    def __init__(self, source: str, reason: str = "", **kwargs: Any):
        message = f"Metric source '{source}' unavailable"
        if reason:
            message += f": {reason}"
        super().__init__(message, code="SOURCE_UNAVAILABLE", source=source, recoverable=True, **kwargs)
        self.reason = reason


class UnknownSourceError(SourceException):
    """Raised when a query names a backend that is not configured."""

    def __init__(self, source: str, **kwargs: Any):
        super().__init__(f"Metric source '{source}' is not configured", code="SOURCE_UNKNOWN", source=source, **kwargs)


class UnknownMetricError(SourceException):
    """Raised when a named metric query is not configured."""

    def __init__(self, name: str, **kwargs: Any):
        context = kwargs.pop("context", {})
        context["metric"] = name
        super().__init__(f"Metric '{name}' is not configured", code="METRIC_NOT_FOUND", context=context, **kwargs)


# ============================================
# Benchmark Exceptions
# ============================================
class BenchmarkException(GeoBenchException):
    """Base exception for benchmark orchestration errors."""

    def __init__(
        self,
        message: str,
        code: str = "BENCHMARK_ERROR",
        run_id: Optional[str] = None,
        **kwargs: Any,
    ):
        context = kwargs.pop("context", {})
        if run_id:
            context["run_id"] = run_id
        super().__init__(message, code=code, context=context, **kwargs)
        self.run_id = run_id


class BenchmarkAlreadyRunningError(BenchmarkException):
    """Raised when a benchmark start is requested while another is running."""

    def __init__(self, run_id: Optional[str] = None, **kwargs: Any):
        super().__init__("Benchmark already running", code="BENCHMARK_ALREADY_RUNNING", run_id=run_id, **kwargs)


class BenchmarkNotRunningError(BenchmarkException):
    """Raised when cancelling while no benchmark is active."""

    def __init__(self, **kwargs: Any):
        super().__init__("No benchmark is running", code="BENCHMARK_NOT_RUNNING", **kwargs)


class ProcessSpawnError(BenchmarkException):
    """Raised when the benchmark process cannot be launched."""

    def __init__(self, command: str, reason: str = "", **kwargs: Any):
        message = f"Failed to launch benchmark process '{command}'"
        if reason:
            message += f": {reason}"
        context = kwargs.pop("context", {})
        context["command"] = command
        super().__init__(message, code="PROCESS_SPAWN_FAILURE", context=context, **kwargs)


class ProcessRuntimeError(BenchmarkException):
    """Raised when the benchmark process exits with a non-zero code."""

    def __init__(self, exit_code: Optional[int], **kwargs: Any):
        message = f"Benchmark process exited with code {exit_code}"
        context = kwargs.pop("context", {})
        context["exit_code"] = exit_code
        super().__init__(message, code="PROCESS_RUNTIME_FAILURE", context=context, **kwargs)
        self.exit_code = exit_code


class RunNotFoundError(BenchmarkException):
    """Raised when a benchmark run ID is unknown."""

    def __init__(self, run_id: str, **kwargs: Any):
        super().__init__(f"Benchmark '{run_id}' not found", code="BENCHMARK_NOT_FOUND", run_id=run_id, **kwargs)


# ============================================
# API Exceptions
# ============================================
class APIException(GeoBenchException):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        code: str = "API_ERROR",
        status_code: int = 500,
        **kwargs: Any,
    ):
        super().__init__(message, code=code, **kwargs)
        self.status_code = status_code


class APIValidationError(APIException):
    """Raised when API request validation fails."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs: Any):
        context = kwargs.pop("context", {})
        if field:
            context["field"] = field
        super().__init__(message, code="API_VALIDATION_ERROR", status_code=400, context=context, **kwargs)


# HTTP status per domain error code; anything else maps to 500/503.
HTTP_STATUS_BY_CODE: dict[str, int] = {
    "BENCHMARK_ALREADY_RUNNING": 409,
    "BENCHMARK_NOT_RUNNING": 409,
    "BENCHMARK_NOT_FOUND": 404,
    "METRIC_NOT_FOUND": 404,
    "API_VALIDATION_ERROR": 400,
}
