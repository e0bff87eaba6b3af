"""API Routes."""

from geobench.api.routes.benchmarks import router as benchmarks_router
from geobench.api.routes.monitoring import router as monitoring_router

__all__ = [
    "benchmarks_router",
    "monitoring_router",
]
