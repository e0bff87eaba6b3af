# geobench/api/models/requests.py
"""API Request Models."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class BenchmarkStartRequest(BaseModel):
    """
    Request model for starting a benchmark.

    Unknown fields are kept; the whole body becomes the run config.
    """

    transactions: Optional[int] = Field(None, ge=1, description="Total transactions to submit")
    workers: Optional[int] = Field(None, ge=1, description="Concurrent workers")
    duration: Optional[int] = Field(None, ge=1, description="Duration in seconds")
    rounds: Optional[int] = Field(None, ge=1, description="Rounds reported by the benchmark")
    regions: Optional[list[str]] = Field(None, description="Regions taking part")
    transaction_mix: Optional[dict[str, float]] = Field(None, description="Share of each transaction type, in percent")
    region: Optional[str] = Field(None, description="Region label used for history filters")
    workload: Optional[str] = Field(None, description="Workload label used for history filters")

    class Config:
        extra = "allow"
        json_schema_extra = {
            "example": {
                "transactions": 50000,
                "workers": 20,
                "duration": 600,
                "regions": ["americas", "europe", "asiaPacific"],
            }
        }

    def to_config(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class BenchmarkImportRequest(BaseModel):
    """Request model for recording an externally produced benchmark result."""

    config: dict[str, Any] = Field(default_factory=dict, description="Configuration the run used")
    start_time: Optional[datetime] = Field(None, description="When the run started")
    end_time: Optional[datetime] = Field(None, description="When the run finished")
    results: dict[str, Any] = Field(default_factory=dict, description="overall/by_region/time_series/...")

    class Config:
        json_schema_extra = {
            "example": {
                "config": {"region": "europe", "workload": "mixed"},
                "results": {"overall": {"avg_tps": 412.5, "avg_latency": 610.0}},
            }
        }
