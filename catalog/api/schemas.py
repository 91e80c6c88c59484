"""
HTTP request/response models.
"""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from catalog.domain.models import Record


class BulkUpsertRequest(BaseModel):
    # Patch contents are checked per item by the orchestrator, not here,
    # so a bad value is reported against its batch index.
    records: List[Dict[str, Any]] = Field(..., description="Ordered record patches.")

    model_config = ConfigDict(extra="ignore")


class RecordListResponse(BaseModel):
    success: bool = True
    count: int
    records: List[Record]


class ListingRecord(Record):
    percentile_ranks: Dict[str, int] = Field(default_factory=dict)


class ListingResponse(BaseModel):
    count: int
    records: List[ListingRecord]
    percentiles: Dict[str, Dict[int, float]]


class HealthMetrics(BaseModel):
    database: bool


class MetricsResponse(BaseModel):
    app_name: str
    environment: str
    timestamp: str
    version: str
    health: HealthMetrics
    custom: Dict[str, Any] = Field(default_factory=dict)
