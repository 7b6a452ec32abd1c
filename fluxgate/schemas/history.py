"""Run history schemas.

Defines the RunRecord (full run data for storage/retrieval), RunSummary
(lightweight listing) and RunQuery (filter params).
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from fluxgate.schemas.pipeline import EndpointScore, StageResult


class RunRecord(BaseModel):
    """Full record of one pipeline run."""

    run_id: str = Field(description="Unique run identifier")
    target: str = Field(default="", description="Raw target argument")
    scope_type: str = Field(default="full", description="Resolved scope type")
    started_at: datetime = Field(description="When the run started")
    success: bool = Field(default=False, description="Whether every stage passed")
    failed_stage: str | None = Field(default=None, description="First failing stage")
    duration_seconds: float = Field(default=0.0, description="Wall-clock duration")
    stages: list[StageResult] = Field(default_factory=list)
    endpoint_scores: list[EndpointScore] = Field(default_factory=list)


class RunSummary(BaseModel):
    """Lightweight run summary for listing."""

    run_id: str
    target: str = ""
    scope_type: str = "full"
    started_at: datetime
    success: bool = False
    failed_stage: str | None = None
    duration_seconds: float = 0.0
    stage_count: int = 0


class RunQuery(BaseModel):
    """Query parameters for listing runs."""

    limit: int = Field(default=20, ge=1, le=100, description="Max runs to return")
    offset: int = Field(default=0, ge=0, description="Offset for pagination")
    target_filter: str | None = Field(default=None, description="Substring of the target")
    failed_only: bool = Field(default=False, description="Only runs that failed")
