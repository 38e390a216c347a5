# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================

from datetime import datetime

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for GET /health, confirms the API is running."""

    status: str = "ok"
    version: str
    service: str


class StageTraceResponse(BaseModel):
    """One stage of a pipeline trace."""

    stage_name: str
    start: datetime
    end: datetime
    duration_ms: int
    success: bool
    error_message: str | None = None
    estimated_tokens: int = Field(description="Character-based estimate, not billed usage")
    estimated_cost: float = Field(description="Estimated cost in USD (placeholder rates)")


class PipelineTraceResponse(BaseModel):
    """Full pipeline trace with totals."""

    request_id: str
    total_duration_ms: int
    total_tokens: int
    total_cost: float
    success: bool = Field(description="True when every stage succeeded")
    stages: list[StageTraceResponse]


class PipelineResponse(BaseModel):
    """Response for POST /pipeline."""

    question: str
    answer: str
    trace: PipelineTraceResponse


class ExpertsResponse(BaseModel):
    """Response for POST /experts: one answer per expert."""

    question: str
    responses: dict[str, str] = Field(description="Expert name → answer or error text")
    delta_analysis: str | None = None


class OrchestratedResponse(BaseModel):
    """Response for POST /experts/orchestrated."""

    question: str
    responses: dict[str, str] = Field(description="Answers of the experts that were consulted")
    summary: str = Field(description="The orchestrator agent's combined answer")


class DeltaResponse(BaseModel):
    """Response for POST /delta."""

    question: str
    analysis: str
