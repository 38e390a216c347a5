# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# Strings are whitespace-stripped before validation, so a blank question
# fails min_length and is rejected with 422 instead of reaching the agents.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field


class PipelineRequest(BaseModel):
    """
    Request body for POST /pipeline.

    Example:
        {"question": "What is the return policy?"}
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    question: str = Field(
        ...,
        min_length=1,
        max_length=4000,
        description="The question to run through the agent pipeline",
        examples=["What is the return policy?"],
    )


class ExpertsRequest(BaseModel):
    """Request body for POST /experts."""

    model_config = ConfigDict(str_strip_whitespace=True)

    question: str = Field(
        ...,
        min_length=1,
        max_length=4000,
        description="The question to send to the domain experts",
    )

    # Continue earlier conversations with the experts for this session.
    # Omit for a one-off question.
    session_id: str | None = Field(
        default=None,
        max_length=128,
        description="Conversation session id for multi-turn expert chats",
    )

    include_delta: bool = Field(
        default=False,
        description="Also compare the two expert answers",
    )


class OrchestratedRequest(BaseModel):
    """
    Request body for POST /experts/orchestrated.

    The orchestrator agent always starts a fresh conversation and never
    runs a delta comparison, so unknown fields are rejected.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    question: str = Field(
        ...,
        min_length=1,
        max_length=4000,
        description="The question for the orchestrator agent",
    )


class DeltaRequest(BaseModel):
    """Request body for POST /delta."""

    model_config = ConfigDict(str_strip_whitespace=True)

    question: str = Field(..., min_length=1, max_length=4000)
    response_a: str = Field(..., min_length=1, description="First expert answer")
    response_b: str = Field(..., min_length=1, description="Second expert answer")
    label_a: str | None = Field(default=None, description="Name of the first expert")
    label_b: str | None = Field(default=None, description="Name of the second expert")
