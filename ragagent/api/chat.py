# =============================================================================
# Chat API — Pipeline, Expert Routing and Delta Endpoints
# =============================================================================
#
#   POST /pipeline              → Intake → Search → Writer → Reviewer → Executor
#   POST /experts               → SOP + Policy in parallel (optional delta)
#   POST /experts/orchestrated  → orchestrator agent picks experts via tools
#   POST /delta                 → compare two given answers
#
# Handlers only validate, delegate and map responses. The orchestrator is
# injected with Depends(get_agent_orchestrator).
#
# Stage and expert failures are NOT errors here; they come back inside the
# trace or the per-expert text.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from ragagent.agents.orchestrator import AgentOrchestrator
from ragagent.agents.tracing import PipelineTrace
from ragagent.api.deps import get_agent_orchestrator
from ragagent.models.requests import (
    DeltaRequest,
    ExpertsRequest,
    OrchestratedRequest,
    PipelineRequest,
)
from ragagent.models.responses import (
    DeltaResponse,
    ExpertsResponse,
    OrchestratedResponse,
    PipelineResponse,
    PipelineTraceResponse,
    StageTraceResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])


# ---------------------------------------------------------------------------
# POST /pipeline
# ---------------------------------------------------------------------------


@router.post(
    "/pipeline",
    response_model=PipelineResponse,
    summary="Answer a question through the agent pipeline",
)
async def pipeline_endpoint(
    request: PipelineRequest,
    orchestrator: AgentOrchestrator = Depends(get_agent_orchestrator),
) -> PipelineResponse:
    """
    Run the five-stage pipeline. Always returns a best-effort answer; the
    trace shows which stages failed.
    """
    logger.info("Pipeline request: question='%s'", request.question[:80])

    result = await orchestrator.run_pipeline(request.question)

    return PipelineResponse(
        question=request.question,
        answer=result.answer,
        trace=_trace_response(result.trace),
    )


# ---------------------------------------------------------------------------
# POST /experts
# ---------------------------------------------------------------------------


@router.post(
    "/experts",
    response_model=ExpertsResponse,
    summary="Ask the SOP and Policy experts in parallel",
)
async def experts_endpoint(
    request: ExpertsRequest,
    orchestrator: AgentOrchestrator = Depends(get_agent_orchestrator),
) -> ExpertsResponse:
    logger.info(
        "Experts request: question='%s', session_id=%s, include_delta=%s",
        request.question[:80], request.session_id, request.include_delta,
    )

    responses = await orchestrator.route_to_experts(
        request.question, session_id=request.session_id,
    )

    delta: str | None = None
    if request.include_delta:
        sop_name = orchestrator.personas.sop.name
        policy_name = orchestrator.personas.policy.name
        delta = await orchestrator.analyze_delta(
            request.question,
            responses.get(sop_name, ""),
            responses.get(policy_name, ""),
            label_a=sop_name,
            label_b=policy_name,
        )

    return ExpertsResponse(
        question=request.question,
        responses=responses,
        delta_analysis=delta,
    )


@router.post(
    "/experts/orchestrated",
    response_model=OrchestratedResponse,
    summary="Let the orchestrator agent consult experts through tool calls",
)
async def orchestrated_endpoint(
    request: OrchestratedRequest,
    orchestrator: AgentOrchestrator = Depends(get_agent_orchestrator),
) -> OrchestratedResponse:
    logger.info("Orchestrated request: question='%s'", request.question[:80])

    result = await orchestrator.route_with_tools(request.question)

    return OrchestratedResponse(
        question=request.question,
        responses=result.responses,
        summary=result.summary,
    )


# ---------------------------------------------------------------------------
# POST /delta
# ---------------------------------------------------------------------------


@router.post(
    "/delta",
    response_model=DeltaResponse,
    summary="Compare two expert answers",
)
async def delta_endpoint(
    request: DeltaRequest,
    orchestrator: AgentOrchestrator = Depends(get_agent_orchestrator),
) -> DeltaResponse:
    analysis = await orchestrator.analyze_delta(
        request.question,
        request.response_a,
        request.response_b,
        label_a=request.label_a,
        label_b=request.label_b,
    )

    return DeltaResponse(question=request.question, analysis=analysis)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _trace_response(trace: PipelineTrace) -> PipelineTraceResponse:
    return PipelineTraceResponse(
        request_id=trace.request_id,
        total_duration_ms=int(trace.total_duration.total_seconds() * 1000),
        total_tokens=trace.total_tokens,
        total_cost=trace.total_cost,
        success=trace.success,
        stages=[StageTraceResponse(**stage.to_dict()) for stage in trace.stages],
    )
