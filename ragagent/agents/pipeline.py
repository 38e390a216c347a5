# =============================================================================
# LangGraph Pipeline — Intake → Search → Writer → Reviewer → Executor
# =============================================================================
#
# GRAPH TOPOLOGY:
#   START ──▶ intake ──▶ search ──▶ writer ──┬─▶ reviewer ──▶ executor ──▶ END
#                                            └─▶ reviewer_executor ─────▶ END
#
# The lower branch is taken when `combined_review` is set: one
# "Reviewer & Executor" stage both validates and formats the draft.
#
# Each node runs one persona through the AgentRunner inside
# ExecutionTracer.traced() and appends its StageTrace to state["trace"]
# (list-concatenation reducer). A failed stage never stops the graph; its
# output is replaced by a fixed fallback text and downstream stages run on
# that degraded input. A failed Executor (or combined stage) falls back to
# the Writer's draft as the final answer.
#
# DESIGN DECISION: Graph compiled once at module level, collaborators
# (runner, personas, tracer) carried in the state. No checkpointer is
# configured, so non-serialisable state values are fine.
# =============================================================================

from __future__ import annotations

import json
import logging
import operator
from dataclasses import dataclass, field
from typing import Annotated

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from ragagent.agents.personas import AgentPersona, PersonaCatalog
from ragagent.agents.runner import AgentRunner
from ragagent.agents.tracing import ExecutionTracer, PipelineTrace, StageTrace

logger = logging.getLogger(__name__)

INTAKE_FALLBACK = "Intake analysis failed"
SEARCH_FALLBACK = "Search failed"
WRITER_FALLBACK = "Draft generation failed"
REVIEW_FALLBACK = "Review failed"


class StageFailedError(RuntimeError):
    """Raised inside a traced stage when the agent run did not succeed."""


# ---------------------------------------------------------------------------
# State Schema
# ---------------------------------------------------------------------------


class PipelineState(TypedDict, total=False):
    """State that flows through the pipeline graph."""

    # --- Input ---
    query: str
    combined_review: bool

    # --- Collaborators ---
    runner: AgentRunner
    personas: PersonaCatalog
    tracer: ExecutionTracer

    # --- Stage outputs ---
    intake_output: str
    search_output: str
    draft: str
    review: str
    answer: str

    # --- Trace (appended by every node) ---
    trace: Annotated[list[StageTrace], operator.add]


@dataclass
class PipelineResult:
    """Final answer plus the execution trace."""

    answer: str
    trace: PipelineTrace
    stage_outputs: dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Stage Helper
# ---------------------------------------------------------------------------


async def _run_stage(
    state: PipelineState, persona: AgentPersona, prompt: str,
) -> tuple[str | None, StageTrace]:
    runner = state["runner"]

    async def call(text: str) -> str:
        result = await runner.run(persona, text)
        if not result.ok:
            raise StageFailedError(result.error or "stage failed")
        return result.text or ""

    return await state["tracer"].traced(persona.name, prompt, call)


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


async def intake_node(state: PipelineState) -> dict:
    output, trace = await _run_stage(
        state, state["personas"].intake, state["query"],
    )
    if output is None:
        logger.warning("Intake failed, continuing with fallback")
    return {"intake_output": output or INTAKE_FALLBACK, "trace": [trace]}


async def search_node(state: PipelineState) -> dict:
    prompt = f"Retrieve relevant information for: {state['query']}"
    output, trace = await _run_stage(state, state["personas"].search, prompt)
    if output is None:
        logger.warning("Search failed, continuing with fallback")
    return {"search_output": output or SEARCH_FALLBACK, "trace": [trace]}


async def writer_node(state: PipelineState) -> dict:
    prompt = (
        f"Question: {state['query']}\n\n"
        f"Draft a response using these search results:\n{state['search_output']}"
    )
    output, trace = await _run_stage(state, state["personas"].writer, prompt)
    if output is None:
        logger.warning("Writer failed, continuing with fallback")
    return {"draft": output or WRITER_FALLBACK, "trace": [trace]}


async def reviewer_node(state: PipelineState) -> dict:
    prompt = (
        f"Review this draft response for grounding:\n{state['draft']}\n\n"
        f"Search results:\n{state['search_output']}"
    )
    output, trace = await _run_stage(state, state["personas"].reviewer, prompt)
    if output is None:
        logger.warning("Reviewer failed, continuing with fallback")
    return {"review": output or REVIEW_FALLBACK, "trace": [trace]}


async def executor_node(state: PipelineState) -> dict:
    prompt = (
        f"Format this response for display:\n{state['draft']}\n\n"
        f"Review result:\n{state['review']}"
    )
    output, trace = await _run_stage(state, state["personas"].executor, prompt)
    if output is None:
        logger.warning("Executor failed, returning the writer's draft")
        return {"answer": state["draft"], "trace": [trace]}
    return {"answer": output, "trace": [trace]}


async def reviewer_executor_node(state: PipelineState) -> dict:
    prompt = (
        f"Question: {state['query']}\n\n"
        f"Search results:\n{state['search_output']}\n\n"
        f"Draft response:\n{state['draft']}\n\n"
        "Review the draft for grounding, then return the final formatted response."
    )
    output, trace = await _run_stage(
        state, state["personas"].reviewer_executor, prompt,
    )
    if output is None:
        logger.warning("Reviewer & Executor failed, returning the writer's draft")
        return {"answer": state["draft"], "trace": [trace]}
    return {
        "review": output,
        "answer": extract_formatted_response(output),
        "trace": [trace],
    }


def _route_after_writer(state: PipelineState) -> str:
    return "reviewer_executor" if state.get("combined_review") else "reviewer"


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------

_builder = StateGraph(PipelineState)
_builder.add_node("intake", intake_node)
_builder.add_node("search", search_node)
_builder.add_node("writer", writer_node)
_builder.add_node("reviewer", reviewer_node)
_builder.add_node("executor", executor_node)
_builder.add_node("reviewer_executor", reviewer_executor_node)

_builder.add_edge(START, "intake")
_builder.add_edge("intake", "search")
_builder.add_edge("search", "writer")
_builder.add_conditional_edges(
    "writer",
    _route_after_writer,
    {"reviewer": "reviewer", "reviewer_executor": "reviewer_executor"},
)
_builder.add_edge("reviewer", "executor")
_builder.add_edge("executor", END)
_builder.add_edge("reviewer_executor", END)

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def run_pipeline(
    query: str,
    runner: AgentRunner,
    personas: PersonaCatalog,
    tracer: ExecutionTracer,
    combined_review: bool = False,
) -> PipelineResult:
    """
    Run the full pipeline for one query.

    Graph updates are streamed so that the trace survives a fatal error:
    if anything outside the per-stage wrapper raises, the result carries
    "Pipeline failed: ..." and the stages recorded so far.
    """
    initial_state: PipelineState = {
        "query": query,
        "combined_review": combined_review,
        "runner": runner,
        "personas": personas,
        "tracer": tracer,
    }

    logger.info(
        "Invoking pipeline: query='%s', combined_review=%s",
        query[:80], combined_review,
    )

    trace = PipelineTrace()
    outputs: dict[str, str] = {}
    answer: str | None = None

    try:
        async for update in graph.astream(initial_state, stream_mode="updates"):
            for node_name, node_update in update.items():
                if not node_update:
                    continue
                for stage in node_update.get("trace", []):
                    trace.add(stage)
                for key in ("intake_output", "search_output", "draft", "review"):
                    if key in node_update:
                        outputs[key] = node_update[key]
                if "answer" in node_update:
                    answer = node_update["answer"]
    except Exception as e:
        logger.exception("Pipeline failed after %d stage(s): %s", len(trace.stages), e)
        trace.finish()
        return PipelineResult(
            answer=f"Pipeline failed: {e}", trace=trace, stage_outputs=outputs,
        )

    trace.finish()

    if answer is None:
        answer = outputs.get("draft", WRITER_FALLBACK)

    logger.info(
        "Pipeline complete: stages=%d, success=%s, ~%d tokens, ~$%.4f",
        len(trace.stages), trace.success, trace.total_tokens, trace.total_cost,
    )
    return PipelineResult(answer=answer, trace=trace, stage_outputs=outputs)


def extract_formatted_response(text: str) -> str:
    """
    Pull `final_formatted_response` out of a Reviewer & Executor reply.

    Tolerates a ```json fence. Returns the raw text when the reply is not
    the expected JSON object.
    """
    candidate = text.strip()
    if candidate.startswith("```"):
        candidate = candidate.strip("`")
        if candidate.startswith("json"):
            candidate = candidate[len("json"):]
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return text

    if isinstance(parsed, dict):
        formatted = parsed.get("final_formatted_response")
        if isinstance(formatted, str) and formatted.strip():
            return formatted
    return text
