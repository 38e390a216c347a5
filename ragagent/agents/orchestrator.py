# =============================================================================
# Agent Orchestrator — Consumer-Facing Entry Points
# =============================================================================
#
# One long-lived object ties the runner, personas, tracer, delta analyzer
# and conversation sessions together and exposes:
#
#   run_pipeline(query)            → PipelineResult (answer + trace)
#   route_to_experts(query)        → {expert name: text}, experts in parallel
#   route_with_tools(query)        → experts chosen by an orchestrator agent
#                                    through function calls
#   analyze_delta(query, a, b)     → comparison report
#
# FAN-OUT ISOLATION: each expert leg catches its own errors, so one failing
# expert becomes an "Error: ..." entry while the other still answers.
# Results are keyed by expert name, never by completion order.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from ragagent.agents.delta import DeltaAnalyzer
from ragagent.agents.personas import AgentPersona, PersonaCatalog, build_personas
from ragagent.agents.pipeline import PipelineResult, run_pipeline
from ragagent.agents.runner import AgentRunner
from ragagent.agents.sessions import SessionStore
from ragagent.agents.tools import parse_tool_call
from ragagent.agents.tracing import ExecutionTracer
from ragagent.config import Settings, settings as default_settings
from ragagent.services.agent_client import ToolCallRequest, get_agent_client

logger = logging.getLogger(__name__)


@dataclass
class OrchestratedResult:
    """Expert answers gathered through tool calls, plus the final reply."""

    responses: dict[str, str] = field(default_factory=dict)
    summary: str = ""


class AgentOrchestrator:
    """Facade over the pipeline, expert routing and delta analysis."""

    def __init__(
        self,
        runner: AgentRunner,
        personas: PersonaCatalog,
        tracer: ExecutionTracer | None = None,
        sessions: SessionStore | None = None,
        combined_review: bool = False,
    ) -> None:
        self.runner = runner
        self.personas = personas
        self.tracer = tracer or ExecutionTracer()
        self.sessions = sessions or SessionStore()
        self.combined_review = combined_review
        self.delta_analyzer = DeltaAnalyzer(runner, personas.delta)

        logger.info(
            "AgentOrchestrator initialized with experts: %s",
            ", ".join(p.name for p in personas.experts),
        )

    # --- Pipeline ---

    async def run_pipeline(self, query: str) -> PipelineResult:
        return await run_pipeline(
            query,
            runner=self.runner,
            personas=self.personas,
            tracer=self.tracer,
            combined_review=self.combined_review,
        )

    # --- Fan-out ---

    async def route_to_experts(
        self, query: str, session_id: str | None = None,
    ) -> dict[str, str]:
        """
        Ask every expert the same query concurrently.

        With a session_id, each expert continues its conversation for that
        session; otherwise each call uses a fresh conversation.
        """
        logger.info(
            "Routing query to %d experts in parallel: '%s'",
            len(self.personas.experts), query[:80],
        )
        start = time.monotonic()

        results = await asyncio.gather(
            *(self._ask_expert(p, query, session_id) for p in self.personas.experts)
        )

        logger.info(
            "All experts completed in %dms", int((time.monotonic() - start) * 1000),
        )
        return dict(results)

    async def _ask_expert(
        self, persona: AgentPersona, query: str, session_id: str | None,
    ) -> tuple[str, str]:
        start = time.monotonic()
        session = (
            self.sessions.get(session_id, persona.name) if session_id else None
        )
        try:
            result = await self.runner.run(persona, query, session=session)
        except Exception as e:
            logger.error("%s failed: %s", persona.name, e)
            return persona.name, f"Error: {e}"

        logger.info(
            "%s completed in %dms (ok=%s, %d chars)",
            persona.name, int((time.monotonic() - start) * 1000),
            result.ok, len(result.output),
        )
        return persona.name, result.output

    # --- Tool-routed fan-out ---

    async def route_with_tools(self, query: str) -> OrchestratedResult:
        """
        Let the orchestrator agent decide which experts to consult.

        Each expert tool call runs that expert (calls within one round run
        concurrently); its reply is returned to the orchestrator as the tool
        output and recorded under the expert's name.
        """
        responses: dict[str, str] = {}
        experts = {p.name: p for p in self.personas.experts}

        async def handle(call: ToolCallRequest) -> str:
            tool, expert_query = parse_tool_call(call)
            persona = experts[tool.expert_name]
            logger.info(
                "Tool call %s → %s: '%s'", call.call_id, persona.name, expert_query[:80],
            )
            result = await self.runner.run(persona, expert_query)
            responses[persona.name] = result.output
            return result.output

        try:
            result = await self.runner.run(
                self.personas.orchestrator, query, tool_handler=handle,
            )
        except Exception as e:
            logger.error("Orchestrator agent failed: %s", e)
            return OrchestratedResult(responses=responses, summary=f"Error: {e}")

        return OrchestratedResult(responses=responses, summary=result.output)

    # --- Delta ---

    async def analyze_delta(
        self,
        query: str,
        response_a: str,
        response_b: str,
        label_a: str | None = None,
        label_b: str | None = None,
    ) -> str:
        return await self.delta_analyzer.analyze(
            query,
            response_a,
            response_b,
            label_a=label_a or self.personas.sop.name,
            label_b=label_b or self.personas.policy.name,
        )


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

_orchestrator: AgentOrchestrator | None = None


def create_orchestrator(cfg: Settings | None = None) -> AgentOrchestrator:
    """Build a fully wired orchestrator from settings."""
    cfg = cfg or default_settings
    runner = AgentRunner(
        get_agent_client(),
        poll_interval=cfg.poll_interval_seconds,
        run_timeout=cfg.run_timeout_seconds,
        max_tool_rounds=cfg.max_tool_rounds,
        validate_external_ids=cfg.validate_agent_ids,
    )
    return AgentOrchestrator(
        runner=runner,
        personas=build_personas(cfg),
        combined_review=cfg.pipeline_combined_review,
    )


def get_orchestrator() -> AgentOrchestrator:
    """
    Return the application orchestrator (lazy singleton).

    Used as a FastAPI dependency; override it in tests.
    """
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = create_orchestrator()
    return _orchestrator
