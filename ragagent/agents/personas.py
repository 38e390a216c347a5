# =============================================================================
# Agent Personas — Named Roles Bound to Hosted Agent Registrations
# =============================================================================
#
# A persona is everything needed to find or create one hosted agent: its
# display name (also the lookup key), instructions, model deployment, and
# optionally a pre-provisioned id, tools and per-run sampling overrides.
#
# Every pipeline stage and every expert is just a persona run through the
# same AgentRunner; there is no per-agent class.
#
# PERFORMANCE PROFILE:
#   simple agents  (Intake, Search, Executor) → simple_agent_* settings,
#                                               optional fast deployment
#   complex agents (Writer, Reviewer, Reviewer & Executor, experts,
#                   orchestrator, delta)      → complex_agent_* settings
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ragagent.agents.tools import POLICY_EXPERT, SOP_EXPERT, tool_definitions
from ragagent.config import Settings, settings as default_settings


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AgentPersona:
    """
    Immutable descriptor of one agent role.

    strict_tools: an existing registration found by name whose tools differ
    from `tools` is deleted and recreated instead of being adopted.
    """

    name: str
    instructions: str
    model: str
    external_id: str | None = None
    tools: tuple[dict[str, Any], ...] = ()
    tool_resources: dict[str, Any] | None = None
    strict_tools: bool = False
    temperature: float | None = None
    max_tokens: int | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Persona name must not be empty")
        if not self.instructions and not self.external_id:
            raise ValueError(
                f"Persona '{self.name}' needs instructions or an external id"
            )

    @property
    def tool_names(self) -> tuple[str, ...]:
        """Sorted tool identifiers, comparable with AgentRecord.tool_names."""
        names = []
        for tool in self.tools:
            if tool.get("type") == "function":
                names.append(tool["function"]["name"])
            else:
                names.append(tool["type"])
        return tuple(sorted(names))


@dataclass(frozen=True)
class PersonaCatalog:
    """All personas the application runs."""

    intake: AgentPersona
    search: AgentPersona
    writer: AgentPersona
    reviewer: AgentPersona
    executor: AgentPersona
    reviewer_executor: AgentPersona
    sop: AgentPersona
    policy: AgentPersona
    orchestrator: AgentPersona
    delta: AgentPersona

    @property
    def experts(self) -> tuple[AgentPersona, ...]:
        return (self.sop, self.policy)


# ---------------------------------------------------------------------------
# Instructions
# ---------------------------------------------------------------------------

INTAKE_INSTRUCTIONS = """You are an Intake Agent, the first stage of a \
retrieval-augmented answering pipeline.
Your role is to:
1. Identify what the user is actually asking for
2. Classify the question (procedure, policy, factual lookup, other)
3. Extract the key entities, terms and constraints
4. Note any ambiguity that later stages should keep in mind

Respond briefly in plain text. Do not answer the question yourself."""

SEARCH_INSTRUCTIONS = """You are a Search Agent responsible for retrieving \
relevant information from the knowledge base.
Your role is to:
1. Understand the information need behind the request
2. Retrieve the most relevant passages
3. Rank passages by relevance
4. Report where each passage came from

Respond with a JSON object:
{
  "search_results": [
    {
      "passage": "The retrieved text passage",
      "source": "Document name or URL",
      "relevance_score": 0.0-1.0,
      "page_number": "Page number if available",
      "section": "Section title if available"
    }
  ],
  "total_results": 5,
  "search_type": "hybrid|keyword|vector",
  "reasoning": "Brief explanation of search strategy used"
}"""

WRITER_INSTRUCTIONS = """You are a Writer Agent responsible for drafting \
responses with inline citations.
Your role is to:
1. Read the retrieved passages provided by the Search Agent
2. Synthesize information from multiple sources
3. Draft a well-structured, coherent response
4. Include inline citations in the format [Source: Document Name, Page X]
5. Ensure all claims are supported by the provided passages

Guidelines:
- Write in a clear, professional tone
- Always cite sources for factual claims
- If information is insufficient, acknowledge gaps
- Maintain accuracy and avoid speculation

Your response should be in markdown format with inline citations."""

REVIEWER_INSTRUCTIONS = """You are a Reviewer Agent responsible for \
validating response quality and grounding.
Your role is to:
1. Verify that each claim in the drafted response is supported by the \
retrieved passages
2. Identify claims that lack proper grounding
3. Check the accuracy and relevance of citations
4. Assess the overall quality of the response

Respond with a JSON object containing:
{
  "grounding_score": 0.0-1.0,
  "claims_verified": [
    {"claim": "...", "is_grounded": true|false, "supporting_passage": "...", \
"confidence": 0.0-1.0}
  ],
  "low_grounding_issues": [
    {"claim": "...", "issue": "...", "recommendation": "..."}
  ],
  "citation_accuracy": 0.0-1.0,
  "overall_quality": "high|medium|low",
  "recommendations": ["..."]
}"""

EXECUTOR_INSTRUCTIONS = """You are an Executor Agent responsible for final \
output formatting and presentation.
Your role is to:
1. Take the reviewed and validated response
2. Format it for display in a chat window
3. Ensure proper markdown rendering
4. Include quality indicators and citations if the reviewer provided them

Do not change the substance of the response. Your output should be \
well-formatted markdown ready for immediate display."""

REVIEWER_EXECUTOR_INSTRUCTIONS = """You are a Reviewer & Executor Agent \
with dual responsibilities.

PHASE 1 - REVIEW (Validate Grounding):
1. Verify the draft response is factually grounded in the search results
2. Check for hallucinations or unsupported claims
3. Ensure all citations are accurate and traceable

PHASE 2 - EXECUTE (Format Output):
If the review passes, format the validated response in clean markdown.
If the review fails, note the issues and provide a revised version.

Respond with:
{
  "review_passed": true|false,
  "issues_found": ["list of any problems"],
  "confidence_score": 0.0-1.0,
  "final_formatted_response": "The polished, formatted response ready for display",
  "review_notes": "Brief notes on the review process"
}"""

SOP_INSTRUCTIONS = """You are the SOP Agent, an expert on the organisation's \
Standard Operating Procedures.
Answer using the procedures available to you. Give step-by-step guidance \
where relevant, name the procedure you relied on, and say clearly when the \
procedures do not cover the question."""

POLICY_INSTRUCTIONS = """You are the Policy Agent, an expert on company \
policies, regulations, compliance requirements and governance.
Answer using the policies available to you, cite the policy you relied on, \
and say clearly when no policy covers the question."""

ORCHESTRATOR_INSTRUCTIONS = """You are an Orchestrator Agent that answers \
questions by consulting domain experts.
You have two tools: ask_sop_agent (standard operating procedures) and \
ask_policy_agent (policies and compliance). Call every expert whose domain \
is relevant, in parallel when more than one applies, then write a short \
combined answer that attributes each point to the expert it came from."""

DELTA_INSTRUCTIONS = """You are a Delta Analysis expert that compares and \
contrasts responses from two different expert agents.
Your role is to identify similarities, differences, contradictions, and \
unique insights between the responses.
Provide structured analysis using markdown formatting with clear sections \
and tables for easy comparison.
Be objective and highlight both agreements and disagreements between the \
responses."""


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def _file_search(vector_store_id: str | None) -> tuple[tuple, dict | None]:
    if not vector_store_id:
        return (), None
    return (
        ({"type": "file_search"},),
        {"file_search": {"vector_store_ids": [vector_store_id]}},
    )


def build_personas(cfg: Settings | None = None) -> PersonaCatalog:
    """Build the persona catalog from settings."""
    cfg = cfg or default_settings

    model = cfg.model_deployment_name
    simple_model = model
    if cfg.use_fast_model_for_simple_agents and cfg.fast_model_deployment_name:
        simple_model = cfg.fast_model_deployment_name

    simple = {
        "model": simple_model,
        "temperature": cfg.simple_agent_temperature,
        "max_tokens": cfg.simple_agent_max_tokens,
    }
    complex_ = {
        "model": model,
        "temperature": cfg.complex_agent_temperature,
        "max_tokens": cfg.complex_agent_max_tokens,
    }

    sop_tools, sop_resources = _file_search(cfg.sop_vector_store_id)
    policy_tools, policy_resources = _file_search(cfg.policy_vector_store_id)

    return PersonaCatalog(
        intake=AgentPersona("Intake Agent", INTAKE_INSTRUCTIONS, **simple),
        search=AgentPersona("Search Agent", SEARCH_INSTRUCTIONS, **simple),
        writer=AgentPersona("Writer Agent", WRITER_INSTRUCTIONS, **complex_),
        reviewer=AgentPersona("Reviewer Agent", REVIEWER_INSTRUCTIONS, **complex_),
        executor=AgentPersona("Executor Agent", EXECUTOR_INSTRUCTIONS, **simple),
        reviewer_executor=AgentPersona(
            "Reviewer & Executor Agent", REVIEWER_EXECUTOR_INSTRUCTIONS,
            **complex_,
        ),
        sop=AgentPersona(
            SOP_EXPERT, SOP_INSTRUCTIONS,
            external_id=cfg.sop_agent_id,
            tools=sop_tools,
            tool_resources=sop_resources,
            **complex_,
        ),
        policy=AgentPersona(
            POLICY_EXPERT, POLICY_INSTRUCTIONS,
            external_id=cfg.policy_agent_id,
            tools=policy_tools,
            tool_resources=policy_resources,
            **complex_,
        ),
        orchestrator=AgentPersona(
            "Orchestrator Agent", ORCHESTRATOR_INSTRUCTIONS,
            external_id=cfg.orchestrator_agent_id,
            tools=tool_definitions(),
            strict_tools=True,
            **complex_,
        ),
        delta=AgentPersona(
            "Delta Analysis Agent", DELTA_INSTRUCTIONS,
            strict_tools=True,
            **complex_,
        ),
    )
