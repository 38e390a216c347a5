# =============================================================================
# RAG Agent Orchestrator
# =============================================================================
# Routes a user query through a pipeline of hosted LLM agents (intake,
# search, writer, reviewer, executor) and through domain experts (SOP,
# Policy), then optionally compares the expert answers.
#
# Package structure:
#   ragagent/
#   ├── agents/       → Agent runner, LangGraph pipeline, expert routing,
#   │                    execution tracing, delta analysis
#   ├── api/          → FastAPI route handlers (pipeline, experts, delta)
#   ├── models/       → Pydantic V2 request/response schemas
#   └── services/     → Hosted agent service adapter, cost estimation
# =============================================================================
