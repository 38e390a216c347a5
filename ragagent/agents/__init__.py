# =============================================================================
# Agents Package — Orchestration Core
# =============================================================================
#   - personas.py: Persona descriptors and the catalog built from settings
#   - runner.py: Generic agent runner (resolve, run, poll, tool calls)
#   - pipeline.py: LangGraph pipeline Intake → Search → Writer → Reviewer
#     → Executor, with per-stage fallbacks
#   - orchestrator.py: Consumer-facing facade; parallel expert fan-out and
#     tool-routed expert selection
#   - tracing.py: Per-stage execution traces with cost estimates
#   - delta.py: Comparison of two expert answers
#   - tools.py: Expert tool definitions and call validation
#   - sessions.py: Session-scoped conversation reuse
# =============================================================================
