# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
#   - chat.py: pipeline, expert fan-out, orchestrated experts, delta
#   - deps.py: orchestrator dependency (503 on configuration errors)
# =============================================================================
