# =============================================================================
# Services Package — External Integrations
# =============================================================================
#   - agent_client.py: Hosted agent service adapter (Assistants API)
#   - pricing.py: Heuristic token and cost estimation for traces
# =============================================================================
