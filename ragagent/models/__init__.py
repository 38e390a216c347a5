# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
# Request/response schemas for the HTTP API. Internal dataclasses
# (PipelineTrace, RunResult, ...) are mapped onto these at the route layer.
# =============================================================================
