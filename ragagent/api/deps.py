# =============================================================================
# API Dependencies — FastAPI Dependency Injection
# =============================================================================
#
# get_agent_orchestrator() hands route handlers the shared orchestrator.
# Building it on first use can fail on configuration (e.g. no API key);
# that surfaces as 503 instead of a crash.
#
# Testable via dependency_overrides:
#   app.dependency_overrides[get_agent_orchestrator] = lambda: fake
# =============================================================================

from __future__ import annotations

import logging

from fastapi import HTTPException

from ragagent.agents.orchestrator import AgentOrchestrator, get_orchestrator

logger = logging.getLogger(__name__)


def get_agent_orchestrator() -> AgentOrchestrator:
    try:
        return get_orchestrator()
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        raise HTTPException(
            status_code=503,
            detail=f"Service configuration error: {e}",
        ) from e
