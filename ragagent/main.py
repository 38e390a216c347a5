# =============================================================================
# FastAPI Application — Entry Point
# =============================================================================
#
# Run locally:
#   uvicorn ragagent.main:app --reload
#
# Lifespan: nothing to warm up (agents resolve lazily on first use); on
# shutdown the agent service client's HTTP pool is closed.
# =============================================================================

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ragagent.agents.runner import AgentResolutionError
from ragagent.api import chat
from ragagent.config import settings
from ragagent.models.responses import HealthResponse
from ragagent.services.agent_client import close_agent_client

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("%s %s starting", settings.app_name, settings.app_version)
    yield
    await close_agent_client()
    logger.info("%s shutting down", settings.app_name)


async def _resolution_error_handler(
    request: Request, exc: AgentResolutionError,
) -> JSONResponse:
    logger.error("Agent resolution failed on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=502,
        content={"detail": f"Agent service error: {exc}"},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_exception_handler(AgentResolutionError, _resolution_error_handler)
    app.include_router(chat.router)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health() -> HealthResponse:
        return HealthResponse(version=settings.app_version, service=settings.app_name)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
