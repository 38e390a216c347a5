# =============================================================================
# Application Configuration — Pydantic Settings
# =============================================================================
#
# Pydantic V2's `BaseSettings` loads values in this priority order
# (highest first):
#   1. Environment variables (e.g., `AGENT_API_KEY=...`)
#   2. Values from the .env file
#   3. Default values defined below
#
# USAGE:
#   from ragagent.config import settings
#   print(settings.model_deployment_name)
# =============================================================================

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Defaults are suitable for local development against the public OpenAI
    Assistants API. Point `agent_provider` at "azure" to use an Azure
    OpenAI deployment instead.
    """

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    app_name: str = "RAG Agent Orchestrator"
    app_version: str = "0.1.0"
    debug: bool = True
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # Hosted Agent Service
    # -------------------------------------------------------------------------
    # Two providers share the same Assistants-style API surface:
    #   - "openai": api.openai.com (or any compatible base_url)
    #   - "azure":  Azure OpenAI, needs azure_endpoint + azure_api_version
    #
    # The API key MUST be set via environment variables or .env file.
    # -------------------------------------------------------------------------
    agent_provider: str = "openai"  # "openai" or "azure"
    agent_api_key: str = ""
    agent_base_url: str | None = None
    azure_endpoint: str | None = None
    azure_api_version: str = "2024-05-01-preview"
    model_deployment_name: str = "gpt-4o"

    # -------------------------------------------------------------------------
    # Pre-provisioned Agents
    # -------------------------------------------------------------------------
    # When set, these ids are used as-is instead of looking agents up by
    # name. Name lookup can silently adopt a stale registration with a
    # different prompt, so configured ids are the preferred path.
    # validate_agent_ids: check the id exists first and fall back to
    # lookup-by-name when it does not.
    # -------------------------------------------------------------------------
    sop_agent_id: str | None = None
    policy_agent_id: str | None = None
    orchestrator_agent_id: str | None = None
    validate_agent_ids: bool = False

    # Optional knowledge bases for the expert agents (adds file_search)
    sop_vector_store_id: str | None = None
    policy_vector_store_id: str | None = None

    # -------------------------------------------------------------------------
    # Run Control
    # -------------------------------------------------------------------------
    # poll_interval_seconds: delay between run status checks.
    # run_timeout_seconds: wall-clock bound for one run (None = unbounded).
    # max_tool_rounds: bound on requires_tool_output cycles per run.
    # -------------------------------------------------------------------------
    poll_interval_seconds: float = 1.0
    run_timeout_seconds: float | None = 300.0
    max_tool_rounds: int = 5

    # -------------------------------------------------------------------------
    # Agent Performance Profile
    # -------------------------------------------------------------------------
    # Simple agents (Intake, Search, Executor) run cooler and shorter;
    # complex agents (Writer, Reviewer) get more room. Optionally route
    # simple agents to a cheaper deployment.
    # -------------------------------------------------------------------------
    simple_agent_temperature: float = 0.3
    complex_agent_temperature: float = 0.7
    simple_agent_max_tokens: int = 500
    complex_agent_max_tokens: int = 2000
    use_fast_model_for_simple_agents: bool = False
    fast_model_deployment_name: str | None = None

    # Replace Reviewer + Executor with one combined stage
    pipeline_combined_review: bool = False

    # -------------------------------------------------------------------------
    # Cost Estimation
    # -------------------------------------------------------------------------
    # Placeholder USD rates per 1,000 tokens. The tracer's token counts are a
    # character heuristic, so these numbers are indicative only.
    # -------------------------------------------------------------------------
    cost_per_1k_input_tokens: float = 0.0025
    cost_per_1k_output_tokens: float = 0.01

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Create and cache a Settings instance.

    In tests, override with FastAPI's dependency_overrides or construct
    Settings(...) directly.
    """
    return Settings()


# Module-level convenience instance:
#   from ragagent.config import settings
settings = get_settings()
