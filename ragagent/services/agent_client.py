# =============================================================================
# Hosted Agent Service Client — Assistants API Adapter
# =============================================================================
#
# Wraps the conversational agent service (agents, conversations, messages,
# runs, tool outputs) behind a small Protocol so the runner never touches
# SDK objects directly.
#
# ARCHITECTURE:
#   AgentServiceClient (Protocol)
#   ├── OpenAIAgentServiceClient — OpenAI / Azure OpenAI Assistants API
#   ├── get_agent_client()       — Lazy singleton factory, reads from config
#   └── close_agent_client()     — Closes and resets the singleton
#
# DESIGN DECISION: Normalised records (AgentRecord, RunState, ThreadMessage)
# instead of SDK models. The runner and the tests only see these types, and
# provider status strings are mapped onto the five RunStatus values here:
#   requires_action                  → requires_tool_output
#   cancelling                       → in_progress
#   cancelled / expired / incomplete → failed
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from ragagent.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


class RunStatus(str, Enum):
    """Run statuses the orchestration core reacts to."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_TOOL_OUTPUT = "requires_tool_output"
    COMPLETED = "completed"
    FAILED = "failed"


TRANSIENT_STATUSES = frozenset({RunStatus.QUEUED, RunStatus.IN_PROGRESS})


@dataclass(frozen=True)
class AgentRecord:
    """An agent registration on the hosted service."""

    id: str
    name: str | None
    tool_names: tuple[str, ...] = ()


@dataclass(frozen=True)
class ToolCallRequest:
    """A function call the agent emitted mid-run."""

    call_id: str
    function_name: str
    arguments: str  # Raw JSON string, validated by the dispatcher


@dataclass(frozen=True)
class ToolCallResult:
    """Output submitted back to the run for one tool call."""

    call_id: str
    output: str


@dataclass
class RunState:
    """Snapshot of a run as returned by the service."""

    id: str
    status: RunStatus
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    last_error: str | None = None


@dataclass
class ThreadMessage:
    """One message in a conversation."""

    role: str           # "user" or "assistant"
    created_at: int     # Unix timestamp (seconds)
    text: str           # Text blocks joined with newlines


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class AgentServiceClient(Protocol):
    """Operations the orchestration core consumes from the agent service."""

    async def find_agent_by_name(self, name: str) -> AgentRecord | None: ...

    async def get_agent(self, agent_id: str) -> AgentRecord | None: ...

    async def create_agent(
        self,
        model: str,
        name: str,
        instructions: str,
        tools: list[dict[str, Any]] | None = None,
        tool_resources: dict[str, Any] | None = None,
    ) -> AgentRecord: ...

    async def delete_agent(self, agent_id: str) -> None: ...

    async def create_conversation(self) -> str: ...

    async def post_message(
        self, conversation_id: str, role: str, text: str,
    ) -> None: ...

    async def start_run(
        self,
        conversation_id: str,
        agent_id: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> RunState: ...

    async def get_run(self, conversation_id: str, run_id: str) -> RunState: ...

    async def cancel_run(self, conversation_id: str, run_id: str) -> None: ...

    async def list_messages(self, conversation_id: str) -> list[ThreadMessage]: ...

    async def submit_tool_outputs(
        self,
        conversation_id: str,
        run_id: str,
        outputs: list[ToolCallResult],
    ) -> RunState: ...


# ---------------------------------------------------------------------------
# Implementation: OpenAI / Azure OpenAI Assistants API
# ---------------------------------------------------------------------------


_STATUS_MAP: dict[str, RunStatus] = {
    "queued": RunStatus.QUEUED,
    "in_progress": RunStatus.IN_PROGRESS,
    "cancelling": RunStatus.IN_PROGRESS,
    "requires_action": RunStatus.REQUIRES_TOOL_OUTPUT,
    "completed": RunStatus.COMPLETED,
    "failed": RunStatus.FAILED,
    "cancelled": RunStatus.FAILED,
    "expired": RunStatus.FAILED,
    "incomplete": RunStatus.FAILED,
}


class OpenAIAgentServiceClient:
    """
    Agent service client over the Assistants API.

    Agents map to assistants, conversations to threads. Works with both
    `AsyncOpenAI` and `AsyncAzureOpenAI`; the SDK handles connection
    pooling and retries.
    """

    def __init__(
        self,
        api_key: str | None = None,
        provider: str | None = None,
        base_url: str | None = None,
        azure_endpoint: str | None = None,
        api_version: str | None = None,
    ) -> None:
        resolved_key = api_key or settings.agent_api_key
        if not resolved_key:
            raise ValueError(
                "No agent service API key configured. Set AGENT_API_KEY in .env"
            )

        resolved_provider = provider or settings.agent_provider
        if resolved_provider == "azure":
            from openai import AsyncAzureOpenAI

            endpoint = azure_endpoint or settings.azure_endpoint
            if not endpoint:
                raise ValueError(
                    "Azure provider selected but AZURE_ENDPOINT is not set"
                )
            self._client = AsyncAzureOpenAI(
                api_key=resolved_key,
                azure_endpoint=endpoint,
                api_version=api_version or settings.azure_api_version,
            )
            target = endpoint
        elif resolved_provider == "openai":
            from openai import AsyncOpenAI

            client_kwargs: dict = {"api_key": resolved_key}
            resolved_base_url = base_url or settings.agent_base_url
            if resolved_base_url:
                client_kwargs["base_url"] = resolved_base_url
            self._client = AsyncOpenAI(**client_kwargs)
            target = resolved_base_url or "https://api.openai.com/v1"
        else:
            raise ValueError(
                f"Unknown agent provider '{resolved_provider}'. "
                "Supported providers: ['azure', 'openai']"
            )

        logger.info(
            "Initialized OpenAIAgentServiceClient (provider=%s, endpoint=%s)",
            resolved_provider, target,
        )

    # --- Agents ---

    async def find_agent_by_name(self, name: str) -> AgentRecord | None:
        async for assistant in self._client.beta.assistants.list(limit=100):
            if assistant.name == name:
                return _to_agent_record(assistant)
        return None

    async def get_agent(self, agent_id: str) -> AgentRecord | None:
        from openai import NotFoundError

        try:
            assistant = await self._client.beta.assistants.retrieve(agent_id)
        except NotFoundError:
            return None
        return _to_agent_record(assistant)

    async def create_agent(
        self,
        model: str,
        name: str,
        instructions: str,
        tools: list[dict[str, Any]] | None = None,
        tool_resources: dict[str, Any] | None = None,
    ) -> AgentRecord:
        kwargs: dict = {
            "model": model,
            "name": name,
            "instructions": instructions,
            "tools": tools or [],
        }
        if tool_resources:
            kwargs["tool_resources"] = tool_resources

        assistant = await self._client.beta.assistants.create(**kwargs)
        return _to_agent_record(assistant)

    async def delete_agent(self, agent_id: str) -> None:
        await self._client.beta.assistants.delete(agent_id)

    # --- Conversations & messages ---

    async def create_conversation(self) -> str:
        thread = await self._client.beta.threads.create()
        return thread.id

    async def post_message(
        self, conversation_id: str, role: str, text: str,
    ) -> None:
        await self._client.beta.threads.messages.create(
            conversation_id, role=role, content=text,
        )

    async def list_messages(self, conversation_id: str) -> list[ThreadMessage]:
        messages: list[ThreadMessage] = []
        async for message in self._client.beta.threads.messages.list(
            conversation_id, order="asc", limit=100,
        ):
            text = "\n".join(
                block.text.value
                for block in message.content
                if block.type == "text"
            )
            messages.append(ThreadMessage(
                role=message.role,
                created_at=message.created_at,
                text=text,
            ))
        return messages

    # --- Runs ---

    async def start_run(
        self,
        conversation_id: str,
        agent_id: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> RunState:
        kwargs: dict = {"assistant_id": agent_id}
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_completion_tokens"] = max_tokens

        run = await self._client.beta.threads.runs.create(
            conversation_id, **kwargs,
        )
        return _to_run_state(run)

    async def get_run(self, conversation_id: str, run_id: str) -> RunState:
        run = await self._client.beta.threads.runs.retrieve(
            run_id, thread_id=conversation_id,
        )
        return _to_run_state(run)

    async def cancel_run(self, conversation_id: str, run_id: str) -> None:
        await self._client.beta.threads.runs.cancel(
            run_id, thread_id=conversation_id,
        )

    async def submit_tool_outputs(
        self,
        conversation_id: str,
        run_id: str,
        outputs: list[ToolCallResult],
    ) -> RunState:
        run = await self._client.beta.threads.runs.submit_tool_outputs(
            run_id,
            thread_id=conversation_id,
            tool_outputs=[
                {"tool_call_id": o.call_id, "output": o.output}
                for o in outputs
            ],
        )
        return _to_run_state(run)

    async def close(self) -> None:
        await self._client.close()


# ---------------------------------------------------------------------------
# SDK → record mapping
# ---------------------------------------------------------------------------


def _tool_name(tool: Any) -> str:
    """Function tools are identified by function name, others by type."""
    if tool.type == "function":
        return tool.function.name
    return tool.type


def _to_agent_record(assistant: Any) -> AgentRecord:
    return AgentRecord(
        id=assistant.id,
        name=assistant.name,
        tool_names=tuple(sorted(_tool_name(t) for t in assistant.tools or [])),
    )


def _to_run_state(run: Any) -> RunState:
    status = _STATUS_MAP.get(run.status)
    if status is None:
        logger.warning("Unrecognised run status '%s', treating as failed", run.status)
        status = RunStatus.FAILED

    tool_calls: list[ToolCallRequest] = []
    if status is RunStatus.REQUIRES_TOOL_OUTPUT and run.required_action:
        tool_calls = [
            ToolCallRequest(
                call_id=call.id,
                function_name=call.function.name,
                arguments=call.function.arguments,
            )
            for call in run.required_action.submit_tool_outputs.tool_calls
        ]

    last_error = run.last_error.message if run.last_error else None
    if status is RunStatus.FAILED and last_error is None and run.status != "failed":
        last_error = f"Run ended with status '{run.status}'"

    return RunState(
        id=run.id,
        status=status,
        tool_calls=tool_calls,
        last_error=last_error,
    )


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

_client: OpenAIAgentServiceClient | None = None


def get_agent_client() -> OpenAIAgentServiceClient:
    """
    Return the configured agent service client (lazy singleton).

    Raises:
        ValueError: If the API key or provider settings are invalid.
    """
    global _client
    if _client is None:
        _client = OpenAIAgentServiceClient()
    return _client


async def close_agent_client() -> None:
    """Close the singleton client, if one was created."""
    global _client
    if _client is not None:
        await _client.close()
        _client = None
