# =============================================================================
# Agent Runner — One Query Against One Persona
# =============================================================================
#
# Every stage, expert, orchestrator and comparison call goes through here:
#
#   resolve persona ──▶ create/reuse conversation ──▶ post message
#        ──▶ start run ──▶ poll ──▶ (tool outputs ──▶ poll)* ──▶ read reply
#
# RESOLUTION ORDER (memoised per persona name, guarded by a per-name lock):
#   1. cached handle
#   2. configured external id (optionally validated; a miss falls through)
#   3. lookup by name
#   4. create
#
# ERROR POLICY:
#   - Resolution failures raise AgentResolutionError (setup problem).
#   - Failed runs, transport errors, missing replies, timeouts and tool
#     dispatch errors are returned as a failed RunResult, never raised.
#   - asyncio.CancelledError propagates after a best-effort run cancel.
#
# KNOWN LIMITATION: lookup-by-name then create is not atomic across
# processes. Two processes starting together can both create an agent with
# the same name. Configure external ids to avoid it.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from ragagent.agents.personas import AgentPersona
from ragagent.agents.sessions import ConversationSession
from ragagent.services.agent_client import (
    TRANSIENT_STATUSES,
    AgentRecord,
    AgentServiceClient,
    RunState,
    RunStatus,
    ToolCallRequest,
    ToolCallResult,
)

logger = logging.getLogger(__name__)

NO_RESPONSE_TEXT = "no response produced"

ToolHandler = Callable[[ToolCallRequest], Awaitable[str]]


class AgentResolutionError(RuntimeError):
    """A persona could not be found or registered on the agent service."""


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResolvedAgentHandle:
    """A persona bound to a hosted agent id."""

    persona_name: str
    agent_id: str
    source: str  # "configured", "validated", "lookup" or "created"


@dataclass
class RunResult:
    """Terminal outcome of one run."""

    status: RunStatus
    text: str | None = None
    error: str | None = None
    conversation_id: str | None = None
    run_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is RunStatus.COMPLETED and self.error is None

    @property
    def output(self) -> str:
        """The reply on success, otherwise an "Error: ..." string."""
        if self.ok:
            return self.text or ""
        return f"Error: {self.error}"

    @classmethod
    def failure(
        cls,
        error: str,
        conversation_id: str | None = None,
        run_id: str | None = None,
    ) -> RunResult:
        return cls(
            status=RunStatus.FAILED,
            error=error,
            conversation_id=conversation_id,
            run_id=run_id,
        )


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class AgentRunner:
    """
    Generic runner for any persona.

    One instance is shared by the whole application; it owns the resolved
    handle cache.

    Args:
        client: Agent service client.
        poll_interval: Seconds between run status checks.
        run_timeout: Wall-clock bound per run in seconds (None = unbounded).
        max_tool_rounds: Maximum requires_tool_output cycles per run.
        validate_external_ids: Check configured ids exist before use.
    """

    def __init__(
        self,
        client: AgentServiceClient,
        poll_interval: float = 1.0,
        run_timeout: float | None = None,
        max_tool_rounds: int = 5,
        validate_external_ids: bool = False,
    ) -> None:
        self._client = client
        self._poll_interval = poll_interval
        self._run_timeout = run_timeout
        self._max_tool_rounds = max_tool_rounds
        self._validate_external_ids = validate_external_ids
        self._handles: dict[str, ResolvedAgentHandle] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def client(self) -> AgentServiceClient:
        return self._client

    # --- Resolution ---

    async def resolve(self, persona: AgentPersona) -> ResolvedAgentHandle:
        """
        Find or create the hosted agent for a persona (memoised).

        Raises:
            AgentResolutionError: If the service calls fail.
        """
        cached = self._handles.get(persona.name)
        if cached is not None:
            logger.debug("Using cached agent id %s for '%s'", cached.agent_id, persona.name)
            return cached

        lock = self._locks.setdefault(persona.name, asyncio.Lock())
        async with lock:
            cached = self._handles.get(persona.name)
            if cached is not None:
                return cached

            try:
                handle = await self._resolve_uncached(persona)
            except AgentResolutionError:
                raise
            except Exception as e:
                raise AgentResolutionError(
                    f"Could not resolve agent '{persona.name}': {e}"
                ) from e

            self._handles[persona.name] = handle
            logger.info(
                "Resolved agent '%s' → %s (%s)",
                persona.name, handle.agent_id, handle.source,
            )
            return handle

    async def _resolve_uncached(self, persona: AgentPersona) -> ResolvedAgentHandle:
        if persona.external_id:
            if not self._validate_external_ids:
                return ResolvedAgentHandle(persona.name, persona.external_id, "configured")

            record = await self._client.get_agent(persona.external_id)
            if record is not None:
                return ResolvedAgentHandle(persona.name, record.id, "validated")
            logger.warning(
                "Configured agent id %s for '%s' not found, falling back to lookup",
                persona.external_id, persona.name,
            )

        logger.info("Searching for existing agent with name: %s", persona.name)
        record = await self._client.find_agent_by_name(persona.name)

        if record is not None:
            if not persona.strict_tools or record.tool_names == persona.tool_names:
                return ResolvedAgentHandle(persona.name, record.id, "lookup")

            logger.warning(
                "Agent '%s' (%s) has tools %s, expected %s; recreating",
                persona.name, record.id, list(record.tool_names),
                list(persona.tool_names),
            )
            await self._client.delete_agent(record.id)

        if not persona.instructions:
            raise AgentResolutionError(
                f"Agent '{persona.name}' not found and has no instructions to create it"
            )

        logger.info(
            "Creating new agent with name: %s, model: %s",
            persona.name, persona.model,
        )
        created: AgentRecord = await self._client.create_agent(
            model=persona.model,
            name=persona.name,
            instructions=persona.instructions,
            tools=list(persona.tools),
            tool_resources=persona.tool_resources,
        )
        return ResolvedAgentHandle(persona.name, created.id, "created")

    # --- Execution ---

    async def run(
        self,
        persona: AgentPersona,
        query: str,
        session: ConversationSession | None = None,
        tool_handler: ToolHandler | None = None,
    ) -> RunResult:
        """
        Run one query against a persona and return its reply.

        Args:
            persona: The agent role to run.
            query: User message text (must be non-empty).
            session: Reuse this conversation (stateful). None creates a
                throwaway conversation (stateless).
            tool_handler: Resolves tool calls when the run asks for them.

        Raises:
            ValueError: Empty query.
            AgentResolutionError: Persona could not be resolved.
        """
        if not query or not query.strip():
            raise ValueError("Query must not be empty")

        handle = await self.resolve(persona)

        logger.info(
            "Running '%s' for query: '%s'", persona.name, query[:80],
        )

        if session is None:
            return await self._run_guarded(handle, persona, query, None, tool_handler)

        async with session.lock:
            return await self._run_guarded(handle, persona, query, session, tool_handler)

    async def _run_guarded(
        self,
        handle: ResolvedAgentHandle,
        persona: AgentPersona,
        query: str,
        session: ConversationSession | None,
        tool_handler: ToolHandler | None,
    ) -> RunResult:
        progress: dict[str, str] = {}
        deadline = asyncio.timeout(self._run_timeout)
        try:
            async with deadline:
                return await self._execute(
                    handle, persona, query, session, tool_handler, progress,
                )
        except asyncio.CancelledError:
            logger.info("Run for '%s' cancelled", persona.name)
            await self._cancel_quietly(progress)
            raise
        except Exception as e:
            # A TimeoutError from the transport is an ordinary error; only
            # our own deadline expiring means the run timed out.
            if isinstance(e, TimeoutError) and deadline.expired():
                logger.warning(
                    "Run for '%s' timed out after %ss", persona.name, self._run_timeout,
                )
                await self._cancel_quietly(progress)
                return RunResult.failure(
                    f"Run timed out after {self._run_timeout} seconds",
                    progress.get("conversation_id"), progress.get("run_id"),
                )
            logger.exception("Error running '%s': %s", persona.name, e)
            return RunResult.failure(
                str(e) or type(e).__name__,
                progress.get("conversation_id"), progress.get("run_id"),
            )

    async def _execute(
        self,
        handle: ResolvedAgentHandle,
        persona: AgentPersona,
        query: str,
        session: ConversationSession | None,
        tool_handler: ToolHandler | None,
        progress: dict[str, str],
    ) -> RunResult:
        if session is None:
            conversation_id = await self._client.create_conversation()
        else:
            conversation_id = await session.ensure(self._client)
        progress["conversation_id"] = conversation_id

        await self._client.post_message(conversation_id, "user", query)
        run = await self._client.start_run(
            conversation_id,
            handle.agent_id,
            temperature=persona.temperature,
            max_tokens=persona.max_tokens,
        )
        progress["run_id"] = run.id
        logger.info("Run created: %s with status: %s", run.id, run.status.value)

        run = await self._poll(conversation_id, run, tool_handler)

        if run.status is RunStatus.REQUIRES_TOOL_OUTPUT:
            await self._cancel_quietly(progress)
            return RunResult.failure(
                run.last_error or "Run requested tool output that cannot be provided",
                conversation_id, run.id,
            )

        if run.status is RunStatus.FAILED:
            error = run.last_error or "Unknown error"
            logger.error("Run %s failed with error: %s", run.id, error)
            return RunResult.failure(error, conversation_id, run.id)

        text = await self._latest_reply(conversation_id)
        if not text:
            logger.warning("No assistant message found in conversation: %s", conversation_id)
            return RunResult(
                status=RunStatus.COMPLETED,
                error=NO_RESPONSE_TEXT,
                conversation_id=conversation_id,
                run_id=run.id,
            )

        logger.info(
            "Run %s completed for '%s' (%d chars)", run.id, persona.name, len(text),
        )
        return RunResult(
            status=RunStatus.COMPLETED,
            text=text,
            conversation_id=conversation_id,
            run_id=run.id,
        )

    async def _poll(
        self,
        conversation_id: str,
        run: RunState,
        tool_handler: ToolHandler | None,
    ) -> RunState:
        """
        Poll until the run is terminal, answering tool calls along the way.

        Returns a run in COMPLETED or FAILED, or REQUIRES_TOOL_OUTPUT with
        last_error set when tool output cannot be supplied.
        """
        tool_rounds = 0
        poll_count = 0

        while True:
            while run.status in TRANSIENT_STATUSES:
                await asyncio.sleep(self._poll_interval)
                run = await self._client.get_run(conversation_id, run.id)
                poll_count += 1
                logger.debug(
                    "Run %s status: %s (polled %d times)",
                    run.id, run.status.value, poll_count,
                )

            if run.status is not RunStatus.REQUIRES_TOOL_OUTPUT:
                return run

            if tool_handler is None:
                run.last_error = "Run requested tool output but no tools are available"
                return run

            tool_rounds += 1
            if tool_rounds > self._max_tool_rounds:
                run.last_error = (
                    f"Exceeded maximum of {self._max_tool_rounds} tool-call rounds"
                )
                return run

            logger.info(
                "Run %s requires %d tool output(s) (round %d)",
                run.id, len(run.tool_calls), tool_rounds,
            )
            outputs = await asyncio.gather(
                *(self._dispatch_tool(call, tool_handler) for call in run.tool_calls)
            )
            run = await self._client.submit_tool_outputs(
                conversation_id, run.id, list(outputs),
            )

    async def _dispatch_tool(
        self, call: ToolCallRequest, tool_handler: ToolHandler,
    ) -> ToolCallResult:
        try:
            output = await tool_handler(call)
        except Exception as e:
            logger.warning(
                "Tool call %s (%s) failed: %s", call.call_id, call.function_name, e,
            )
            output = f"Error: {e}"
        return ToolCallResult(call_id=call.call_id, output=output)

    async def _latest_reply(self, conversation_id: str) -> str | None:
        messages = await self._client.list_messages(conversation_id)
        replies = [m for m in messages if m.role != "user"]
        if not replies:
            return None
        latest = sorted(replies, key=lambda m: m.created_at)[-1]
        return latest.text or None

    async def _cancel_quietly(self, progress: dict[str, str]) -> None:
        conversation_id = progress.get("conversation_id")
        run_id = progress.get("run_id")
        if not conversation_id or not run_id:
            return
        try:
            await self._client.cancel_run(conversation_id, run_id)
        except Exception as e:
            logger.warning("Could not cancel run %s: %s", run_id, e)
