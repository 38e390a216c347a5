# =============================================================================
# Shared Test Fixtures — In-Memory Agent Service
# =============================================================================
#
# FakeAgentClient implements the AgentServiceClient protocol in memory.
# Each agent's behaviour is scripted by name:
#
#   client.behaviours["Writer Agent"] = "draft text"           # completes
#   client.behaviours["Search Agent"] = fails("index offline") # run fails
#   client.behaviours["SOP Agent"] = lambda q: raise_(...)     # transport error
#   client.behaviours["Orchestrator Agent"] = Script([...])    # tool rounds
#
# Every operation is appended to client.calls as (operation, detail) so tests
# can assert on call counts and ordering.
# =============================================================================

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any

import pytest

from ragagent.agents.personas import build_personas
from ragagent.agents.runner import AgentRunner
from ragagent.config import Settings
from ragagent.services.agent_client import (
    AgentRecord,
    RunState,
    RunStatus,
    ThreadMessage,
    ToolCallRequest,
    ToolCallResult,
)


@dataclass
class Script:
    """
    Ordered run steps. Each step is one of:
      "queued", "in_progress", "hang" (stays in_progress forever),
      ("tools", [ToolCallRequest, ...]), ("complete", text | None),
      ("fail", error | None)
    """

    steps: list[Any]


def replies(text: str | None) -> Script:
    return Script(["queued", "in_progress", ("complete", text)])


def fails(error: str | None) -> Script:
    return Script(["queued", ("fail", error)])


def hangs() -> Script:
    return Script(["queued", "hang"])


def tool_call(call_id: str, name: str, arguments: str) -> ToolCallRequest:
    return ToolCallRequest(call_id=call_id, function_name=name, arguments=arguments)


@dataclass
class FakeRun:
    id: str
    conversation_id: str
    agent_name: str
    steps: list[Any]
    pos: int = 0
    state: RunState | None = None
    submissions: list[list[ToolCallResult]] = field(default_factory=list)


class FakeAgentClient:
    """In-memory AgentServiceClient."""

    def __init__(self) -> None:
        self.agents: dict[str, AgentRecord] = {}
        self.behaviours: dict[str, Any] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple[str, Any]] = []
        self.messages: dict[str, list[ThreadMessage]] = {}
        self.runs: dict[str, FakeRun] = {}
        self.queries: dict[str, list[str]] = {}
        self._ids = itertools.count(1)
        self._clock = itertools.count(1_700_000_000)

    # --- helpers ---

    def add_agent(self, name: str, tool_names: tuple[str, ...] = ()) -> AgentRecord:
        record = AgentRecord(id=f"agent-{next(self._ids)}", name=name, tool_names=tool_names)
        self.agents[record.id] = record
        return record

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    def operations(self) -> list[str]:
        return [op for op, _ in self.calls]

    def _record(self, operation: str, detail: Any = None) -> None:
        self.calls.append((operation, detail))
        error = self.errors.get(operation)
        if error is not None:
            raise error

    def _state(self, run: FakeRun, step: Any) -> RunState:
        if step == "queued":
            return RunState(run.id, RunStatus.QUEUED)
        if step in ("in_progress", "hang"):
            return RunState(run.id, RunStatus.IN_PROGRESS)
        kind, payload = step
        if kind == "tools":
            return RunState(run.id, RunStatus.REQUIRES_TOOL_OUTPUT, tool_calls=list(payload))
        if kind == "fail":
            return RunState(run.id, RunStatus.FAILED, last_error=payload)
        if kind == "complete":
            if payload is not None:
                self.messages[run.conversation_id].append(
                    ThreadMessage("assistant", next(self._clock), payload)
                )
            return RunState(run.id, RunStatus.COMPLETED)
        raise AssertionError(f"unknown step {step!r}")

    def _advance(self, run: FakeRun) -> RunState:
        if run.pos < len(run.steps):
            step = run.steps[run.pos]
            if step != "hang":
                run.pos += 1
            run.state = self._state(run, step)
        return run.state

    # --- AgentServiceClient ---

    async def find_agent_by_name(self, name: str) -> AgentRecord | None:
        self._record("find_agent_by_name", name)
        for record in self.agents.values():
            if record.name == name:
                return record
        return None

    async def get_agent(self, agent_id: str) -> AgentRecord | None:
        self._record("get_agent", agent_id)
        return self.agents.get(agent_id)

    async def create_agent(self, model, name, instructions, tools=None, tool_resources=None):
        self._record("create_agent", name)
        names = []
        for tool in tools or []:
            names.append(tool["function"]["name"] if tool["type"] == "function" else tool["type"])
        return self.add_agent(name, tuple(sorted(names)))

    async def delete_agent(self, agent_id: str) -> None:
        self._record("delete_agent", agent_id)
        self.agents.pop(agent_id, None)

    async def create_conversation(self) -> str:
        self._record("create_conversation")
        conversation_id = f"thread-{next(self._ids)}"
        self.messages[conversation_id] = []
        return conversation_id

    async def post_message(self, conversation_id: str, role: str, text: str) -> None:
        self._record("post_message", (conversation_id, text))
        self.messages[conversation_id].append(ThreadMessage(role, next(self._clock), text))

    async def start_run(self, conversation_id, agent_id, temperature=None, max_tokens=None):
        name = self.agents[agent_id].name if agent_id in self.agents else agent_id
        self._record("start_run", name)
        query = next(
            m.text for m in reversed(self.messages[conversation_id]) if m.role == "user"
        )
        self.queries.setdefault(name, []).append(query)

        behaviour = self.behaviours.get(name, f"{name} reply")
        if callable(behaviour):
            behaviour = behaviour(query)
        script = replies(behaviour) if isinstance(behaviour, str) else behaviour

        run = FakeRun(
            id=f"run-{next(self._ids)}",
            conversation_id=conversation_id,
            agent_name=name,
            steps=list(script.steps),
        )
        self.runs[run.id] = run
        return self._advance(run)

    async def get_run(self, conversation_id: str, run_id: str) -> RunState:
        self._record("get_run", run_id)
        run = self.runs[run_id]
        if run.state.status is RunStatus.REQUIRES_TOOL_OUTPUT:
            return run.state
        return self._advance(run)

    async def cancel_run(self, conversation_id: str, run_id: str) -> None:
        self._record("cancel_run", run_id)

    async def list_messages(self, conversation_id: str) -> list[ThreadMessage]:
        self._record("list_messages", conversation_id)
        return list(self.messages[conversation_id])

    async def submit_tool_outputs(self, conversation_id, run_id, outputs):
        self._record("submit_tool_outputs", list(outputs))
        run = self.runs[run_id]
        run.submissions.append(list(outputs))
        run.state = RunState(run.id, RunStatus.IN_PROGRESS)
        return run.state


def raise_(error: Exception):
    raise error


@pytest.fixture
def fake_client() -> FakeAgentClient:
    return FakeAgentClient()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        agent_api_key="test-key",
        model_deployment_name="test-model",
        poll_interval_seconds=0,
        sop_agent_id=None,
        policy_agent_id=None,
        orchestrator_agent_id=None,
    )


@pytest.fixture
def personas(test_settings):
    return build_personas(test_settings)


@pytest.fixture
def runner(fake_client) -> AgentRunner:
    return AgentRunner(fake_client, poll_interval=0)
