# =============================================================================
# Unit Tests — Agent Orchestrator
# =============================================================================
#
# Parallel expert fan-out, session reuse, tool-routed orchestration and the
# delta facade.
# =============================================================================

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

from conftest import Script, fails, raise_, tool_call
from ragagent.agents.orchestrator import AgentOrchestrator
from ragagent.agents.runner import AgentResolutionError, RunResult
from ragagent.agents.sessions import SessionStore
from ragagent.services.agent_client import RunStatus


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _query(text: str) -> str:
    return json.dumps({"query": text})


# ---------------------------------------------------------------------------
# Test: Parallel Fan-Out
# ---------------------------------------------------------------------------


class TestRouteToExperts:
    """Both experts answer the same question concurrently."""

    def test_both_experts_answer(self, fake_client, runner, personas):
        fake_client.behaviours["SOP Agent"] = "Follow procedure 4.2"
        fake_client.behaviours["Policy Agent"] = "Policy 7 applies"
        orchestrator = AgentOrchestrator(runner, personas)

        responses = _run(orchestrator.route_to_experts("Can I work remotely?"))

        assert responses == {
            "SOP Agent": "Follow procedure 4.2",
            "Policy Agent": "Policy 7 applies",
        }
        assert fake_client.queries["SOP Agent"] == ["Can I work remotely?"]
        assert fake_client.queries["Policy Agent"] == ["Can I work remotely?"]

    def test_one_expert_failure_is_isolated(self, fake_client, runner, personas):
        fake_client.behaviours["SOP Agent"] = lambda q: raise_(ConnectionError("unreachable"))
        fake_client.behaviours["Policy Agent"] = "Policy 7 applies"
        orchestrator = AgentOrchestrator(runner, personas)

        responses = _run(orchestrator.route_to_experts("Question?"))

        assert responses["SOP Agent"] == "Error: unreachable"
        assert responses["Policy Agent"] == "Policy 7 applies"

    def test_failed_run_reported_as_error(self, fake_client, runner, personas):
        fake_client.behaviours["Policy Agent"] = fails("content filtered")
        orchestrator = AgentOrchestrator(runner, personas)

        responses = _run(orchestrator.route_to_experts("Question?"))

        assert responses["Policy Agent"] == "Error: content filtered"
        assert responses["SOP Agent"] == "SOP Agent reply"

    def test_resolution_error_is_isolated(self, personas):
        runner = MagicMock()
        runner.run = AsyncMock(side_effect=[
            AgentResolutionError("no such agent"),
            RunResult(status=RunStatus.COMPLETED, text="policy answer"),
        ])
        orchestrator = AgentOrchestrator(runner, personas)

        responses = _run(orchestrator.route_to_experts("Question?"))

        assert responses == {
            "SOP Agent": "Error: no such agent",
            "Policy Agent": "policy answer",
        }

    def test_session_reuses_conversations(self, fake_client, runner, personas):
        orchestrator = AgentOrchestrator(runner, personas, sessions=SessionStore())

        async def two_turns():
            await orchestrator.route_to_experts("first", session_id="user-1")
            await orchestrator.route_to_experts("follow-up", session_id="user-1")

        _run(two_turns())

        # one conversation per expert for the session
        assert fake_client.count("create_conversation") == 2

    def test_sessions_are_not_shared(self, fake_client, runner, personas):
        orchestrator = AgentOrchestrator(runner, personas)

        async def two_users():
            await orchestrator.route_to_experts("hello", session_id="user-1")
            await orchestrator.route_to_experts("hello", session_id="user-2")

        _run(two_users())

        assert fake_client.count("create_conversation") == 4

    def test_without_session_each_call_is_stateless(self, fake_client, runner, personas):
        orchestrator = AgentOrchestrator(runner, personas)

        async def two_calls():
            await orchestrator.route_to_experts("first")
            await orchestrator.route_to_experts("second")

        _run(two_calls())

        assert fake_client.count("create_conversation") == 4


# ---------------------------------------------------------------------------
# Test: Tool-Routed Orchestration
# ---------------------------------------------------------------------------


class TestRouteWithTools:
    """The orchestrator agent consults experts through function calls."""

    def test_tool_round_trip(self, fake_client, runner, personas):
        fake_client.behaviours["SOP Agent"] = "sop says A"
        fake_client.behaviours["Policy Agent"] = "policy says B"
        fake_client.behaviours["Orchestrator Agent"] = Script([
            "queued",
            ("tools", [
                tool_call("call-1", "ask_sop_agent", _query("expense steps")),
                tool_call("call-2", "ask_policy_agent", _query("expense limits")),
            ]),
            ("complete", "Combined: A and B"),
        ])
        orchestrator = AgentOrchestrator(runner, personas)

        result = _run(orchestrator.route_with_tools("How do I file expenses?"))

        assert result.summary == "Combined: A and B"
        assert result.responses == {
            "SOP Agent": "sop says A",
            "Policy Agent": "policy says B",
        }
        assert fake_client.queries["SOP Agent"] == ["expense steps"]
        assert fake_client.queries["Policy Agent"] == ["expense limits"]
        assert fake_client.count("submit_tool_outputs") == 1

        orchestrator_run = next(
            r for r in fake_client.runs.values() if r.agent_name == "Orchestrator Agent"
        )
        (batch,) = orchestrator_run.submissions
        assert {o.call_id: o.output for o in batch} == {
            "call-1": "sop says A",
            "call-2": "policy says B",
        }

    def test_orchestrator_registered_with_expert_tools(self, fake_client, runner, personas):
        orchestrator = AgentOrchestrator(runner, personas)

        _run(orchestrator.route_with_tools("Question?"))

        (record,) = [a for a in fake_client.agents.values() if a.name == "Orchestrator Agent"]
        assert record.tool_names == ("ask_policy_agent", "ask_sop_agent")

    def test_unknown_tool_becomes_error_output(self, fake_client, runner, personas):
        fake_client.behaviours["Orchestrator Agent"] = Script([
            ("tools", [tool_call("call-1", "ask_finance_agent", _query("x"))]),
            ("complete", "I could not reach that expert"),
        ])
        orchestrator = AgentOrchestrator(runner, personas)

        result = _run(orchestrator.route_with_tools("Question?"))

        assert result.summary == "I could not reach that expert"
        assert result.responses == {}
        (run,) = [r for r in fake_client.runs.values() if r.agent_name == "Orchestrator Agent"]
        assert run.submissions[0][0].output.startswith("Error: Unknown tool")

    def test_invalid_arguments_become_error_output(self, fake_client, runner, personas):
        fake_client.behaviours["Orchestrator Agent"] = Script([
            ("tools", [tool_call("call-1", "ask_sop_agent", "{not json")]),
            ("complete", "done"),
        ])
        orchestrator = AgentOrchestrator(runner, personas)

        _run(orchestrator.route_with_tools("Question?"))

        assert "SOP Agent" not in fake_client.queries
        (run,) = [r for r in fake_client.runs.values() if r.agent_name == "Orchestrator Agent"]
        assert "Invalid arguments" in run.submissions[0][0].output

    def test_resolution_failure_becomes_summary_error(self, fake_client, runner, personas):
        fake_client.errors["create_agent"] = RuntimeError("quota exceeded")
        orchestrator = AgentOrchestrator(runner, personas)

        result = _run(orchestrator.route_with_tools("Question?"))

        assert result.summary.startswith("Error:")
        assert "quota exceeded" in result.summary


# ---------------------------------------------------------------------------
# Test: Delta Facade
# ---------------------------------------------------------------------------


class TestAnalyzeDelta:
    """Delta analysis through the orchestrator."""

    def test_default_labels_are_expert_names(self, fake_client, runner, personas):
        fake_client.behaviours["Delta Analysis Agent"] = "## Key Similarities\n..."
        orchestrator = AgentOrchestrator(runner, personas)

        analysis = _run(orchestrator.analyze_delta("Q?", "answer a", "answer b"))

        assert analysis.startswith("## Key Similarities")
        (prompt,) = fake_client.queries["Delta Analysis Agent"]
        assert "SOP Agent Response:\nanswer a" in prompt
        assert "Policy Agent Response:\nanswer b" in prompt

    def test_custom_labels(self, fake_client, runner, personas):
        orchestrator = AgentOrchestrator(runner, personas)

        _run(orchestrator.analyze_delta("Q?", "a", "b", label_a="Legal", label_b="HR"))

        (prompt,) = fake_client.queries["Delta Analysis Agent"]
        assert "Legal Response:" in prompt
        assert "| Aspect | Legal | HR |" in prompt
