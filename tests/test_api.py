# =============================================================================
# API Tests — Chat Endpoints
# =============================================================================
#
# The orchestrator dependency is overridden with one built on the in-memory
# FakeAgentClient, so requests exercise the real runner and pipeline.
# =============================================================================

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from conftest import fails
from ragagent.agents.orchestrator import AgentOrchestrator
from ragagent.agents.runner import AgentResolutionError
from ragagent.api.deps import get_agent_orchestrator
from ragagent.main import app


@pytest.fixture
def orchestrator(runner, personas) -> AgentOrchestrator:
    return AgentOrchestrator(runner, personas)


@pytest.fixture
def client(orchestrator):
    app.dependency_overrides[get_agent_orchestrator] = lambda: orchestrator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestPipelineEndpoint:
    """POST /pipeline"""

    def test_returns_answer_and_trace(self, client, fake_client):
        fake_client.behaviours["Executor Agent"] = "Formatted answer"

        response = client.post("/pipeline", json={"question": "What is the leave policy?"})

        assert response.status_code == 200
        body = response.json()
        assert body["answer"] == "Formatted answer"
        assert body["trace"]["success"] is True
        assert [s["stage_name"] for s in body["trace"]["stages"]] == [
            "Intake Agent", "Search Agent", "Writer Agent", "Reviewer Agent", "Executor Agent",
        ]

    def test_stage_failure_still_returns_200(self, client, fake_client):
        fake_client.behaviours["Search Agent"] = fails("index offline")

        response = client.post("/pipeline", json={"question": "Question?"})

        assert response.status_code == 200
        stages = response.json()["trace"]["stages"]
        assert stages[1]["success"] is False
        assert stages[1]["error_message"] == "index offline"

    def test_empty_question_rejected(self, client):
        response = client.post("/pipeline", json={"question": ""})

        assert response.status_code == 422

    def test_blank_question_rejected(self, client, fake_client):
        response = client.post("/pipeline", json={"question": "   \n\t"})

        assert response.status_code == 422
        assert fake_client.calls == []

    def test_question_is_stripped(self, client, fake_client):
        response = client.post("/pipeline", json={"question": "  Question?  "})

        assert response.json()["question"] == "Question?"
        assert fake_client.queries["Intake Agent"] == ["Question?"]


class TestExpertsEndpoint:
    """POST /experts and POST /experts/orchestrated"""

    def test_parallel_experts(self, client, fake_client):
        fake_client.behaviours["SOP Agent"] = "sop answer"
        fake_client.behaviours["Policy Agent"] = fails("filtered")

        response = client.post("/experts", json={"question": "Question?"})

        assert response.status_code == 200
        body = response.json()
        assert body["responses"] == {
            "SOP Agent": "sop answer",
            "Policy Agent": "Error: filtered",
        }
        assert body["delta_analysis"] is None

    def test_include_delta(self, client, fake_client):
        fake_client.behaviours["SOP Agent"] = "sop answer"
        fake_client.behaviours["Policy Agent"] = "policy answer"
        fake_client.behaviours["Delta Analysis Agent"] = "## Key Similarities"

        response = client.post(
            "/experts", json={"question": "Question?", "include_delta": True},
        )

        assert response.json()["delta_analysis"] == "## Key Similarities"
        (prompt,) = fake_client.queries["Delta Analysis Agent"]
        assert "SOP Agent Response:\nsop answer" in prompt
        assert "Policy Agent Response:\npolicy answer" in prompt

    def test_orchestrated(self, client, fake_client):
        fake_client.behaviours["Orchestrator Agent"] = "nothing to delegate"

        response = client.post("/experts/orchestrated", json={"question": "Hello"})

        assert response.status_code == 200
        assert response.json() == {
            "question": "Hello",
            "responses": {},
            "summary": "nothing to delegate",
        }

    def test_orchestrated_rejects_unused_fields(self, client, fake_client):
        response = client.post(
            "/experts/orchestrated",
            json={"question": "Hello", "session_id": "user-1", "include_delta": True},
        )

        assert response.status_code == 422
        assert fake_client.calls == []

    def test_blank_expert_question_rejected(self, client):
        response = client.post("/experts", json={"question": "   "})

        assert response.status_code == 422


class TestDeltaEndpoint:
    """POST /delta"""

    def test_custom_labels(self, client, fake_client):
        fake_client.behaviours["Delta Analysis Agent"] = "report"

        response = client.post("/delta", json={
            "question": "Q?",
            "response_a": "first",
            "response_b": "second",
            "label_a": "Legal",
            "label_b": "HR",
        })

        assert response.status_code == 200
        assert response.json()["analysis"] == "report"
        assert "Legal Response:\nfirst" in fake_client.queries["Delta Analysis Agent"][0]


class TestErrorMapping:
    """Configuration and resolution errors."""

    def test_configuration_error_returns_503(self):
        with patch(
            "ragagent.api.deps.get_orchestrator",
            side_effect=ValueError("No agent service API key configured"),
        ):
            response = TestClient(app).post("/pipeline", json={"question": "Q?"})

        assert response.status_code == 503
        assert "API key" in response.json()["detail"]

    def test_resolution_error_returns_502(self):
        broken = MagicMock()
        broken.run_pipeline = AsyncMock(side_effect=AgentResolutionError("agent lookup failed"))
        app.dependency_overrides[get_agent_orchestrator] = lambda: broken
        try:
            response = TestClient(app).post("/pipeline", json={"question": "Q?"})
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 502
        assert "agent lookup failed" in response.json()["detail"]
