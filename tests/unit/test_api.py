"""Unit tests for the HTTP surface and its error mapping."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from governance_interview.app.dependencies import get_interview_runner
from governance_interview.app.main import app
from governance_interview.schemas.decisions import QuickReport
from tests.helpers.interviews import (
    AVOIDED_ANSWER,
    COMFORT_ANSWER,
    DIRECTION_ANSWERS,
    PROBLEMS_ANSWER,
    ROLE_ANSWER,
    SETUP_PROBLEMS,
    VAGUE_ANSWER,
)


@pytest.fixture
def client(runner):
    """Client wired to the in-memory runner; the database lifespan is not run."""
    app.dependency_overrides[get_interview_runner] = lambda: runner
    yield TestClient(app)
    app.dependency_overrides.clear()


def start(client: TestClient, kind: str = "quick", **extra) -> dict:
    response = client.post("/sessions", json={"user_id": "user-1", "kind": kind, "abstraction_mode": False, **extra})
    assert response.status_code == 201
    return response.json()


class TestSessionEndpoints:
    """Happy paths."""

    def test_start_returns_view(self, client: TestClient) -> None:
        """A started session is at its first question."""
        body = start(client)
        assert body["state"] == "q1_role_context"
        assert body["phase"] == "active"
        assert body["answer_mode"] == "text"

    def test_answer_and_read(self, client: TestClient) -> None:
        """Answers advance the session; the resource carries the transcript."""
        session_id = start(client)["session_id"]
        response = client.post(f"/sessions/{session_id}/answers", json={"text": ROLE_ANSWER})
        assert response.status_code == 200
        assert response.json()["state"] == "q2_paid_problems"

        resource = client.get(f"/sessions/{session_id}").json()
        assert resource["status"] == "active"
        assert resource["transcript"][0]["answer"] == ROLE_ANSWER
        assert resource["snapshot"]["role_context"] == ROLE_ANSWER

    def test_privacy_then_skip(self, client: TestClient) -> None:
        """The privacy gate and the skip endpoint."""
        response = client.post("/sessions", json={"user_id": "user-1", "kind": "quick"})
        session_id = response.json()["session_id"]
        assert response.json()["expected_form"] == "privacy"

        body = client.post(f"/sessions/{session_id}/privacy", json={"abstraction_mode": True}).json()
        assert body["state"] == "q1_role_context"

        body = client.post(f"/sessions/{session_id}/answers", json={"text": VAGUE_ANSWER}).json()
        assert body["can_skip"]
        body = client.post(f"/sessions/{session_id}/skip").json()
        assert body["vagueness_skip_count"] == 1

    def test_setup_forms_and_commands(self, client: TestClient) -> None:
        """Forms, proceed and the portfolio commands."""
        session_id = start(client, kind="setup")["session_id"]
        for payload in SETUP_PROBLEMS:
            response = client.post(f"/sessions/{session_id}/forms/problem", json=payload)
            assert response.status_code == 200
        assert response.json()["state"] == "portfolio_completeness"

        assert client.post(f"/sessions/{session_id}/problems").json()["state"] == "collect_problem_4"
        response = client.post(f"/sessions/{session_id}/forms/problem", json={**SETUP_PROBLEMS[0], "name": "Budget"})
        assert response.json()["state"] == "portfolio_completeness"
        assert client.delete(f"/sessions/{session_id}/problems/3").status_code == 200

        client.post(f"/sessions/{session_id}/proceed")
        body = client.post(f"/sessions/{session_id}/forms/allocation", json={"allocations": [40, 30, 30]}).json()
        assert body["state"] == "create_personas"

        body = client.patch(f"/sessions/{session_id}/personas/0", json={"name": "Dana Fox"}).json()
        assert body["state"] == "create_personas"
        assert client.post(f"/sessions/{session_id}/personas/0/reset").status_code == 200

        body = client.post(f"/sessions/{session_id}/proceed").json()
        assert body["phase"] == "finalized"
        assert body["output_markdown"].startswith("# Portfolio Setup Complete")

    def test_abandon(self, client: TestClient) -> None:
        """Abandon answers with the terminal view."""
        session_id = start(client)["session_id"]
        body = client.post(f"/sessions/{session_id}/abandon").json()
        assert body["phase"] == "abandoned"


class TestErrorMapping:
    """Domain errors map to HTTP status codes."""

    def test_unknown_session_is_404(self, client: TestClient) -> None:
        """Missing sessions."""
        response = client.get("/sessions/missing")
        assert response.status_code == 404

    def test_second_start_is_409_with_id(self, client: TestClient) -> None:
        """The conflict names the active session."""
        session_id = start(client)["session_id"]
        response = client.post("/sessions", json={"user_id": "user-1", "kind": "quick"})
        assert response.status_code == 409
        assert response.json()["session_id"] == session_id

    def test_wrong_state_is_409(self, client: TestClient) -> None:
        """Operations on an abandoned session conflict."""
        session_id = start(client)["session_id"]
        client.post(f"/sessions/{session_id}/abandon")
        response = client.post(f"/sessions/{session_id}/answers", json={"text": ROLE_ANSWER})
        assert response.status_code == 409
        assert response.json()["detail"].startswith("Cannot continue")

    def test_validation_is_422_with_violations(self, client: TestClient) -> None:
        """Violations are listed per field."""
        session_id = start(client, kind="setup")["session_id"]
        response = client.post(f"/sessions/{session_id}/forms/problem", json={"name": "Uptime"})
        assert response.status_code == 422
        fields = {v["field"] for v in response.json()["violations"]}
        assert {"what_breaks", "scarcity_signals"} <= fields

    def test_quarterly_without_setup_is_422(self, client: TestClient) -> None:
        """Missing prerequisites are a validation failure."""
        response = client.post("/sessions", json={"user_id": "user-1", "kind": "quarterly", "abstraction_mode": False})
        assert response.status_code == 422
        assert response.json()["detail"] == "Prerequisites not met"

    def test_generation_failure_is_503_retryable(self, client: TestClient, llm) -> None:
        """A failed report can be retried through finalize."""
        llm.fail(QuickReport)
        session_id = start(client)["session_id"]
        for answer in (ROLE_ANSWER, PROBLEMS_ANSWER, *(DIRECTION_ANSWERS * 3), AVOIDED_ANSWER):
            client.post(f"/sessions/{session_id}/answers", json={"text": answer})

        response = client.post(f"/sessions/{session_id}/answers", json={"text": COMFORT_ANSWER})
        assert response.status_code == 503
        assert response.json()["retryable"]

        llm.respond(QuickReport, QuickReport(markdown="# Audit", assessment="A", bet_prediction="P", bet_wrong_if="W"))
        response = client.post(f"/sessions/{session_id}/finalize")
        assert response.status_code == 200
        assert response.json()["phase"] == "finalized"
