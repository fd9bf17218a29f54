"""Integration tests for API endpoints using Starlette TestClient."""

import pytest
from datetime import datetime
from starlette.testclient import TestClient

from flyfit.main import create_app
from flyfit.shell.memory_store import InMemoryProgressStore
from flyfit.shell.service import ProgressService


USER = {"X-User-Id": "user-1"}


@pytest.fixture
def service():
    """In-memory service with a fixed clock."""
    return ProgressService(InMemoryProgressStore(), clock=lambda: datetime(2024, 12, 28, 12, 0))


@pytest.fixture
def client(service):
    """Create test client around the in-memory service."""
    app = create_app(service=service)
    return TestClient(app)


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health_returns_200(self, client):
        """Health endpoint returns 200 OK."""
        response = client.get("/health")
        assert response.status_code == 200

    def test_health_returns_json(self, client):
        """Health endpoint returns JSON with status."""
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["service"] == "flyfit-progress"


class TestProgressEndpoint:
    """Tests for GET /progress."""

    def test_missing_user_header(self, client):
        """Requests without X-User-Id return 400."""
        response = client.get("/progress")
        assert response.status_code == 400
        assert "error" in response.json()

    def test_new_user_summary(self, client):
        """New users start at level 1 with no badges earned."""
        response = client.get("/progress", headers=USER)
        assert response.status_code == 200
        data = response.json()
        assert data["level"] == 1
        assert data["total_xp"] == 0
        assert all(b["earned_at"] is None for b in data["badges"])


class TestEventsEndpoint:
    """Tests for POST /events."""

    def test_add_water(self, client):
        """Valid events return the updated totals."""
        response = client.post("/events", json={"kind": "add_water", "amount": 500}, headers=USER)
        assert response.status_code == 200
        data = response.json()
        assert data["daily"]["water"] == 500
        assert data["mascot"]["emotion"]

    def test_rewards_include_toasts(self, client):
        """Reward entries carry the toast text."""
        response = client.post("/events", json={"kind": "complete_workout", "xp_reward": 100}, headers=USER)
        rewards = response.json()["rewards"]
        level_up = next(r for r in rewards if r["kind"] == "level_up")
        assert level_up["new_level"] == 2
        assert level_up["celebrate"] is True
        assert response.json()["mascot"]["emotion"] == "celebrating"

    def test_missing_user_header(self, client):
        """Events require a user."""
        response = client.post("/events", json={"kind": "add_water"})
        assert response.status_code == 400

    def test_body_not_json(self, client):
        """Non-JSON bodies return 400."""
        response = client.post("/events", content=b"not json", headers=USER)
        assert response.status_code == 400

    def test_unknown_kind(self, client):
        """Unknown event kinds fail validation."""
        response = client.post("/events", json={"kind": "teleport"}, headers=USER)
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid event"

    def test_invalid_input(self, client):
        """Negative water is rejected without changing state."""
        response = client.post("/events", json={"kind": "add_water", "amount": -50}, headers=USER)
        assert response.status_code == 400
        data = response.json()
        assert data["error_kind"] == "invalid_input"
        assert data["total_xp"] == 0

    def test_invalid_transition(self, client):
        """Starting a challenge twice returns 409."""
        challenge = {"id": "c1", "title": "Walk", "target": 5000, "unit": "steps", "duration_days": 7}
        client.post("/events", json={"kind": "add_challenge", "challenge": challenge}, headers=USER)

        first = client.post("/events", json={"kind": "start_challenge", "challenge_id": "c1"}, headers=USER)
        second = client.post("/events", json={"kind": "start_challenge", "challenge_id": "c1"}, headers=USER)

        assert first.status_code == 200
        assert second.status_code == 409
        assert second.json()["error_kind"] == "invalid_transition"

    def test_progress_reflects_events(self, client):
        """Progress reads back what events wrote."""
        client.post("/events", json={"kind": "log_steps", "count": 2000}, headers=USER)
        data = client.get("/progress", headers=USER).json()
        assert data["daily"]["steps"] == 2000
        assert data["total_xp"] == 20

    def test_same_day_rollover(self, client):
        """Rolling over to today is invalid input."""
        client.post("/events", json={"kind": "add_water", "amount": 2000}, headers=USER)
        response = client.post("/events", json={"kind": "day_rollover"}, headers=USER)

        assert response.status_code == 400
        assert response.json()["error_kind"] == "invalid_input"
        assert client.get("/progress", headers=USER).json()["daily"]["water"] == 2000

    def test_remove_completed_challenge(self, client):
        """Completed challenges cannot be removed."""
        challenge = {"id": "c1", "title": "Walk", "target": 100, "unit": "steps", "duration_days": 7}
        client.post("/events", json={"kind": "add_challenge", "challenge": challenge}, headers=USER)
        client.post("/events", json={"kind": "start_challenge", "challenge_id": "c1"}, headers=USER)
        client.post(
            "/events", json={"kind": "complete_challenge_progress", "challenge_id": "c1", "delta": 100}, headers=USER
        )

        response = client.post("/events", json={"kind": "remove_challenge", "challenge_id": "c1"}, headers=USER)

        assert response.status_code == 409


class TestCORS:
    """Tests for CORS configuration."""

    def test_cors_preflight_localhost(self, client):
        """CORS preflight from localhost is allowed for dev."""
        response = client.options(
            "/events",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
            }
        )
        assert response.status_code == 200
        assert response.headers.get("access-control-allow-origin") == "http://localhost:5173"
