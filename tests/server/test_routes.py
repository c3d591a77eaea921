"""Tests for the casaflow HTTP API"""

import pytest
from fastapi.testclient import TestClient

from conftest import utc

from casaflow.errors import ConfigurationError, NotFoundError, PersistenceError, RateLimitedError, UpstreamError
from casaflow.events import EventPriority
from casaflow.models import PendingAction
from casaflow.orchestrator.chat import ChatReply
from casaflow.runtime import RunSummary
from casaflow.server.app import api, set_app
from casaflow.server.auth import get_current_user

SERVICE_KEY = "svc-key"
CRON_SECRET = "cron-secret"


class FakeApp:
    """Stands in for CasaFlow behind the routes."""

    def __init__(self):
        self.auth_config = {"service_key": SERVICE_KEY, "cron_secret": CRON_SECRET, "url": "http://auth"}
        self.credentials_error = None
        self.chat_error = None
        self.run_error = None
        self.chat_calls = []
        self.action_calls = []
        self.runs = []
        self.events = []
        self.pending = []

    def require_llm_credentials(self):
        if self.credentials_error:
            raise self.credentials_error

    async def chat(self, user_id, message, conversation_id=None):
        self.chat_calls.append((user_id, message, conversation_id))
        if self.chat_error:
            raise self.chat_error
        return ChatReply(conversation_id or "conv-1", f"echo: {message}", tokens_used=12, model="fake-model")

    async def resolve_pending_action(self, user_id, action_type, pending_action_id, conversation_id=None, message=None):
        self.action_calls.append((user_id, action_type, pending_action_id, conversation_id, message))
        if self.chat_error:
            raise self.chat_error
        return ChatReply("conv-1", "Action approved and executed: x", tools_used=["x"])

    async def list_pending_actions(self, user_id):
        return [a for a in self.pending if a.user_id == user_id]

    async def run_orchestrator(self, mode, user_id=None, property_id=None, max_properties=None):
        self.runs.append((mode, user_id, property_id, max_properties))
        if self.run_error:
            raise self.run_error
        return RunSummary(mode=mode, processed=2, events_processed=2, total_tokens=100)

    async def enqueue_event(self, event):
        self.events.append(event)
        return "evt-1"

    async def shutdown(self):
        return None


@pytest.fixture
def fake_app(monkeypatch):
    monkeypatch.delenv("CASAFLOW_SERVICE_KEY", raising=False)
    monkeypatch.delenv("CASAFLOW_CRON_SECRET", raising=False)
    app = FakeApp()
    set_app(app)
    api.dependency_overrides[get_current_user] = lambda: "owner-1"
    yield app
    api.dependency_overrides.clear()
    set_app(None)


@pytest.fixture
def client(fake_app):
    return TestClient(api)


# =========================================================================
# Chat
# =========================================================================


class TestChatRoute:

    def test_message(self, client, fake_app):
        response = client.post("/api/chat", json={"message": "Is rent paid?"})
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "echo: Is rent paid?"
        assert body["conversation_id"] == "conv-1"
        assert body["tokens_used"] == 12
        assert fake_app.chat_calls == [("owner-1", "Is rent paid?", None)]

    def test_action(self, client, fake_app):
        response = client.post(
            "/api/chat",
            json={"conversation_id": "conv-9", "action": {"type": "approve", "pending_action_id": "pa-1"}},
        )
        assert response.status_code == 200
        assert response.json()["tools_used"] == ["x"]
        assert fake_app.action_calls == [("owner-1", "approve", "pa-1", "conv-9", None)]
        assert fake_app.chat_calls == []

    def test_missing_message_and_action(self, client):
        response = client.post("/api/chat", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "Missing required field: message or action"

    def test_bad_action_type(self, client):
        response = client.post("/api/chat", json={"action": {"type": "snooze", "pending_action_id": "pa-1"}})
        assert response.status_code == 422

    def test_rate_limited(self, client, fake_app):
        fake_app.chat_error = RateLimitedError("slow down", retry_after=60)
        response = client.post("/api/chat", json={"message": "hi"})
        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"
        assert response.json() == {"error": "slow down", "retryAfter": 60}

    def test_foreign_conversation(self, client, fake_app):
        fake_app.chat_error = NotFoundError("Conversation not found or access denied")
        response = client.post("/api/chat", json={"message": "hi", "conversation_id": "c-x"})
        assert response.status_code == 404

    def test_upstream_overload(self, client, fake_app):
        fake_app.chat_error = UpstreamError("overloaded", status_code=529, retryable=True, retry_after=30)
        response = client.post("/api/chat", json={"message": "hi"})
        assert response.status_code == 429
        assert response.headers["Retry-After"] == "30"
        assert response.json()["error"] == "AI service temporarily unavailable"

    def test_upstream_failure(self, client, fake_app):
        fake_app.chat_error = UpstreamError("bad request", status_code=400)
        response = client.post("/api/chat", json={"message": "hi"})
        assert response.status_code == 502
        assert response.json()["retryAfter"] == 10

    def test_missing_credentials(self, client, fake_app):
        fake_app.credentials_error = ConfigurationError("no API key configured for the strong model")
        response = client.post("/api/chat", json={"message": "hi"})
        assert response.status_code == 500
        assert response.json()["error"].startswith("Agent configuration error")
        assert fake_app.chat_calls == []

    def test_persistence_failure(self, client, fake_app):
        fake_app.chat_error = PersistenceError("Failed to mark pending action")
        response = client.post("/api/chat", json={"action": {"type": "reject", "pending_action_id": "pa-1"}})
        assert response.status_code == 500

    def test_requires_auth(self, fake_app):
        api.dependency_overrides.clear()
        response = TestClient(api).post("/api/chat", json={"message": "hi"})
        assert response.status_code == 401


class TestPendingActionsRoute:

    def test_lists_own_actions(self, client, fake_app):
        fake_app.pending = [
            PendingAction("owner-1", "action", "terminate_lease: {}", "terminate_lease", {"tenancy_id": "t1"}, 0,
                          id="pa-1", created_at=utc(2026, 3, 1)),
            PendingAction("owner-2", "action", "x", "x", {}, 1, id="pa-2"),
        ]
        response = client.get("/api/pending-actions")
        assert response.status_code == 200
        body = response.json()
        assert [a["id"] for a in body] == ["pa-1"]
        assert body[0]["tool_params"] == {"tenancy_id": "t1"}
        assert body[0]["created_at"].startswith("2026-03-01")


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


# =========================================================================
# Orchestrator
# =========================================================================


class TestOrchestratorRoute:

    def test_cron_secret(self, client, fake_app):
        response = client.post("/api/orchestrator/run", json={"mode": "daily"}, headers={"X-Cron-Secret": CRON_SECRET})
        assert response.status_code == 200
        assert response.json()["events_processed"] == 2
        assert fake_app.runs == [("daily", None, None, None)]

    def test_service_key_bearer(self, client, fake_app):
        response = client.post(
            "/api/orchestrator/run",
            json={"mode": "instant", "user_id": "owner-1", "max_properties": 3},
            headers={"Authorization": f"Bearer {SERVICE_KEY}"},
        )
        assert response.status_code == 200
        assert fake_app.runs == [("instant", "owner-1", None, 3)]

    def test_env_secret_wins(self, client, fake_app, monkeypatch):
        monkeypatch.setenv("CASAFLOW_CRON_SECRET", "from-env")
        assert client.post("/api/orchestrator/run", json={}, headers={"X-Cron-Secret": "from-env"}).status_code == 200
        assert client.post("/api/orchestrator/run", json={}, headers={"X-Cron-Secret": CRON_SECRET}).status_code == 401

    def test_unauthorized(self, client, fake_app):
        response = client.post("/api/orchestrator/run", json={}, headers={"X-Cron-Secret": "wrong"})
        assert response.status_code == 401
        assert fake_app.runs == []

    def test_unknown_mode(self, client):
        response = client.post("/api/orchestrator/run", json={"mode": "hourly"}, headers={"X-Cron-Secret": CRON_SECRET})
        assert response.status_code == 422

    def test_run_failure(self, client, fake_app):
        fake_app.run_error = RuntimeError("database unavailable")
        response = client.post("/api/orchestrator/run", json={}, headers={"X-Cron-Secret": CRON_SECRET})
        assert response.status_code == 500
        assert response.json()["error"] == "database unavailable"
        assert "duration_ms" in response.json()

    def test_missing_credentials(self, client, fake_app):
        fake_app.credentials_error = ConfigurationError("no API key")
        response = client.post("/api/orchestrator/run", json={}, headers={"X-Cron-Secret": CRON_SECRET})
        assert response.status_code == 500
        assert fake_app.runs == []


# =========================================================================
# Events
# =========================================================================


class TestEventsRoute:

    def test_enqueue(self, client, fake_app):
        response = client.post(
            "/api/events",
            json={"event_type": "payment_failed", "user_id": "owner-1", "priority": "instant", "payload": {"amount": 5}},
            headers={"X-Service-Key": SERVICE_KEY},
        )
        assert response.status_code == 200
        assert response.json() == {"id": "evt-1", "status": "queued"}
        event = fake_app.events[0]
        assert event.priority == EventPriority.INSTANT
        assert event.payload == {"amount": 5}

    def test_invalid_key(self, client):
        response = client.post(
            "/api/events", json={"event_type": "x", "user_id": "u"}, headers={"Authorization": "Bearer nope"},
        )
        assert response.status_code == 403

    def test_key_not_configured(self, client, fake_app):
        fake_app.auth_config = {}
        response = client.post("/api/events", json={"event_type": "x", "user_id": "u"})
        assert response.status_code == 500
