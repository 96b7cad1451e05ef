"""
HTTP surface tests using FastAPI's TestClient.

The app is built with an explicit rule-based resolver and an in-memory
task store; the lifespan wires them into the chat service.
"""

import pytest
from fastapi.testclient import TestClient

from repairdesk.api_server import create_app
from repairdesk.config import Settings


@pytest.fixture
def client(resolver, gateway):
    app = create_app(settings=Settings(_env_file=None), resolver=resolver, gateway=gateway)
    with TestClient(app) as test_client:
        yield test_client


class TestSystem:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "repairdesk"}

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"
        assert "X-Response-Time-Ms" in response.headers


class TestChatEndpoints:
    def test_chat_round_trip(self, client, gateway):
        first = client.post("/chat", json={"message": "I tried calling you but no answer, fridge not working"})
        assert first.status_code == 200
        body = first.json()
        session_id = body["session_id"]
        assert body["next_action"] == "collect_missing_info"
        assert body["missing_fields"] == ["name", "phone number"]

        second = client.post(
            "/chat", json={"message": "My name is Ravi, 9876543210", "session_id": session_id}
        )
        body = second.json()
        assert body["next_action"] == "task_created"
        assert body["task_number"] == "TASK-00001"
        assert body["classification"]["priority"] == 1
        assert body["classification"]["urgency_level"] == "high"
        assert len(gateway.tasks) == 1

    def test_clear(self, client):
        session_id = client.post("/chat", json={"message": "Hi"}).json()["session_id"]
        response = client.post("/chat/clear", json={"session_id": session_id})
        assert response.json() == {"session_id": session_id, "cleared": True}

    def test_empty_message_rejected(self, client):
        assert client.post("/chat", json={"message": ""}).status_code == 422


class TestAnalysisEndpoints:
    def test_analyze_priority(self, client):
        response = client.post("/priority/analyze", json={"problem_description": "gas leak near the fridge"})
        assert response.status_code == 200
        body = response.json()
        assert body["priority"] == 1
        assert body["estimated_response_time"] == "2-4 hours"
        assert "emergency" in body["tags"]

    def test_batch(self, client):
        response = client.post(
            "/priority/batch",
            json={"problems": [{"problem_description": "smoke from AC"}, {"problem_description": "sparks"}]},
        )
        assert response.status_code == 200
        assert [item["priority"] for item in response.json()] == [1, 1]

    def test_detect_failed_call(self, client):
        response = client.post("/failed-calls/detect", json={"message_text": "Couldn't reach you, urgent"})
        body = response.json()
        assert body["has_indicator"] is True
        assert body["suggested_priority"] == "high"
        assert body["matched_keywords"] == ["urgent"]


def test_rate_limit(resolver, gateway):
    settings = Settings(_env_file=None, rate_limit_max_requests=2)
    app = create_app(settings=settings, resolver=resolver, gateway=gateway)
    with TestClient(app) as client:
        payload = {"message_text": "hello"}
        assert client.post("/failed-calls/detect", json=payload).status_code == 200
        assert client.post("/failed-calls/detect", json=payload).status_code == 200
        limited = client.post("/failed-calls/detect", json=payload)
        assert limited.status_code == 429
        assert limited.headers["Retry-After"] == "60"
        assert client.get("/health").status_code == 200
