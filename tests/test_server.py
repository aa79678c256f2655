import asyncio

import pytest
from fastapi.testclient import TestClient

from agent_brain.errors import FatalRoutingError
from agent_brain.server import _consume_outcome, create_app
from conftest import FakeProvider


@pytest.fixture
def client_for(make_directory):
    def _client(*providers):
        return TestClient(create_app(make_directory(*providers)))

    return _client


def test_complete_returns_result_shape(client_for):
    client = client_for(FakeProvider("a"), FakeProvider("b"))
    resp = client.post("/agents/router-1/complete", json={"prompt": "hello", "taskType": "triage"})
    assert resp.status_code == 200
    data = resp.json()
    assert data == {
        "success": True,
        "provider": "a",
        "response": "a: hello",
        "cost": 0.0,
        "cached": False,
        "agentId": data["agentId"],
        "memoryContextUsed": False,
        "selfHealed": False,
    }
    assert len(data["agentId"]) == 64


def test_complete_accepts_optional_fields(client_for):
    client = client_for(FakeProvider("a"), FakeProvider("b"))
    resp = client.post(
        "/agents/router-1/complete",
        json={
            "prompt": "hello",
            "taskType": "triage",
            "complexity": "simple",
            "preferredProvider": "b",
            "context": {"ticket": 7},
            "sessionId": "s-1",
        },
    )
    assert resp.status_code == 200
    assert resp.json()["provider"] == "b"


def test_complete_validates_body(client_for):
    client = client_for(FakeProvider("a"))
    assert client.post("/agents/x/complete", json={"taskType": "triage"}).status_code == 422
    resp = client.post("/agents/x/complete", json={"prompt": "hi", "complexity": "extreme"})
    assert resp.status_code == 422


def test_configuration_error_is_400(client_for):
    client = client_for(FakeProvider("small", "simple"))
    resp = client.post(
        "/agents/lawyer/complete", json={"prompt": "argue", "taskType": "legal_reasoning"}
    )
    assert resp.status_code == 400
    data = resp.json()
    assert data["kind"] == "configuration"
    assert data["attempts"] == []


def test_fatal_routing_error_is_503_and_degrades_health(client_for):
    client = client_for(FakeProvider("a", always_fail=True), FakeProvider("b", always_fail=True))
    resp = client.post("/agents/router-1/complete", json={"prompt": "hi", "taskType": "triage"})
    assert resp.status_code == 503
    data = resp.json()
    assert data["kind"] == "routing"
    assert [a["provider"] for a in data["attempts"]] == ["a", "b"]
    health = client.get("/agents/router-1/health").json()
    assert health == {"status": "degraded", "agentId": data["agentId"]}


def test_stats_and_health(client_for):
    client = client_for(FakeProvider("a"))
    assert client.get("/agents/fresh/health").json()["status"] == "healthy"
    client.post("/agents/fresh/complete", json={"prompt": "one", "taskType": "triage"})
    client.post("/agents/fresh/complete", json={"prompt": "one", "taskType": "triage"})
    stats = client.get("/agents/fresh/stats").json()
    assert stats["stats"]["totalInteractions"] == 2
    assert stats["stats"]["providerUsage"] == {"a": 1}
    assert stats["stats"]["taskTypeUsage"] == {"triage": 2}
    assert stats["modelScores"] == {"triage:a": pytest.approx(1.4)}
    assert stats["createdAt"] is not None


def test_metrics_endpoint(client_for):
    client = client_for(FakeProvider("a"))
    client.post("/agents/m/complete", json={"prompt": "count me", "taskType": "triage"})
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "agent_brain_router_latency_seconds" in resp.text
    assert "agent_brain_memory_operations_total" in resp.text


def test_usage_endpoint_reports_daily_totals(client_for):
    client = client_for(FakeProvider("a", cost=1.0))
    client.post("/agents/u/complete", json={"prompt": "one", "taskType": "triage"})
    client.post("/agents/u/complete", json={"prompt": "one", "taskType": "triage"})
    client.post("/agents/u/complete", json={"prompt": "two", "taskType": "triage"})
    data = client.get("/usage", params={"days": 1}).json()
    assert data["days"] == 1
    assert data["providers"]["a"]["calls"] == 2
    assert data["providers"]["a"]["outputTokens"] == 40
    assert data["providers"]["a"]["cost"] == pytest.approx(0.06)
    assert client.get("/usage", params={"days": 0}).status_code == 422


def test_provider_health_endpoint(client_for):
    flaky = FakeProvider("flaky", always_fail=True)
    client = client_for(flaky, FakeProvider("steady"))
    client.post("/agents/h/complete", json={"prompt": "hi", "taskType": "triage"})
    providers = client.get("/providers/health").json()["providers"]
    assert [p["id"] for p in providers] == ["flaky", "steady"]
    assert providers[0]["healthy"] is False
    assert providers[0]["failureCount"] == 1
    assert providers[1]["healthy"] is True


def test_detached_request_error_is_consumed(monkeypatch):
    logged = []

    class Recorder:
        def info(self, event, **fields):
            logged.append((event, fields))

    monkeypatch.setattr("agent_brain.server.logger", Recorder())

    async def failing():
        raise FatalRoutingError("all 1 provider attempt(s) failed", [])

    async def run():
        task = asyncio.ensure_future(failing())
        task.add_done_callback(_consume_outcome)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        return task

    task = asyncio.run(run())
    assert task.done()
    assert logged == [
        ("agent_request_error", {"error": "all 1 provider attempt(s) failed", "kind": "routing"})
    ]
