"""Tests for the FastAPI server."""

import json

import pytest
from fastapi.testclient import TestClient

from api import app, get_engine, get_store
from council import CouncilEngine
from errors import ProviderHttpError
from fakes import FakeProvider, is_chairman_request, is_ranking_request
from providers import ProviderChain
from store import InMemorySessionStore

MODELS = ("vendor/alpha", "vendor/beta")

APPROVED = json.dumps({
    "synthesis": "Proceed.",
    "decision": "Approved",
    "pricing": {
        "currency": "USD",
        "lineItems": [
            {"label": "Setup", "amount": 1500, "cadence": "One-Time"},
            {"label": "Retainer", "amount": 800, "cadence": "Monthly"},
        ],
    },
})


def script(chairman=APPROVED, member="Solid plan.\nScore: 80"):
    def reply(request):
        if is_chairman_request(request):
            return chairman
        if is_ranking_request(request):
            return '{"ranking": []}'
        return member

    return reply


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def client_for(make_config, store):
    """Build a TestClient whose engine talks to a scripted provider."""
    def _make(provider):
        engine = CouncilEngine(make_config(MODELS), chain=ProviderChain([provider]), store=store)
        app.dependency_overrides[get_store] = lambda: store
        app.dependency_overrides[get_engine] = lambda: engine
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


class TestInfoEndpoints:
    """Test cases for the read-only endpoints."""

    def test_root(self):
        response = TestClient(app).get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_gates(self):
        response = TestClient(app).get("/gates")
        body = response.json()

        assert set(body) == {"Strategic", "Risk", "Launch", "Post-Mortem"}
        assert body["Risk"][0]["role"] == "Security Officer"


class TestCouncilRun:
    """Test cases for POST /council/run."""

    def test_run_persists_session(self, client_for, store):
        client = client_for(FakeProvider({"*": script()}))

        response = client.post("/council/run", json={"project_id": "proj-1", "gate_type": "Strategic"})

        assert response.status_code == 200
        body = response.json()
        assert body["decision"] == "Approved"
        assert body["topic"] == "Strategic Gate"
        assert body["pricing"]["totalFirstMonth"] == 2300
        assert [o["score"] for o in body["opinions"]] == [80, 80]

        stored = client.get("/council/sessions", params={"project_id": "proj-1"}).json()
        assert [s["id"] for s in stored] == [body["id"]]
        assert client.get("/council/sessions", params={"project_id": "other"}).json() == []

    def test_quorum_not_met(self, client_for):
        client = client_for(FakeProvider({"*": ProviderHttpError(503, "busy")}))

        response = client.post("/council/run", json={"project_id": "proj-1", "gate_type": "Risk"})

        assert response.status_code == 502
        assert "no usable opinions" in response.json()["detail"]

    def test_chairman_failure_returns_opinions(self, client_for, store):
        client = client_for(FakeProvider({"*": script(chairman="not a verdict")}))

        response = client.post("/council/run", json={"project_id": "proj-1", "gate_type": "Launch", "topic": "Go live?"})

        assert response.status_code == 502
        body = response.json()
        assert len(body["opinions"]) == 2
        assert len(body["model_outputs"]) == 2
        assert client.get("/council/sessions").json() == []

    def test_validation(self, client_for):
        client = client_for(FakeProvider({"*": script()}))

        assert client.post("/council/run", json={"gate_type": "Risk"}).status_code == 422
        assert client.post("/council/run", json={"project_id": "p", "gate_type": "Budget"}).status_code == 422
        assert client.post("/council/run", json={"project_id": "p", "language": "de"}).status_code == 422


class TestPlayground:
    """Test cases for POST /council/playground."""

    def test_playground(self, client_for, store):
        client = client_for(FakeProvider({"*": script(chairman="Do the pilot first.")}))

        response = client.post("/council/playground", json={"prompt": "  How do we grow?  "})

        assert response.status_code == 200
        body = response.json()
        assert body["prompt"] == "How do we grow?"
        assert body["final"]["content"] == "Do the pilot first."
        assert [r["label"] for r in body["stage1"]] == ["Model A", "Model B"]
        assert client.get("/council/sessions").json() == []

    def test_empty_prompt(self, client_for):
        client = client_for(FakeProvider({"*": script()}))
        assert client.post("/council/playground", json={"prompt": ""}).status_code == 422
