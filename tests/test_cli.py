"""Tests for the typer CLI."""

import asyncio
import json

import pytest
from typer.testing import CliRunner

import main
from council import CouncilEngine
from fakes import FakeProvider, is_chairman_request, is_ranking_request
from providers import ProviderChain, ProviderFactory
from schemas.council import CouncilSession, Decision, GateType, Opinion
from store import InMemorySessionStore, JsonFileSessionStore

runner = CliRunner()

VERDICT = json.dumps({"synthesis": "Low risk, go ahead.", "decision": "Approved"})


def reply(request):
    if is_chairman_request(request):
        return VERDICT
    if is_ranking_request(request):
        return '{"ranking": []}'
    return '{"opinion": "Ready.", "score": 85}'


@pytest.fixture
def fake_engine(monkeypatch, make_config):
    """Route the CLI through a scripted provider."""
    provider = FakeProvider({"*": reply})
    store = InMemorySessionStore()
    engine = CouncilEngine(make_config(("vendor/alpha", "vendor/beta")), chain=ProviderChain([provider]), store=store)

    monkeypatch.setattr(main, "_engine", lambda with_store=True: engine)
    monkeypatch.setattr(ProviderFactory, "get_available", classmethod(lambda cls: {"fake": provider}))
    return engine


class TestRunCommand:
    """Test cases for `boardroom run`."""

    def test_run_and_save_json(self, fake_engine, tmp_path):
        output = tmp_path / "session.json"

        result = runner.invoke(main.app, ["run", "proj-9", "Ship it?", "--gate", "Launch", "-o", "json", "-s", str(output)])

        assert result.exit_code == 0, result.output
        assert "Approved" in result.output
        saved = json.loads(output.read_text(encoding="utf-8"))
        assert saved["project_id"] == "proj-9"
        assert saved["gate_type"] == "Launch"
        assert [o["score"] for o in saved["opinions"]] == [85, 85]
        assert len(asyncio.run(fake_engine.store.list("proj-9"))) == 1

    def test_bad_language(self, fake_engine):
        result = runner.invoke(main.app, ["run", "proj-9", "--language", "de"])
        assert result.exit_code == 1

    def test_bad_context_file(self, fake_engine, tmp_path):
        broken = tmp_path / "context.json"
        broken.write_text("{not json", encoding="utf-8")

        result = runner.invoke(main.app, ["run", "proj-9", "-c", str(broken)])

        assert result.exit_code == 1
        assert "Error loading context file" in result.output

    def test_no_providers(self, monkeypatch):
        monkeypatch.setattr(ProviderFactory, "get_available", classmethod(lambda cls: {}))
        result = runner.invoke(main.app, ["run", "proj-9"])
        assert result.exit_code == 1
        assert "No LLM providers available" in result.output


class TestInfoCommands:
    """Test cases for listing commands."""

    def test_gates(self):
        result = runner.invoke(main.app, ["gates"])
        assert result.exit_code == 0
        assert "POST-MORTEM" in result.output
        assert "Security Officer" in result.output

    def test_sessions(self, monkeypatch, tmp_path):
        path = tmp_path / "sessions.json"
        monkeypatch.setenv("SESSION_STORE_PATH", str(path))
        session = CouncilSession(
            id="session-abc",
            project_id="proj-1",
            gate_type=GateType.RISK,
            topic="Risk",
            opinions=[Opinion(persona="Security", role="Security Officer", opinion="Fine.", score=70)],
            synthesis="Go.",
            decision=Decision.NEEDS_REVISION,
        )
        asyncio.run(JsonFileSessionStore(path).append(session))

        result = runner.invoke(main.app, ["sessions", "--project", "proj-1"])

        assert result.exit_code == 0, result.output
        assert "session-abc" in result.output

        empty = runner.invoke(main.app, ["sessions", "--project", "nobody"])
        assert "No sessions stored" in empty.output
