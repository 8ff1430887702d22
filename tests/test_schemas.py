"""Tests for council schemas."""

import pytest
from pydantic import ValidationError

from schemas.council import (
    AggregateRanking,
    Cadence,
    CouncilSession,
    Decision,
    DeliberationConfig,
    GateType,
    Opinion,
    Pricing,
)


def make_pricing():
    return Pricing.model_validate({
        "currency": "usd",
        "lineItems": [
            {"label": "Setup", "amount": 1500, "cadence": "one-time"},
            {"label": "Retainer", "amount": 800, "cadence": "Monthly"},
            {"label": "API calls", "amount": 0.02, "cadence": "usage"},
        ],
        "totalOneTime": 99999,
    })


class TestPricing:
    """Test cases for Pricing."""

    def test_totals_derived_from_items(self):
        pricing = make_pricing()
        assert pricing.currency == "USD"
        assert pricing.total_one_time == 1500
        assert pricing.total_monthly == 800
        assert pricing.total_first_month == 2300

    @pytest.mark.parametrize("raw,cadence", [
        ("One-Time", Cadence.ONE_TIME),
        ("setup", Cadence.ONE_TIME),
        ("per month", Cadence.MONTHLY),
        ("Usage-Based", Cadence.USAGE),
    ])
    def test_cadence_aliases(self, raw, cadence):
        pricing = Pricing(line_items=[{"label": "x", "amount": 1, "cadence": raw}])
        assert pricing.line_items[0].cadence == cadence

    def test_rejects_unknown_cadence(self):
        with pytest.raises(ValidationError):
            Pricing(line_items=[{"label": "x", "amount": 1, "cadence": "weekly"}])

    def test_rejects_negative_amount(self):
        with pytest.raises(ValidationError):
            Pricing(line_items=[{"label": "x", "amount": -1, "cadence": "monthly"}])


class TestCouncilSession:
    """Test cases for CouncilSession."""

    def _session(self, **kwargs):
        defaults = dict(
            id="s1",
            project_id="p1",
            gate_type=GateType.STRATEGIC,
            topic="Pricing",
            opinions=[Opinion(persona="Pricing", role="Pricing Strategist", opinion="Fair.", score=70)],
            synthesis="Ship it.",
            decision=Decision.APPROVED,
        )
        defaults.update(kwargs)
        return CouncilSession(**defaults)

    def test_frozen(self):
        session = self._session()
        with pytest.raises(ValidationError):
            session.synthesis = "changed"

    def test_requires_opinion(self):
        with pytest.raises(ValidationError):
            self._session(opinions=[])

    def test_score_bounds(self):
        with pytest.raises(ValidationError):
            Opinion(persona="x", role="y", opinion="z", score=101)

    def test_to_markdown(self):
        session = self._session(
            pricing=make_pricing(),
            aggregate_rankings=[
                AggregateRanking(model="openai/gpt-4o", average_rank=1.0, rankings_count=2),
                AggregateRanking(model="google/gemini-2.0-flash-001"),
            ],
        )
        markdown = session.to_markdown()

        assert markdown.startswith("# Council Session: Strategic Gate")
        assert "### Pricing (Pricing Strategist) - 70/100" in markdown
        assert "- openai/gpt-4o: 1.00 (2 votes)" in markdown
        assert "- google/gemini-2.0-flash-001: n/a (0 votes)" in markdown
        assert "- **First month:** 2,300.00 USD" in markdown
        assert markdown.endswith("Ship it.")


class TestDeliberationConfig:
    """Test cases for DeliberationConfig."""

    def test_defaults(self):
        config = DeliberationConfig(council_models=["a/b"], chairman_model="c/d")
        assert config.stage2_enabled is True
        assert config.offline_fallback is True
        assert config.provider_chain == ["openrouter"]

    def test_requires_models(self):
        with pytest.raises(ValidationError):
            DeliberationConfig(council_models=[], chairman_model="c/d")
        with pytest.raises(ValidationError):
            DeliberationConfig(council_models=["a/b"], chairman_model="")

    def test_rejects_duplicate_models(self):
        with pytest.raises(ValidationError, match="duplicate council models: a/b"):
            DeliberationConfig(council_models=["a/b", "c/d", "a/b"], chairman_model="c/d")
