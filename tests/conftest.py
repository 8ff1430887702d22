"""Shared fixtures."""

import pytest

from schemas.council import DeliberationConfig


@pytest.fixture
def make_config():
    """Factory for engine configs wired to the fake provider chain."""
    def _make(models=("vendor/alpha", "vendor/beta", "vendor/gamma"), **overrides) -> DeliberationConfig:
        values = {
            "council_models": list(models),
            "chairman_model": overrides.pop("chairman_model", models[0]),
            "provider_chain": ["fake"],
            "offline_fallback": False,
        }
        values.update(overrides)
        return DeliberationConfig(**values)

    return _make
