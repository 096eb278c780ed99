"""Shared fixtures for Curio tests."""

import pytest

from curio.analysis.models import AnalysisRecord


def build_record(**overrides) -> AnalysisRecord:
    data = {
        "name": "Brass Candlestick",
        "confidence": 0.95,
        "value_min": 100,
        "value_max": 120,
        "authenticity_risk": "low",
        "domain_category": "general",
        "product_category": "candlestick",
    }
    data.update(overrides)
    return AnalysisRecord(**data)


@pytest.fixture
def make_record():
    """Factory for analysis records with quiet defaults."""
    return build_record


class FakeAnalysis:
    """Scripted analysis call: returns or raises queued outcomes in order."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def __call__(self, images, asking_price=None):
        self.calls.append((images, asking_price))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeReasoning:
    """Scripted reasoning call returning fixed text or raising."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def __call__(self, prompt, image, model):
        self.calls.append((prompt, image, model))
        if self.error is not None:
            raise self.error
        return self.response
