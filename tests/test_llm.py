"""Tests for provider response parsing and the provider manager."""

import asyncio
import json

import pytest

from curio.analysis.models import AuthenticityRisk, DomainCategory
from curio.config import get_settings
from curio.exceptions import ProviderError, ResponseParseError
from curio.llm import manager as manager_module
from curio.llm.base import BaseLLMProvider
from curio.llm.manager import LLMManager
from curio.llm.models import CapturedImage
from curio.llm.openai import OpenAIProvider


class StubProvider(BaseLLMProvider):
    name = "stub"

    def __init__(self, reply="{}"):
        super().__init__(api_key="test-key", model="stub-model")
        self.reply = reply
        self.prompts = []

    async def analyze_item(self, images, asking_price=None):
        self.prompts.append(self._build_analysis_prompt(asking_price))
        return self._parse_analysis_response(self.reply)

    async def analyze_custom_prompt(self, prompt, image=None, model=None):
        self.prompts.append((prompt, image, model))
        return self.reply


# ── Response parsing ─────────────────────────────────────────────────


def test_parse_fenced_analysis():
    payload = {
        "name": "Roseville Pottery Vase",
        "maker": "Roseville",
        "domain_category": "ceramics",
        "confidence": 0.82,
        "value_min": 150,
        "value_max": 300,
        "authenticity_risk": "medium",
        "evidence_for": ["impressed mark"],
    }
    record = StubProvider()._parse_analysis_response(f"```json\n{json.dumps(payload)}\n```")

    assert record.name == "Roseville Pottery Vase"
    assert record.domain_category == DomainCategory.CERAMICS
    assert record.value_midpoint == 225


def test_parse_fills_missing_values():
    text = json.dumps({
        "name": "Mystery Box",
        "confidence": 0.4,
        "value_min": None,
        "evidence_against": None,
        "authenticity_risk": None,
        "domain_category": "spaceships",
    })
    record = StubProvider()._parse_analysis_response(text)

    assert record.value_min == 0.0
    assert record.evidence_against == ()
    assert record.authenticity_risk == AuthenticityRisk.MEDIUM
    assert record.domain_category == DomainCategory.GENERAL


@pytest.mark.parametrize("text", ["", "not json", "[]", '{"name": "No confidence"}'])
def test_parse_errors(text):
    with pytest.raises(ResponseParseError) as exc_info:
        StubProvider()._parse_analysis_response(text)
    assert exc_info.value.provider == "stub"


def test_analysis_prompt_mentions_asking_price():
    provider = StubProvider()

    assert "$1,250" in provider._build_analysis_prompt(1250)
    assert "asking" not in provider._build_analysis_prompt(None)
    assert "watches" in provider._build_analysis_prompt()


def test_openai_provider_requires_key(monkeypatch):
    monkeypatch.setattr(get_settings(), "openai_api_key", None)

    with pytest.raises(ProviderError):
        OpenAIProvider()


# ── Manager ──────────────────────────────────────────────────────────


def test_manager_without_providers_raises():
    with pytest.raises(ProviderError):
        LLMManager(use_openai=False, use_claude=False, use_gemini=False)


def test_manager_routes_calls(monkeypatch):
    vision = StubProvider(json.dumps({"name": "Oak Chair", "confidence": 0.9}))

    def broken_provider():
        raise ProviderError("missing key")

    monkeypatch.setattr(manager_module, "OpenAIProvider", lambda: vision)
    monkeypatch.setattr(manager_module, "ClaudeProvider", broken_provider)
    monkeypatch.setattr(manager_module, "GeminiProvider", broken_provider)

    llm = LLMManager(vision_provider="openai")
    assert llm.get_available_providers() == ["openai"]

    image = CapturedImage(id="primary", data_url="data:image/jpeg;base64,AAAA")
    record = asyncio.run(llm.analyze_item([image], 80))
    assert record.name == "Oak Chair"

    asyncio.run(llm.reason("adjudicate", image, "o1"))
    assert vision.prompts[-1] == ("adjudicate", image, "o1")

    with pytest.raises(ProviderError):
        llm.get_provider("claude")
