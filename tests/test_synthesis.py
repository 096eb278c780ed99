"""Tests for reasoning-model synthesis and its fallback to the merger."""

import asyncio
import json

import pytest

from curio.analysis.consensus import merge_results
from curio.analysis.models import ConsensusConfig
from curio.analysis.synthesis import (
    build_run_summaries,
    build_synthesis_prompt,
    parse_synthesis_response,
    reasoning_synthesis,
)
from curio.exceptions import ResponseParseError
from curio.llm.models import CapturedImage

from conftest import FakeReasoning

IMAGES = [CapturedImage(id="primary", data_url="data:image/jpeg;base64,AAAA")]


@pytest.fixture
def runs(make_record):
    return [
        make_record(name="Rookwood Vase", confidence=0.9, value_min=380, value_max=420,
                    evidence_for=["flame mark", "glaze", "shape", "signature"]),
        make_record(name="Rookwood Pottery Vase", confidence=0.85, value_min=390, value_max=430),
        make_record(name="Weller Pottery Vase", confidence=0.6, value_min=370, value_max=410),
    ]


def synthesize(runs, reasoning, config=None):
    config = config or ConsensusConfig()
    return asyncio.run(reasoning_synthesis(runs, IMAGES, config, reasoning))


def synthesis_json(**overrides):
    data = {
        "synthesizedName": "Rookwood Pottery Standard Glaze Vase",
        "synthesizedMaker": "Rookwood Pottery",
        "synthesizedEra": "1890s",
        "synthesizedValueMin": 400,
        "synthesizedValueMax": 550,
        "finalConfidence": 0.88,
        "reasoning": "Two of three runs identify Rookwood and the flame mark agrees.",
        "agreementLevel": "medium",
        "recommendExpert": False,
    }
    data.update(overrides)
    return json.dumps(data)


def test_non_json_response_falls_back_to_merge(runs):
    result = synthesize(runs, FakeReasoning("I think it is a vase."))

    assert result.synthesized is False
    assert result.fallback_reason
    assert result.final_result == merge_results(runs).final_result


def test_empty_response_falls_back(runs):
    result = synthesize(runs, FakeReasoning(""))

    assert result.synthesized is False
    assert result.final_result == merge_results(runs).final_result


def test_non_text_response_falls_back(runs):
    result = synthesize(runs, FakeReasoning({"synthesizedName": "Rookwood Vase"}))

    assert result.synthesized is False
    assert "expected text" in result.fallback_reason
    assert result.final_result == merge_results(runs).final_result


def test_call_error_falls_back(runs):
    result = synthesize(runs, FakeReasoning(error=RuntimeError("service down")))

    assert result.synthesized is False
    assert "service down" in result.fallback_reason
    assert result.final_result == merge_results(runs).final_result


def test_timeout_falls_back(runs):
    async def slow_reasoning(prompt, image, model):
        await asyncio.sleep(5)
        return synthesis_json()

    config = ConsensusConfig(reasoning_timeout_seconds=0.01)
    result = synthesize(runs, slow_reasoning, config)

    assert result.synthesized is False
    assert "timed out" in result.fallback_reason


def test_inconsistent_values_fall_back(runs):
    reasoning = FakeReasoning(synthesis_json(synthesizedValueMin=900, synthesizedValueMax=100))
    result = synthesize(runs, reasoning)

    assert result.synthesized is False
    assert result.final_result == merge_results(runs).final_result


def test_successful_synthesis_overlays_most_confident_run(runs):
    reasoning = FakeReasoning(f"```json\n{synthesis_json()}\n```")
    result = synthesize(runs, reasoning)
    record = result.final_result

    assert result.synthesized is True
    assert result.agreement_level == "medium"
    assert record.name == "Rookwood Pottery Standard Glaze Vase"
    assert record.maker == "Rookwood Pottery"
    assert record.value_min == 400
    assert record.value_max == 550
    assert record.confidence == 0.88
    # untouched fields come from the most confident run
    assert record.evidence_for == runs[0].evidence_for
    assert record.annotations[-1].kind == "reasoning_synthesis"
    assert "flame mark agrees" in record.render_description()


def test_synthesis_sends_model_and_primary_image(runs):
    reasoning = FakeReasoning(synthesis_json())
    synthesize(runs, reasoning, ConsensusConfig(reasoning_model="o3-mini"))

    prompt, image, model = reasoning.calls[0]
    assert model == "o3-mini"
    assert image == IMAGES[0]
    assert "Weller Pottery Vase" in prompt


def test_blank_fields_keep_base_values(runs):
    reasoning = FakeReasoning(synthesis_json(synthesizedName="  ", synthesizedEra=None))
    record = synthesize(runs, reasoning).final_result

    assert record.name == "Rookwood Vase"
    assert record.era == runs[0].era


def test_expert_recommendation_is_recorded(runs):
    reasoning = FakeReasoning(
        synthesis_json(recommendExpert=True, expertReason="Mark may be a later addition.")
    )
    record = synthesize(runs, reasoning).final_result

    assert record.expert_referral_recommended is True
    assert record.expert_referral_reason == "Mark may be a later addition."
    assert [a.kind for a in record.annotations] == ["reasoning_synthesis", "expert_referral"]


# ── Prompt and parsing ───────────────────────────────────────────────


def test_run_summaries_are_compact(runs):
    summaries = build_run_summaries(runs)

    assert [s["run"] for s in summaries] == [1, 2, 3]
    assert summaries[0]["valueRange"] == "$380 - $420"
    assert summaries[0]["confidence"] == "90%"
    assert len(summaries[0]["keyFeatures"]) == 3


def test_prompt_lists_every_run(runs):
    prompt = build_synthesis_prompt(runs)

    for run in runs:
        assert run.name in prompt
    assert '"recommendExpert": boolean' in prompt


@pytest.mark.parametrize("text", [None, "", "   ", "not json", "[1, 2]", {"reasoning": "ok"}, 42])
def test_parse_rejects_bad_responses(text):
    with pytest.raises(ResponseParseError):
        parse_synthesis_response(text)


def test_parse_normalizes_agreement_level():
    parsed = parse_synthesis_response('{"reasoning": "ok", "agreementLevel": "HIGH"}')

    assert parsed.agreement_level == "high"
    assert parsed.synthesized_name is None
    assert parsed.recommend_expert is False
