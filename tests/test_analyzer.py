"""Tests for the consensus orchestrator using fake analysis and reasoning calls."""

import asyncio
import json

import pytest

from curio.analysis.analyzer import ConsensusAnalyzer
from curio.analysis.consensus import merge_results
from curio.analysis.models import MergeStrategy
from curio.exceptions import AnalysisFailedError, ConsensusConfigError
from curio.llm.models import CapturedImage

from conftest import FakeAnalysis, FakeReasoning

IMAGE = "data:image/jpeg;base64,AAAA"

SYNTHESIS = json.dumps({
    "synthesizedName": "Rookwood Pottery Vase",
    "synthesizedValueMin": 400,
    "synthesizedValueMax": 450,
    "finalConfidence": 0.9,
    "reasoning": "Runs agree on the maker.",
    "agreementLevel": "high",
})


def run(analyzer, **kwargs):
    return asyncio.run(analyzer.analyze_with_consensus(IMAGE, **kwargs))


def test_confident_first_run_is_returned_alone(make_record):
    first = make_record()
    analysis = FakeAnalysis([first])
    reasoning = FakeReasoning(SYNTHESIS)

    outcome = run(ConsensusAnalyzer(analysis, reasoning), asking_price=150)

    assert outcome.final_result == first
    assert outcome.all_runs == [first]
    assert outcome.agreement.merge_strategy == MergeStrategy.SINGLE_RUN
    assert len(analysis.calls) == 1
    assert reasoning.calls == []


def test_image_string_is_normalized(make_record):
    analysis = FakeAnalysis([make_record()])
    run(ConsensusAnalyzer(analysis, FakeReasoning()), asking_price=150)

    images, asking_price = analysis.calls[0]
    assert asking_price == 150
    assert images == [
        CapturedImage(id="primary", data_url=IMAGE, role="overview", label="Primary Image")
    ]


def test_triggered_runs_are_synthesized(make_record):
    runs = [
        make_record(name="Rookwood Vase", confidence=0.7),
        make_record(name="Rookwood Pottery Vase", confidence=0.8),
    ]
    analysis = FakeAnalysis(runs)
    reasoning = FakeReasoning(SYNTHESIS)

    outcome = run(ConsensusAnalyzer(analysis, reasoning))
    merged = merge_results(runs)

    assert len(analysis.calls) == 2
    assert len(reasoning.calls) == 1
    assert outcome.all_runs == runs
    assert outcome.final_result.name == "Rookwood Pottery Vase"
    assert outcome.final_result.confidence == 0.9
    assert outcome.agreement.merge_strategy == MergeStrategy.REASONING_MODEL_SYNTHESIS
    assert outcome.agreement.name_agreement == merged.agreement.name_agreement
    assert outcome.agreement.value_agreement == merged.agreement.value_agreement


def test_failed_synthesis_reports_merge_strategy(make_record):
    runs = [
        make_record(name="Rookwood Vase", confidence=0.7),
        make_record(name="Rookwood Vase", confidence=0.72),
    ]
    outcome = run(ConsensusAnalyzer(FakeAnalysis(runs), FakeReasoning("no json here")))
    merged = merge_results(runs)

    assert outcome.final_result == merged.final_result
    assert outcome.agreement == merged.agreement


def test_reasoning_disabled_merges_algorithmically(make_record):
    runs = [make_record(confidence=0.7), make_record(confidence=0.72)]
    reasoning = FakeReasoning(SYNTHESIS)

    outcome = run(
        ConsensusAnalyzer(FakeAnalysis(runs), reasoning),
        config={"use_reasoning_model": False},
    )

    assert reasoning.calls == []
    assert outcome.agreement.merge_strategy == MergeStrategy.CONFIDENCE_WEIGHTED_AVERAGE


def test_failed_extra_run_is_skipped(make_record):
    first = make_record(confidence=0.5)
    third = make_record(confidence=0.6)
    analysis = FakeAnalysis([first, RuntimeError("rate limited"), third])

    outcome = run(ConsensusAnalyzer(analysis, FakeReasoning("not json")))

    assert len(analysis.calls) == 3
    assert outcome.all_runs == [first, third]


def test_all_extra_runs_failing_keeps_first(make_record):
    first = make_record(confidence=0.7)
    analysis = FakeAnalysis([first, RuntimeError("boom")])
    reasoning = FakeReasoning(SYNTHESIS)

    outcome = run(ConsensusAnalyzer(analysis, reasoning))

    assert outcome.all_runs == [first]
    assert outcome.final_result == first
    assert outcome.agreement.merge_strategy == MergeStrategy.SINGLE_RUN
    assert reasoning.calls == []


def test_first_run_failure_raises():
    analysis = FakeAnalysis([RuntimeError("vision model unavailable")])

    with pytest.raises(AnalysisFailedError):
        run(ConsensusAnalyzer(analysis, FakeReasoning()))


def test_invalid_config_fails_before_analysis(make_record):
    analysis = FakeAnalysis([make_record()])

    with pytest.raises(ConsensusConfigError):
        run(ConsensusAnalyzer(analysis, FakeReasoning()), config={"max_runs": 0})
    assert analysis.calls == []


def test_forced_multi_run(make_record):
    runs = [make_record(), make_record()]
    analysis = FakeAnalysis(runs)
    reasoning = FakeReasoning(SYNTHESIS)

    outcome = run(ConsensusAnalyzer(analysis, reasoning), force_multi_run=True)

    assert len(analysis.calls) == 2
    assert len(reasoning.calls) == 1
    assert outcome.agreement.merge_strategy == MergeStrategy.REASONING_MODEL_SYNTHESIS


def test_forced_multi_run_respects_budget(make_record):
    analysis = FakeAnalysis([make_record()])

    outcome = run(
        ConsensusAnalyzer(analysis, FakeReasoning()),
        force_multi_run=True,
        config={"max_runs": 1},
    )

    assert len(analysis.calls) == 1
    assert outcome.agreement.merge_strategy == MergeStrategy.SINGLE_RUN


def test_progress_events(make_record):
    runs = [make_record(confidence=0.5), make_record(confidence=0.55), make_record(confidence=0.6)]
    events = []

    run(
        ConsensusAnalyzer(FakeAnalysis(runs), FakeReasoning(SYNTHESIS)),
        emit_event=events.append,
    )

    assert [e.progress for e in events] == [10, 60, 80, 85, 100]
    assert events[0].type == "stage:start"
    assert events[-1].type == "stage:complete"
    assert events[-1].message == "Consensus from 3 analyses"


def test_failing_event_sink_is_ignored(make_record):
    def broken_sink(event):
        raise RuntimeError("socket closed")

    runs = [make_record(confidence=0.7), make_record(confidence=0.7)]
    outcome = run(
        ConsensusAnalyzer(FakeAnalysis(runs), FakeReasoning(SYNTHESIS)),
        emit_event=broken_sink,
    )

    assert len(outcome.all_runs) == 2


def test_sync_wrapper(make_record):
    first = make_record()
    analyzer = ConsensusAnalyzer(FakeAnalysis([first]), FakeReasoning())

    assert analyzer.analyze(IMAGE).final_result == first
