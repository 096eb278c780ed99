"""Tests for merging multiple analysis runs."""

from itertools import permutations

import pytest

from curio.analysis.consensus import (
    calculate_category_agreement,
    calculate_name_agreement,
    calculate_name_similarity,
    calculate_value_agreement,
    merge_results,
)
from curio.analysis.models import MergeStrategy


# ── Similarity ───────────────────────────────────────────────────────


def test_identical_names_are_fully_similar():
    assert calculate_name_similarity("Rookwood Pottery Vase", "rookwood pottery vase") == 1.0


def test_disjoint_names_have_zero_similarity():
    assert calculate_name_similarity("Rookwood Vase", "Tiffany Lamp") == 0.0


def test_short_tokens_are_ignored():
    # "of" and "a" are too short to count
    assert calculate_name_similarity("Jar of a", "Jar") == 1.0
    assert calculate_name_similarity("a b", "a b") == 0.0


def test_name_agreement_bounds(make_record):
    same = [make_record(name="Federal Oak Chest") for _ in range(3)]
    disjoint = [make_record(name="Federal Oak Chest"), make_record(name="Tiffany Lamp")]

    assert calculate_name_agreement(same) == 1.0
    assert calculate_name_agreement(disjoint) == 0.0


def test_value_agreement_with_zero_mean(make_record):
    runs = [make_record(value_min=0, value_max=0), make_record(value_min=0, value_max=0)]
    assert calculate_value_agreement(runs) == 1.0


def test_value_agreement_floors_at_zero(make_record):
    runs = [make_record(value_min=0, value_max=0), make_record(value_min=1000, value_max=1000)]
    assert calculate_value_agreement(runs) == 0.0


def test_category_agreement(make_record):
    runs = [
        make_record(product_category="vase"),
        make_record(product_category="vase"),
        make_record(product_category="bowl"),
    ]
    assert calculate_category_agreement(runs) == pytest.approx(2 / 3)


# ── Merge strategies ─────────────────────────────────────────────────


def test_singleton_merge_is_identity(make_record):
    record = make_record(description="Solid brass.")
    outcome = merge_results([record])

    assert outcome.final_result == record
    assert outcome.all_runs == [record]
    assert outcome.agreement.name_agreement == 1.0
    assert outcome.agreement.value_agreement == 1.0
    assert outcome.agreement.category_agreement == 1.0
    assert outcome.agreement.merge_strategy == MergeStrategy.SINGLE_RUN


def test_empty_merge_raises():
    with pytest.raises(ValueError):
        merge_results([])


def test_high_agreement_uses_confidence_weighting(make_record):
    first = make_record(name="Federal Oak Chest", confidence=0.8, value_min=100, value_max=200)
    second = make_record(name="Federal Oak Chest", confidence=0.6, value_min=110, value_max=210)

    outcome = merge_results([first, second])
    result = outcome.final_result

    assert outcome.agreement.merge_strategy == MergeStrategy.CONFIDENCE_WEIGHTED_AVERAGE
    assert result.value_min == pytest.approx(104.29)
    assert result.value_max == pytest.approx(204.29)
    assert result.confidence == pytest.approx((0.8 * 0.8 + 0.6 * 0.6) / 1.4)
    assert [a.kind for a in result.annotations] == ["consensus_weighted"]
    assert "Consensus from 2 analyses" in result.render_description()


def test_zero_confidence_runs_weight_equally(make_record):
    runs = [
        make_record(name="Federal Oak Chest", confidence=0.0, value_min=100, value_max=200),
        make_record(name="Federal Oak Chest", confidence=0.0, value_min=120, value_max=220),
    ]
    result = merge_results(runs).final_result

    assert result.value_min == pytest.approx(110)
    assert result.value_max == pytest.approx(210)


def test_low_name_agreement_flags_highest_confidence(make_record):
    lamp = make_record(name="Tiffany Lamp", confidence=0.7)
    vase = make_record(name="Rookwood Vase", confidence=0.9, evidence_for=["glaze"])

    outcome = merge_results([lamp, vase])
    result = outcome.final_result

    assert outcome.agreement.merge_strategy == MergeStrategy.HIGHEST_CONFIDENCE_WITH_FLAG
    assert result.name == "Rookwood Vase"
    assert result.evidence_for == ("glaze",)
    assert result.annotations[-1].kind == "low_consensus"
    assert result.annotations[-1].data["name_agreement"] == 0.0
    assert "Low consensus (0% name agreement" in result.render_description()


def test_confidence_tie_keeps_first_run(make_record):
    lamp = make_record(name="Tiffany Lamp", confidence=0.8)
    vase = make_record(name="Rookwood Vase", confidence=0.8)

    assert merge_results([lamp, vase]).final_result.name == "Tiffany Lamp"


def rookwood_runs(make_record):
    return [
        make_record(name="Rookwood Vase", confidence=0.9, value_min=380, value_max=420,
                    product_category="vase"),
        make_record(name="Rookwood Pottery Vase", confidence=0.85, value_min=390, value_max=430,
                    product_category="vase"),
        make_record(name="Weller Pottery Vase", confidence=0.6, value_min=370, value_max=410,
                    product_category="vase"),
    ]


def test_partial_agreement_uses_median(make_record):
    outcome = merge_results(rookwood_runs(make_record))
    result = outcome.final_result

    assert 0.3 < outcome.agreement.name_agreement < 0.7
    assert outcome.agreement.merge_strategy == MergeStrategy.MEDIAN_CONSENSUS
    assert result.name == "Rookwood Pottery Vase"
    assert result.confidence == 0.85
    assert result.value_min == 380
    assert result.value_max == 420
    assert result.annotations[-1].kind == "median_consensus"


def test_merge_is_order_independent(make_record):
    runs = rookwood_runs(make_record)
    runs.append(make_record(name="Weller Vase", confidence=0.75, value_min=300,
                            value_max=520, product_category="jar"))
    baseline = merge_results(runs).agreement

    for ordering in permutations(runs):
        assert merge_results(list(ordering)).agreement == baseline


def test_merge_does_not_mutate_inputs(make_record):
    runs = rookwood_runs(make_record)
    snapshot = [run.model_dump() for run in runs]

    merge_results(runs)

    assert [run.model_dump() for run in runs] == snapshot
