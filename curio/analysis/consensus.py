"""Consensus calculation logic for combining multiple analysis runs."""

import math
from collections import Counter
from itertools import combinations
from typing import List, Sequence

from curio.analysis.models import (
    AgreementReport,
    AnalysisRecord,
    Annotation,
    ConsensusOutcome,
    MergeStrategy,
)

# Policy constants for strategy selection
HIGH_NAME_AGREEMENT = 0.7
HIGH_VALUE_AGREEMENT = 0.8
LOW_NAME_AGREEMENT = 0.3

MIN_TOKEN_LENGTH = 3


def _name_tokens(name: str) -> set:
    return {token for token in name.lower().split() if len(token) >= MIN_TOKEN_LENGTH}


def calculate_name_similarity(name1: str, name2: str) -> float:
    """Jaccard similarity over lower-cased name tokens longer than two characters.

    Args:
        name1: First item name
        name2: Second item name

    Returns:
        Similarity in [0, 1]; 0 when either name has no qualifying tokens
    """
    tokens1 = _name_tokens(name1)
    tokens2 = _name_tokens(name2)

    if not tokens1 or not tokens2:
        return 0.0

    return len(tokens1 & tokens2) / len(tokens1 | tokens2)


def calculate_name_agreement(runs: Sequence[AnalysisRecord]) -> float:
    """Average pairwise name similarity across all run pairs."""
    pairs = list(combinations(runs, 2))
    if not pairs:
        return 1.0
    total = math.fsum(calculate_name_similarity(a.name, b.name) for a, b in pairs)
    return total / len(pairs)


def calculate_value_agreement(runs: Sequence[AnalysisRecord]) -> float:
    """Inverse coefficient of variation of value midpoints, floored at 0."""
    values = [run.value_midpoint for run in runs]
    mean = math.fsum(values) / len(values)
    if mean <= 0:
        return 1.0

    std_dev = math.sqrt(math.fsum((v - mean) ** 2 for v in values) / len(values))
    return max(0.0, 1.0 - std_dev / mean)


def calculate_category_agreement(runs: Sequence[AnalysisRecord]) -> float:
    """Fraction of runs sharing the modal product category."""
    counts = Counter(run.product_category for run in runs)
    # most_common keeps first-encountered order among ties
    _, modal_count = counts.most_common(1)[0]
    return modal_count / len(runs)


def _highest_confidence(runs: Sequence[AnalysisRecord]) -> AnalysisRecord:
    best = runs[0]
    for run in runs[1:]:
        if run.confidence > best.confidence:
            best = run
    return best


def confidence_weighted_merge(runs: Sequence[AnalysisRecord]) -> AnalysisRecord:
    """Weight-average value bounds and confidence for high-agreement runs."""
    total_confidence = sum(run.confidence for run in runs)
    if total_confidence > 0:
        weights = [run.confidence / total_confidence for run in runs]
    else:
        weights = [1 / len(runs)] * len(runs)

    base = _highest_confidence(runs)

    weighted_min = sum(run.value_min * w for run, w in zip(runs, weights))
    weighted_max = sum(run.value_max * w for run, w in zip(runs, weights))
    weighted_confidence = sum(run.confidence * w for run, w in zip(runs, weights))

    return base.with_annotation(
        Annotation(
            kind="consensus_weighted",
            message=(
                f"Consensus from {len(runs)} analyses with "
                f"{weighted_confidence * 100:.0f}% weighted confidence."
            ),
            data={"runs": len(runs), "weighted_confidence": weighted_confidence},
        ),
        value_min=round(weighted_min, 2),
        value_max=round(weighted_max, 2),
        confidence=min(1.0, weighted_confidence),
    )


def flagged_highest_confidence(
    runs: Sequence[AnalysisRecord], name_agreement: float
) -> AnalysisRecord:
    """Pick the most confident run and flag the disagreement."""
    base = _highest_confidence(runs)
    return base.with_annotation(
        Annotation(
            kind="low_consensus",
            message=(
                f"Low consensus ({name_agreement * 100:.0f}% name agreement across "
                f"{len(runs)} analyses). Consider expert verification."
            ),
            data={"runs": len(runs), "name_agreement": name_agreement},
        )
    )


def median_consensus(runs: Sequence[AnalysisRecord]) -> AnalysisRecord:
    """Take identity from the median-confidence run and median value bounds."""
    middle = len(runs) // 2
    median_run = sorted(runs, key=lambda run: run.confidence)[middle]
    sorted_min = sorted(run.value_min for run in runs)
    sorted_max = sorted(run.value_max for run in runs)

    return median_run.with_annotation(
        Annotation(
            kind="median_consensus",
            message=f"Median consensus from {len(runs)} analyses.",
            data={"runs": len(runs)},
        ),
        value_min=sorted_min[middle],
        value_max=sorted_max[middle],
    )


def merge_results(runs: List[AnalysisRecord]) -> ConsensusOutcome:
    """Merge multiple analysis runs into a consensus result.

    Args:
        runs: One or more analyses of the same item

    Returns:
        Consensus outcome with the merged record and agreement report

    Raises:
        ValueError: If no runs are supplied
    """
    if not runs:
        raise ValueError("At least one analysis run is required")

    if len(runs) == 1:
        return ConsensusOutcome(
            final_result=runs[0],
            all_runs=list(runs),
            agreement=AgreementReport(
                name_agreement=1.0,
                value_agreement=1.0,
                category_agreement=1.0,
                merge_strategy=MergeStrategy.SINGLE_RUN,
            ),
        )

    name_agreement = calculate_name_agreement(runs)
    value_agreement = calculate_value_agreement(runs)
    category_agreement = calculate_category_agreement(runs)

    if name_agreement > HIGH_NAME_AGREEMENT and value_agreement > HIGH_VALUE_AGREEMENT:
        strategy = MergeStrategy.CONFIDENCE_WEIGHTED_AVERAGE
        final_result = confidence_weighted_merge(runs)
    elif name_agreement < LOW_NAME_AGREEMENT:
        strategy = MergeStrategy.HIGHEST_CONFIDENCE_WITH_FLAG
        final_result = flagged_highest_confidence(runs, name_agreement)
    else:
        strategy = MergeStrategy.MEDIAN_CONSENSUS
        final_result = median_consensus(runs)

    return ConsensusOutcome(
        final_result=final_result,
        all_runs=list(runs),
        agreement=AgreementReport(
            name_agreement=name_agreement,
            value_agreement=value_agreement,
            category_agreement=category_agreement,
            merge_strategy=strategy,
        ),
    )
