"""Decide whether a single analysis needs additional consensus runs."""

from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from curio.analysis.models import (
    DEFAULT_CONSENSUS_CONFIG,
    AnalysisRecord,
    AuthenticityRisk,
    ConsensusConfig,
    TriggerEvaluation,
)
from curio.exceptions import ConsensusConfigError

GENERIC_NAME_TERMS = frozenset(["decorative", "vintage", "antique", "collectible", "unknown"])

VERY_LOW_CONFIDENCE = 0.6
WIDE_RANGE_RATIO = 5


def resolve_consensus_config(
    overrides: Optional[Union[ConsensusConfig, Dict[str, Any]]] = None,
) -> ConsensusConfig:
    """Merge caller overrides onto the default consensus policy.

    Args:
        overrides: A complete ConsensusConfig, a dict of field overrides, or None

    Returns:
        Validated ConsensusConfig

    Raises:
        ConsensusConfigError: If the merged configuration is invalid
    """
    if overrides is None:
        return DEFAULT_CONSENSUS_CONFIG
    if isinstance(overrides, ConsensusConfig):
        return overrides

    merged = {**DEFAULT_CONSENSUS_CONFIG.model_dump(), **overrides}
    try:
        return ConsensusConfig.model_validate(merged)
    except ValidationError as e:
        raise ConsensusConfigError(f"Invalid consensus config: {e}") from e


def evaluate_consensus_triggers(
    result: AnalysisRecord,
    config: ConsensusConfig = DEFAULT_CONSENSUS_CONFIG,
) -> TriggerEvaluation:
    """
    Evaluate whether an analysis result should trigger additional runs.

    Args:
        result: First analysis of the item
        config: Consensus policy

    Returns:
        TriggerEvaluation with suggested run count and reasons

    Rules applied (each raises suggested_runs via max, never by adding):
        1. Confidence below configured threshold
        2. Very low confidence (< 0.6), forces reasoning
        3. Very high value, maximum runs and reasoning
        4. High value
        5. High-risk domain category
        6. High authenticity risk, forces reasoning
        7. Name starts with a generic term
        8. Wide value range (max/min > 5)
    """
    reasons = []
    suggested_runs = 1
    use_reasoning = False

    # 1. Low confidence
    if result.confidence < config.confidence_threshold:
        reasons.append(
            f"Low confidence: {result.confidence * 100:.0f}% < "
            f"{config.confidence_threshold * 100:.0f}%"
        )
        suggested_runs = max(suggested_runs, 2)

    # 2. Very low confidence
    if result.confidence < VERY_LOW_CONFIDENCE:
        reasons.append(
            f"Very low confidence: {result.confidence * 100:.0f}% - using reasoning model"
        )
        suggested_runs = max(suggested_runs, 3)
        use_reasoning = True

    # 3-4. Value tiers
    mid_value = result.value_midpoint
    if mid_value >= config.very_high_value_threshold:
        reasons.append(f"Very high value: ${mid_value:,.0f} - maximum scrutiny")
        suggested_runs = max(suggested_runs, config.max_runs)
        use_reasoning = True
    elif mid_value >= config.high_value_threshold:
        reasons.append(f"High value: ${mid_value:,.0f} - additional validation")
        suggested_runs = max(suggested_runs, 2)

    # 5. High-risk category
    if result.domain_category in config.high_risk_categories:
        reasons.append(
            f"High-risk category: {result.domain_category.value} - known for variability"
        )
        suggested_runs = max(suggested_runs, 2)

    # 6. Authentication concerns
    if result.authenticity_risk in (AuthenticityRisk.HIGH, AuthenticityRisk.VERY_HIGH):
        reasons.append(f"High authenticity risk: {result.authenticity_risk.value}")
        suggested_runs = max(suggested_runs, 2)
        use_reasoning = True

    # 7. Generic names indicate an uncertain identification
    name_words = result.name.lower().split()
    if name_words and name_words[0] in GENERIC_NAME_TERMS:
        reasons.append(
            f'Ambiguous identification: "{result.name}" starts with generic term'
        )
        suggested_runs = max(suggested_runs, 2)

    # 8. Wide price range
    price_ratio = result.value_max / max(result.value_min, 1)
    if price_ratio > WIDE_RANGE_RATIO:
        reasons.append(
            f"Wide price range: {price_ratio:.1f}x spread indicates uncertainty"
        )
        suggested_runs = max(suggested_runs, 2)

    if config.use_reasoning_model and suggested_runs > 1:
        use_reasoning = True

    suggested_runs = min(max(suggested_runs, 1), config.max_runs)

    return TriggerEvaluation(
        should_rerun=suggested_runs > 1,
        reasons=reasons,
        suggested_runs=suggested_runs,
        use_reasoning=use_reasoning,
    )
