"""Reasoning-model adjudication of disagreeing analysis runs."""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from curio.analysis.consensus import merge_results
from curio.analysis.models import AnalysisRecord, Annotation, ConsensusConfig
from curio.exceptions import ResponseParseError
from curio.llm.models import CapturedImage, ReasoningSynthesisResponse
from curio.utils.helpers import extract_json_text

logger = logging.getLogger(__name__)

ReasoningCall = Callable[[str, Optional[CapturedImage], str], Awaitable[str]]

KEY_FEATURE_LIMIT = 3


class SynthesisResult(BaseModel):
    """Outcome of a synthesis attempt.

    ``synthesized`` is False when the merger's record was used instead, and
    ``fallback_reason`` says why.
    """

    final_result: AnalysisRecord
    synthesized: bool
    fallback_reason: Optional[str] = None
    agreement_level: Optional[str] = None


def build_run_summaries(runs: List[AnalysisRecord]) -> List[Dict[str, Any]]:
    """Compact per-run summaries sent to the reasoning model."""
    return [
        {
            "run": i,
            "name": run.name,
            "maker": run.maker,
            "era": run.era,
            "valueRange": f"${run.value_min:,.0f} - ${run.value_max:,.0f}",
            "confidence": f"{run.confidence * 100:.0f}%",
            "category": run.product_category,
            "domain": run.domain_category.value,
            "style": run.style,
            "authentication": run.authenticity_risk.value,
            "keyFeatures": run.evidence_for[:KEY_FEATURE_LIMIT],
        }
        for i, run in enumerate(runs, 1)
    ]


def build_synthesis_prompt(runs: List[AnalysisRecord]) -> str:
    """Build the adjudication prompt for the reasoning model."""
    summaries = json.dumps(build_run_summaries(runs), indent=2)

    prompt = f"""You are a world-class antique appraiser synthesizing multiple AI analyses of the same item. Your job is to determine the most accurate identification and valuation.

MULTIPLE ANALYSIS RESULTS:
{summaries}

TASK:
1. Analyze the agreement and disagreement between the analyses
2. Determine the most likely correct identification
3. Synthesize a final, authoritative assessment
4. Explain your reasoning

RESPOND IN JSON:
{{
  "synthesizedName": "Most accurate item name",
  "synthesizedMaker": "Most likely maker/brand or null",
  "synthesizedEra": "Most accurate era estimate",
  "synthesizedValueMin": number,
  "synthesizedValueMax": number,
  "finalConfidence": 0.0-1.0,
  "reasoning": "Detailed explanation of synthesis decision",
  "agreementLevel": "high" | "medium" | "low",
  "recommendExpert": boolean,
  "expertReason": "If recommending expert, explain why"
}}
"""
    return prompt


def parse_synthesis_response(response_text: Optional[str]) -> ReasoningSynthesisResponse:
    """Parse the reasoning model's JSON answer.

    Raises:
        ResponseParseError: If the text is empty, not JSON, or fails validation
    """
    if response_text is None:
        raise ResponseParseError("No reasoning synthesis response")
    if not isinstance(response_text, str):
        raise ResponseParseError(
            f"Reasoning response is {type(response_text).__name__}, expected text"
        )
    if not response_text.strip():
        raise ResponseParseError("No reasoning synthesis response")

    try:
        data = json.loads(extract_json_text(response_text))
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Reasoning response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ResponseParseError("Reasoning response is not a JSON object")

    try:
        return ReasoningSynthesisResponse.model_validate(data)
    except ValidationError as e:
        raise ResponseParseError(f"Reasoning response failed validation: {e}") from e


def _present(value: Optional[str]) -> bool:
    return value is not None and value.strip() != ""


def apply_synthesis(
    runs: List[AnalysisRecord], synthesis: ReasoningSynthesisResponse
) -> AnalysisRecord:
    """Overlay synthesized fields onto the most confident run.

    Raises:
        ValidationError: If the overlaid record is inconsistent (e.g. min > max)
    """
    base = runs[0]
    for run in runs[1:]:
        if run.confidence > base.confidence:
            base = run

    updates: Dict[str, Any] = {}
    if _present(synthesis.synthesized_name):
        updates["name"] = synthesis.synthesized_name.strip()
    if _present(synthesis.synthesized_maker):
        updates["maker"] = synthesis.synthesized_maker.strip()
    if _present(synthesis.synthesized_era):
        updates["era"] = synthesis.synthesized_era.strip()
    if synthesis.synthesized_value_min is not None:
        updates["value_min"] = synthesis.synthesized_value_min
    if synthesis.synthesized_value_max is not None:
        updates["value_max"] = synthesis.synthesized_value_max
    if synthesis.final_confidence is not None:
        updates["confidence"] = synthesis.final_confidence

    record = base.with_annotation(
        Annotation(
            kind="reasoning_synthesis",
            message=f"REASONING MODEL SYNTHESIS:\n{synthesis.reasoning}",
            data={"runs": len(runs), "agreement_level": synthesis.agreement_level},
        ),
        **updates,
    )

    if synthesis.recommend_expert:
        reason = synthesis.expert_reason or ""
        record = record.with_annotation(
            Annotation(
                kind="expert_referral",
                message=f"Expert review recommended: {reason}".strip(),
            ),
            expert_referral_recommended=True,
            expert_referral_reason=reason or None,
        )

    return record


async def reasoning_synthesis(
    runs: List[AnalysisRecord],
    images: List[CapturedImage],
    config: ConsensusConfig,
    reasoning_call: ReasoningCall,
) -> SynthesisResult:
    """Ask the reasoning model to adjudicate between runs.

    Never raises: every failure (call error, timeout, empty or malformed
    response) falls back to the algorithmic merge of the same runs.

    Args:
        runs: Successful analysis runs
        images: Item photographs; only the first is sent
        config: Consensus policy (model name and timeout)
        reasoning_call: Async callable ``(prompt, image, model) -> text``

    Returns:
        SynthesisResult with the chosen record
    """
    logger.info("Using reasoning model (%s) for synthesis", config.reasoning_model)

    def fallback(reason: str) -> SynthesisResult:
        logger.warning("Reasoning synthesis unavailable (%s), falling back to merge", reason)
        return SynthesisResult(
            final_result=merge_results(runs).final_result,
            synthesized=False,
            fallback_reason=reason,
        )

    prompt = build_synthesis_prompt(runs)
    primary_image = images[0] if images else None

    try:
        response_text = await asyncio.wait_for(
            reasoning_call(prompt, primary_image, config.reasoning_model),
            timeout=config.reasoning_timeout_seconds,
        )
    except asyncio.TimeoutError:
        return fallback(f"timed out after {config.reasoning_timeout_seconds:.0f}s")
    except Exception as e:
        return fallback(f"reasoning call failed: {e}")

    try:
        synthesis = parse_synthesis_response(response_text)
        record = apply_synthesis(runs, synthesis)
    except (ResponseParseError, ValidationError) as e:
        return fallback(str(e))

    return SynthesisResult(
        final_result=record,
        synthesized=True,
        agreement_level=synthesis.agreement_level,
    )
