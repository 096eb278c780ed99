"""Models for analysis records and consensus results."""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class DomainCategory(str, Enum):
    """Fixed taxonomy of item types used to pick domain-specific logic."""

    FURNITURE = "furniture"
    CERAMICS = "ceramics"
    GLASS = "glass"
    SILVER = "silver"
    JEWELRY = "jewelry"
    WATCHES = "watches"
    ART = "art"
    TEXTILES = "textiles"
    TOYS = "toys"
    BOOKS = "books"
    TOOLS = "tools"
    LIGHTING = "lighting"
    ELECTRONICS = "electronics"
    VEHICLES = "vehicles"
    GENERAL = "general"


_DOMAIN_VALUES = {domain.value for domain in DomainCategory}


class AuthenticityRisk(str, Enum):
    """Risk that the item is not what it appears to be."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class MergeStrategy(str, Enum):
    """How a consensus record was produced."""

    SINGLE_RUN = "single_run"
    CONFIDENCE_WEIGHTED_AVERAGE = "confidence_weighted_average"
    HIGHEST_CONFIDENCE_WITH_FLAG = "highest_confidence_with_flag"
    MEDIAN_CONSENSUS = "median_consensus"
    REASONING_MODEL_SYNTHESIS = "reasoning_model_synthesis"


class Annotation(BaseModel):
    """Structured audit note attached to a record by a merge step."""

    model_config = ConfigDict(frozen=True)

    kind: Literal[
        "consensus_weighted",
        "low_consensus",
        "median_consensus",
        "reasoning_synthesis",
        "expert_referral",
    ]
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)


_ANNOTATION_MARKERS = {
    "consensus_weighted": "✅",
    "low_consensus": "⚠️",
    "median_consensus": "📊",
    "reasoning_synthesis": "🧠",
    "expert_referral": "⚠️",
}


class AnalysisRecord(BaseModel):
    """Result of one vision-model analysis of an item.

    Records are immutable. Merge operations build new records and attach
    their notes to ``annotations`` rather than rewriting ``description``.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    maker: Optional[str] = None
    era: Optional[str] = None
    style: Optional[str] = None
    domain_category: DomainCategory = DomainCategory.GENERAL
    product_category: Optional[str] = None

    confidence: float = Field(..., ge=0.0, le=1.0)
    value_min: float = Field(0.0, ge=0.0, description="Low estimate in dollars")
    value_max: float = Field(0.0, ge=0.0, description="High estimate in dollars")
    authenticity_risk: AuthenticityRisk = AuthenticityRisk.MEDIUM

    evidence_for: Tuple[str, ...] = ()
    evidence_against: Tuple[str, ...] = ()
    description: str = ""
    annotations: Tuple[Annotation, ...] = ()

    # Secondary signals from the analysis call
    identification_confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    maker_confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    condition: Optional[str] = None
    historical_context: Optional[str] = None
    expert_referral_recommended: bool = False
    expert_referral_reason: Optional[str] = None

    @field_validator("domain_category", mode="before")
    @classmethod
    def _default_unknown_domain(cls, value: Any) -> Any:
        if value is None or value == "":
            return DomainCategory.GENERAL
        if isinstance(value, str) and value not in _DOMAIN_VALUES:
            return DomainCategory.GENERAL
        return value

    @model_validator(mode="after")
    def _check_value_range(self) -> "AnalysisRecord":
        if self.value_min > self.value_max:
            raise ValueError(
                f"value_min ({self.value_min}) exceeds value_max ({self.value_max})"
            )
        return self

    @property
    def value_midpoint(self) -> float:
        """Midpoint of the estimated value range."""
        return (self.value_min + self.value_max) / 2

    def with_annotation(self, annotation: Annotation, **updates: Any) -> "AnalysisRecord":
        """Return a validated copy with one more annotation and optional field updates."""
        data = self.model_dump()
        data.update(updates)
        data["annotations"] = [*data["annotations"], annotation.model_dump()]
        return AnalysisRecord.model_validate(data)

    def render_description(self) -> str:
        """Render description plus annotations as display text."""
        parts = [self.description] if self.description else []
        for annotation in self.annotations:
            marker = _ANNOTATION_MARKERS.get(annotation.kind, "")
            parts.append(f"{marker} {annotation.message}".strip())
        return "\n\n".join(parts)


class ConsensusConfig(BaseModel):
    """Policy controlling when and how aggressively to re-run analysis."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    confidence_threshold: float = Field(0.75, ge=0.0, le=1.0)
    high_value_threshold: float = Field(5000, ge=0.0)
    very_high_value_threshold: float = Field(25000, ge=0.0)
    high_risk_categories: List[DomainCategory] = Field(
        default_factory=lambda: [
            DomainCategory.WATCHES,
            DomainCategory.SILVER,
            DomainCategory.JEWELRY,
            DomainCategory.ART,
            DomainCategory.CERAMICS,
        ]
    )
    max_runs: int = 3
    use_reasoning_model: bool = True
    reasoning_model: str = "o1"
    reasoning_timeout_seconds: float = Field(120.0, gt=0.0)

    @field_validator("max_runs")
    @classmethod
    def _check_max_runs(cls, value: int) -> int:
        if value < 1:
            raise ValueError(f"max_runs must be at least 1, got {value}")
        return value


DEFAULT_CONSENSUS_CONFIG = ConsensusConfig()


class TriggerEvaluation(BaseModel):
    """Re-run recommendation for a single analysis."""

    should_rerun: bool
    reasons: List[str] = Field(default_factory=list)
    suggested_runs: int = Field(..., ge=1)
    use_reasoning: bool = False


class AgreementReport(BaseModel):
    """Agreement statistics across analysis runs."""

    name_agreement: float = Field(..., ge=0.0, le=1.0)
    value_agreement: float = Field(..., ge=0.0, le=1.0)
    category_agreement: float = Field(..., ge=0.0, le=1.0)
    merge_strategy: MergeStrategy


class ConsensusOutcome(BaseModel):
    """Consensus record plus the runs and agreement report behind it."""

    final_result: AnalysisRecord
    all_runs: List[AnalysisRecord]
    agreement: AgreementReport


class ProgressEvent(BaseModel):
    """Progress notification emitted while consensus analysis runs."""

    type: Literal["stage:start", "stage:complete", "error"]
    stage: Optional[str] = None
    message: str
    progress: int = Field(..., ge=0, le=100)
