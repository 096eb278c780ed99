"""Detect which additional evidence would most improve an analysis."""

from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from curio.analysis.models import AnalysisRecord, AuthenticityRisk, DomainCategory
from curio.interactive.models import (
    PRIORITY_RANK,
    InformationNeed,
    NeedType,
    UserResponse,
)


class NeedWeights(BaseModel):
    """Heuristic gains and cutoffs used by the need detector.

    The gains are uncalibrated weights for ordering requests, not
    probabilities; they do not sum or compose across needs.
    """

    model_config = ConfigDict(frozen=True)

    marks_photo_gain: float = Field(0.15, ge=0.0, le=1.0)
    underside_photo_gain: float = Field(0.12, ge=0.0, le=1.0)
    back_photo_gain: float = Field(0.10, ge=0.0, le=1.0)
    provenance_gain: float = Field(0.08, ge=0.0, le=1.0)
    measurements_gain: float = Field(0.06, ge=0.0, le=1.0)
    authentication_gain: float = Field(0.10, ge=0.0, le=1.0)
    documentation_gain: float = Field(0.15, ge=0.0, le=1.0)
    condition_photo_gain: float = Field(0.05, ge=0.0, le=1.0)
    scale_photo_gain: float = Field(0.03, ge=0.0, le=1.0)

    provenance_value_cutoff: float = Field(500, ge=0.0)
    documentation_value_cutoff: float = Field(1000, ge=0.0)


DEFAULT_NEED_WEIGHTS = NeedWeights()

UNDERSIDE_DOMAINS = frozenset([
    DomainCategory.FURNITURE,
    DomainCategory.CERAMICS,
    DomainCategory.GLASS,
    DomainCategory.SILVER,
    DomainCategory.TOYS,
    DomainCategory.LIGHTING,
])
BACK_DOMAINS = frozenset([DomainCategory.ART, DomainCategory.FURNITURE, DomainCategory.TEXTILES])
MEASUREMENT_DOMAINS = frozenset([
    DomainCategory.FURNITURE,
    DomainCategory.TEXTILES,
    DomainCategory.CERAMICS,
])
CONDITION_KEYWORDS = ("damage", "repair", "restoration")

# Domain-specific photo requests. Every domain has an entry; need types a
# domain leaves out use GENERIC_PHOTO_REQUESTS.
DOMAIN_PHOTO_REQUESTS: Dict[DomainCategory, Dict[NeedType, str]] = {
    DomainCategory.FURNITURE: {
        NeedType.PHOTO_UNDERSIDE: "Please photograph the underside, looking for labels, stamps, or construction details.",
        NeedType.PHOTO_BACK: "A photo of the back showing construction joints and wood would be very helpful.",
        NeedType.PHOTO_DETAIL: "Close-ups of any hardware, joints, or decorative elements would help with dating.",
        NeedType.PHOTO_MARKS: "Look for any maker stamps, labels, or guild marks, often hidden underneath.",
    },
    DomainCategory.CERAMICS: {
        NeedType.PHOTO_UNDERSIDE: "The base/foot rim is crucial - please photograph the bottom showing any marks.",
        NeedType.PHOTO_MARKS: "Close-up of any pottery marks, signatures, or impressed stamps.",
        NeedType.PHOTO_DETAIL: "A detail shot of the glaze quality and any decoration would help.",
    },
    DomainCategory.GLASS: {
        NeedType.PHOTO_UNDERSIDE: "Please photograph the base showing the pontil mark or any signatures.",
        NeedType.PHOTO_DETAIL: "A close-up showing glass quality, bubbles, or color variations.",
        NeedType.PHOTO_MARKS: "Any etched or acid-stamped signatures, often on the base.",
    },
    DomainCategory.SILVER: {
        NeedType.PHOTO_MARKS: "Hallmarks are essential - please photograph all visible marks clearly.",
        NeedType.PHOTO_DETAIL: "Close-up of construction details, especially joins and edges.",
        NeedType.PHOTO_UNDERSIDE: "Base showing any additional marks or construction quality.",
    },
    DomainCategory.JEWELRY: {
        NeedType.PHOTO_MARKS: "Please photograph any hallmarks, maker marks, or stamps (often inside bands).",
        NeedType.PHOTO_DETAIL: "Close-up of gemstone settings and metalwork quality.",
        NeedType.PHOTO_BACK: "The reverse/back of the piece showing construction.",
    },
    DomainCategory.WATCHES: {
        NeedType.PHOTO_MARKS: "Serial numbers on the case back are crucial for authentication.",
        NeedType.PHOTO_DETAIL: "Close-up of the dial showing printing quality and lume application.",
        NeedType.PHOTO_BACK: "Case back engravings and serial/model numbers.",
    },
    DomainCategory.ART: {
        NeedType.PHOTO_BACK: "The reverse of the artwork showing labels, stamps, or gallery marks.",
        NeedType.PHOTO_MARKS: "Any signatures, dates, or edition numbers.",
        NeedType.PHOTO_DETAIL: "Close-up showing brushwork, print quality, or medium characteristics.",
    },
    DomainCategory.TEXTILES: {
        NeedType.PHOTO_BACK: "The reverse side shows weave structure and construction.",
        NeedType.PHOTO_DETAIL: "Close-up of weave, stitching, or fiber quality.",
        NeedType.PHOTO_MARKS: "Any labels, selvedge marks, or maker identifications.",
    },
    DomainCategory.TOYS: {
        NeedType.PHOTO_MARKS: "Manufacturer marks, typically on the base or underside.",
        NeedType.PHOTO_DETAIL: "Close-up of paint, mechanism, or construction details.",
        NeedType.PHOTO_UNDERSIDE: "Base showing manufacturer info and country of origin.",
    },
    DomainCategory.BOOKS: {
        NeedType.PHOTO_MARKS: "Copyright page and any bookplates or signatures.",
        NeedType.PHOTO_DETAIL: "Condition of binding, gilding, and pages.",
        NeedType.PHOTO_CONTEXT: "Full view showing dust jacket condition if applicable.",
    },
    DomainCategory.TOOLS: {
        NeedType.PHOTO_MARKS: "Maker marks, patent dates, or manufacturer stamps.",
        NeedType.PHOTO_DETAIL: "Close-up of construction quality and materials.",
    },
    DomainCategory.LIGHTING: {
        NeedType.PHOTO_MARKS: "Base stamps, tags, or labels identifying the maker.",
        NeedType.PHOTO_DETAIL: "Glass or shade quality, soldering on leaded glass.",
        NeedType.PHOTO_UNDERSIDE: "Base showing maker stamps (especially important for Tiffany).",
    },
    DomainCategory.ELECTRONICS: {
        NeedType.PHOTO_MARKS: "Model numbers, serial numbers, and manufacturer info.",
        NeedType.PHOTO_DETAIL: "Condition and originality of components.",
        NeedType.PHOTO_BACK: "Internal construction if accessible.",
    },
    DomainCategory.VEHICLES: {
        NeedType.PHOTO_MARKS: "VIN, body tags, engine stamps.",
        NeedType.PHOTO_DETAIL: "Condition of key components, matching numbers.",
    },
    DomainCategory.GENERAL: {
        NeedType.PHOTO_MARKS: "Any visible marks, stamps, or labels.",
        NeedType.PHOTO_DETAIL: "Close-ups of construction quality and materials.",
        NeedType.PHOTO_UNDERSIDE: "Bottom or base of the item.",
    },
}

GENERIC_PHOTO_REQUESTS: Dict[NeedType, str] = {
    NeedType.PHOTO_MARKS: "Can you provide a clear photo of any maker marks, signatures, or labels?",
    NeedType.PHOTO_UNDERSIDE: "Please provide a photo of the base or underside of the item.",
    NeedType.PHOTO_BACK: "Please provide a photo of the back or reverse side.",
    NeedType.PHOTO_DETAIL: "Please provide close-up photos of construction details and materials.",
    NeedType.PHOTO_CONTEXT: "Please provide a photo showing the whole item in context.",
}


def _check_phrasing_tables() -> None:
    missing = set(DomainCategory) - set(DOMAIN_PHOTO_REQUESTS)
    if missing:
        raise RuntimeError(
            f"DOMAIN_PHOTO_REQUESTS missing domains: {sorted(d.value for d in missing)}"
        )
    for domain, requests in DOMAIN_PHOTO_REQUESTS.items():
        unknown = set(requests) - set(GENERIC_PHOTO_REQUESTS)
        if unknown:
            raise RuntimeError(f"{domain.value} has requests without a generic fallback: {unknown}")


_check_phrasing_tables()


def photo_request(domain: DomainCategory, need_type: NeedType) -> str:
    """Domain-specific phrasing for a photo request, with generic fallback."""
    return DOMAIN_PHOTO_REQUESTS[domain].get(need_type, GENERIC_PHOTO_REQUESTS[need_type])


def _condition_text(analysis: AnalysisRecord) -> str:
    return " ".join(filter(None, [analysis.description, analysis.condition]))


def detect_information_needs(
    analysis: AnalysisRecord,
    existing_responses: Iterable[UserResponse] = (),
    weights: NeedWeights = DEFAULT_NEED_WEIGHTS,
    expert_referral_flagged: Optional[bool] = None,
) -> List[InformationNeed]:
    """
    Determine what additional information would help the analysis.

    Args:
        analysis: Current analysis of the item
        existing_responses: Responses already collected; their need ids are skipped
        weights: Expected gains and value cutoffs
        expert_referral_flagged: External expert-referral signal. If None,
            uses the analysis's own flag.

    Returns:
        Needs sorted by priority (critical first), then by expected gain
    """
    domain = analysis.domain_category
    confidence = analysis.confidence
    mid_value = analysis.value_midpoint
    answered_ids = {response.need_id for response in existing_responses}
    if expert_referral_flagged is None:
        expert_referral_flagged = analysis.expert_referral_recommended

    needs: List[InformationNeed] = []

    def add(need: InformationNeed) -> None:
        if need.id not in answered_ids and all(n.id != need.id for n in needs):
            needs.append(need)

    # 1. Marks/signature photos
    if confidence < 0.9:
        add(InformationNeed(
            id="marks-photo",
            type=NeedType.PHOTO_MARKS,
            priority="critical" if confidence < 0.7 else "high",
            question=photo_request(domain, NeedType.PHOTO_MARKS),
            explanation=(
                "Maker marks are often the key to definitive identification "
                "and can significantly increase our confidence."
            ),
            expected_confidence_gain=weights.marks_photo_gain,
            photo_guidance=(
                "Use good lighting, avoid shadows, and ensure the marks are in "
                "sharp focus. Multiple angles help."
            ),
        ))

    # 2. Underside/base
    if confidence < 0.85 and domain in UNDERSIDE_DOMAINS:
        add(InformationNeed(
            id="underside-photo",
            type=NeedType.PHOTO_UNDERSIDE,
            priority="high",
            question=photo_request(domain, NeedType.PHOTO_UNDERSIDE),
            explanation="The underside often contains crucial construction details and hidden marks.",
            expected_confidence_gain=weights.underside_photo_gain,
            photo_guidance="If the item is too heavy to turn over, use a mirror or phone camera underneath.",
        ))

    # 3. Back/reverse
    if confidence < 0.85 and domain in BACK_DOMAINS:
        add(InformationNeed(
            id="back-photo",
            type=NeedType.PHOTO_BACK,
            priority="high",
            question=photo_request(domain, NeedType.PHOTO_BACK),
            explanation="The back often reveals construction methods, gallery labels, or hidden information.",
            expected_confidence_gain=weights.back_photo_gain,
        ))

    # 4. Provenance for valuable items
    if mid_value >= weights.provenance_value_cutoff:
        add(InformationNeed(
            id="provenance-question",
            type=NeedType.QUESTION_PROVENANCE,
            priority="high",
            question=(
                "Can you share the history of this item? How did you acquire it, "
                "and do you know anything about its previous owners?"
            ),
            explanation="Provenance can significantly impact both authentication and value for high-value pieces.",
            expected_confidence_gain=weights.provenance_gain,
            examples=[
                "Inherited from grandmother who collected in the 1960s",
                "Purchased at estate sale in Connecticut, 2018",
                "Found at flea market, no history known",
            ],
        ))

    # 5. Measurements for size-critical domains
    if domain in MEASUREMENT_DOMAINS and confidence < 0.8:
        add(InformationNeed(
            id="measurements",
            type=NeedType.MEASUREMENT,
            priority="medium",
            question="Can you provide dimensions? Height, width, and depth in inches or centimeters.",
            explanation="Correct proportions help distinguish originals from reproductions or different time periods.",
            expected_confidence_gain=weights.measurements_gain,
        ))

    # 6. Authentication concerns
    if analysis.authenticity_risk in (AuthenticityRisk.HIGH, AuthenticityRisk.VERY_HIGH):
        add(InformationNeed(
            id="authentication-question",
            type=NeedType.QUESTION_COMPARISON,
            priority="critical",
            question=(
                "Our analysis detected some authentication concerns. Have you compared "
                "this to known authentic examples? Are there any features that seem unusual to you?"
            ),
            explanation="Your observations combined with our analysis can help identify potential reproduction indicators.",
            expected_confidence_gain=weights.authentication_gain,
        ))

    # 7. Documentation
    if mid_value > weights.documentation_value_cutoff or expert_referral_flagged:
        add(InformationNeed(
            id="documentation",
            type=NeedType.DOCUMENTATION,
            priority="medium",
            question=(
                "Do you have any documentation? Receipts, appraisals, certificates of "
                "authenticity, or auction records would be very helpful."
            ),
            explanation="Documentation can provide definitive authentication and provenance support.",
            expected_confidence_gain=weights.documentation_gain,
        ))

    # 8. Condition details
    condition_text = _condition_text(analysis).lower()
    if any(keyword in condition_text for keyword in CONDITION_KEYWORDS):
        add(InformationNeed(
            id="condition-photo",
            type=NeedType.PHOTO_DAMAGE,
            priority="medium",
            question="Can you provide close-up photos of any damage, repairs, or restoration work?",
            explanation="Understanding the condition details helps with accurate valuation.",
            expected_confidence_gain=weights.condition_photo_gain,
            photo_guidance="Focus on any chips, cracks, repairs, or areas of concern.",
        ))

    # 9. Scale reference when little else is needed
    if len(needs) < 3:
        add(InformationNeed(
            id="scale-photo",
            type=NeedType.PHOTO_SCALE,
            priority="low",
            question="Could you include a common object (coin, ruler, hand) in a photo to show scale?",
            explanation="A size reference helps verify proportions and authenticity.",
            expected_confidence_gain=weights.scale_photo_gain,
            photo_guidance="Place a quarter, credit card, or ruler next to the item.",
        ))

    needs.sort(key=lambda need: (PRIORITY_RANK[need.priority], -need.expected_confidence_gain))
    return needs


QUICK_QUESTIONS: Dict[DomainCategory, List[str]] = {
    DomainCategory.FURNITURE: [
        "Do you see any labels or stamps when you look underneath?",
        "Are there any dovetail joints visible in the drawers?",
    ],
    DomainCategory.CERAMICS: [
        "What marks do you see on the bottom?",
        "Does it feel heavy for its size?",
    ],
    DomainCategory.GLASS: [
        "Can you see a pontil mark on the base?",
        "Does the glass have any bubbles or imperfections?",
    ],
    DomainCategory.SILVER: [
        "What hallmarks can you identify?",
        'Is it marked "sterling" or just "silver"?',
    ],
    DomainCategory.JEWELRY: [
        "Are there any stamps inside the band?",
        "Is the clasp original?",
    ],
    DomainCategory.WATCHES: [
        "What is the serial number on the case back?",
        "Does the movement appear original?",
    ],
    DomainCategory.ART: [
        "Are there any labels on the back?",
        "Is it signed? Where?",
    ],
}

DEFAULT_QUICK_QUESTIONS = [
    "Are there any marks or labels you can see?",
    "Do you know the history of this item?",
]


def get_quick_questions(analysis: AnalysisRecord) -> List[str]:
    """Short domain-specific follow-up prompts for the user."""
    return list(QUICK_QUESTIONS.get(analysis.domain_category, DEFAULT_QUICK_QUESTIONS))
