"""Base interface for LLM providers."""

import json
from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import ValidationError

from curio.analysis.models import AnalysisRecord, DomainCategory
from curio.exceptions import ResponseParseError
from curio.llm.models import CapturedImage
from curio.utils.helpers import extract_json_text


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers."""

    name = "base"

    def __init__(self, api_key: str, model: str):
        """Initialize provider with API key and model name.

        Args:
            api_key: API key for the provider
            model: Model identifier to use
        """
        self.api_key = api_key
        self.model = model

    @abstractmethod
    async def analyze_item(
        self, images: List[CapturedImage], asking_price: Optional[float] = None
    ) -> AnalysisRecord:
        """Identify and appraise an item from its photographs.

        Args:
            images: Photographs of the item, primary image first
            asking_price: Seller's asking price, if known

        Returns:
            Parsed analysis record

        Raises:
            ProviderError: If the API call or response parsing fails
        """
        pass

    @abstractmethod
    async def analyze_custom_prompt(
        self,
        prompt: str,
        image: Optional[CapturedImage] = None,
        model: Optional[str] = None,
    ) -> str:
        """Send a free-form prompt (optionally with one image) and return raw text.

        Args:
            prompt: Prompt text
            image: Optional image to attach
            model: Model override. If None, uses the provider's model.

        Returns:
            Raw response text

        Raises:
            ProviderError: If the API call fails
        """
        pass

    def _build_analysis_prompt(self, asking_price: Optional[float] = None) -> str:
        """Build prompt for item identification and appraisal.

        Args:
            asking_price: Seller's asking price, if known

        Returns:
            Formatted prompt string
        """
        domains = ", ".join(domain.value for domain in DomainCategory)
        price_line = (
            f"\nThe seller is asking ${asking_price:,.0f}. Do not let this anchor your valuation.\n"
            if asking_price
            else ""
        )

        prompt = f"""You are an expert appraiser of antiques, vintage items and collectibles.
Identify the item in the attached photograph(s) and estimate its value and authenticity.
{price_line}
Be honest about uncertainty. Only name a maker when marks or distinctive features support it.

Respond in JSON format:
{{
    "name": "<specific item name>",
    "maker": "<maker or brand, or null>",
    "era": "<period or date range>",
    "style": "<style or movement>",
    "domain_category": "<one of: {domains}>",
    "product_category": "antique|vintage|modern_branded|modern_generic",
    "confidence": <float between 0 and 1>,
    "identification_confidence": <float between 0 and 1>,
    "maker_confidence": <float between 0 and 1>,
    "value_min": <low estimate in US dollars>,
    "value_max": <high estimate in US dollars>,
    "authenticity_risk": "low|medium|high|very_high",
    "evidence_for": ["<observations supporting the identification>"],
    "evidence_against": ["<observations that cast doubt>"],
    "description": "<2-4 sentences on what the item is, its materials and condition>",
    "condition": "<condition notes, mention any damage, repair or restoration>",
    "historical_context": "<short historical note>",
    "expert_referral_recommended": <true/false>,
    "expert_referral_reason": "<why, or null>"
}}
"""
        return prompt

    def _parse_analysis_response(self, response_text: str) -> AnalysisRecord:
        """Parse model output into an AnalysisRecord.

        Raises:
            ResponseParseError: If the text is not valid JSON or fails validation
        """
        if not response_text or not response_text.strip():
            raise ResponseParseError(f"{self.name} returned empty response", provider=self.name)

        try:
            data = json.loads(extract_json_text(response_text))
        except json.JSONDecodeError as e:
            raise ResponseParseError(
                f"Failed to parse {self.name} response as JSON: {e}", provider=self.name
            ) from e

        if not isinstance(data, dict):
            raise ResponseParseError(
                f"{self.name} response is not a JSON object", provider=self.name
            )

        data.pop("annotations", None)
        for key in ("value_min", "value_max"):
            if data.get(key) is None:
                data[key] = 0.0
        for key in ("evidence_for", "evidence_against"):
            if data.get(key) is None:
                data[key] = []
        if data.get("authenticity_risk") is None:
            data.pop("authenticity_risk", None)

        try:
            return AnalysisRecord.model_validate(data)
        except ValidationError as e:
            raise ResponseParseError(
                f"Invalid analysis from {self.name}: {e}", provider=self.name
            ) from e
