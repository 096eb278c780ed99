"""Gemini (Google) LLM provider implementation."""

import base64
from typing import List, Optional

from google import genai
from google.genai import types

from curio.analysis.models import AnalysisRecord
from curio.config import get_settings
from curio.exceptions import ProviderError, ResponseParseError
from curio.llm.base import BaseLLMProvider
from curio.llm.models import CapturedImage
from curio.utils.helpers import parse_data_url


def _image_part(image: CapturedImage) -> types.Part:
    if image.data_url.startswith(("http://", "https://")):
        return types.Part.from_uri(file_uri=image.data_url, mime_type="image/jpeg")

    media_type, payload = parse_data_url(image.data_url)
    return types.Part.from_bytes(data=base64.b64decode(payload), mime_type=media_type)


class GeminiProvider(BaseLLMProvider):
    """Gemini (Google) provider for item analysis."""

    name = "gemini"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        """Initialize Gemini provider.

        Args:
            api_key: Google API key. If None, uses config value.
            model: Model to use. If None, uses config value.
        """
        settings = get_settings()
        api_key = api_key or settings.google_api_key
        model = model or settings.default_llm_model_gemini

        if not api_key:
            raise ProviderError("GOOGLE_API_KEY is not configured", provider=self.name)

        super().__init__(api_key, model)

        # Configure the API
        self.client = genai.Client(api_key=self.api_key)

    async def _generate(self, contents: list, model: str) -> str:
        try:
            response = await self.client.aio.models.generate_content(
                model=model,
                contents=contents,
            )
        except Exception as e:
            raise ProviderError(f"Gemini API error: {e}", provider=self.name) from e

        # Check if response was blocked by safety filters
        feedback = getattr(response, "prompt_feedback", None)
        if feedback is not None and getattr(feedback, "block_reason", None):
            raise ProviderError(
                f"Gemini blocked response due to safety filters: {feedback.block_reason}",
                provider=self.name,
            )

        if not response.candidates:
            raise ResponseParseError("Gemini returned no candidates", provider=self.name)

        candidate = response.candidates[0]
        if "SAFETY" in str(getattr(candidate, "finish_reason", "")):
            raise ProviderError(
                f"Gemini candidate blocked by safety: {candidate.finish_reason}",
                provider=self.name,
            )

        response_text = response.text
        if not response_text or not response_text.strip():
            raise ResponseParseError("Gemini returned empty response", provider=self.name)
        return response_text

    async def analyze_item(
        self, images: List[CapturedImage], asking_price: Optional[float] = None
    ) -> AnalysisRecord:
        """Analyze item photographs using Gemini.

        Raises:
            ProviderError: If API call fails or response parsing fails
        """
        contents = [_image_part(img) for img in images]
        contents.append(self._build_analysis_prompt(asking_price))

        response_text = await self._generate(contents, self.model)
        return self._parse_analysis_response(response_text)

    async def analyze_custom_prompt(
        self,
        prompt: str,
        image: Optional[CapturedImage] = None,
        model: Optional[str] = None,
    ) -> str:
        """Analyze with custom prompt, return raw text response."""
        contents: list = []
        if image is not None:
            contents.append(_image_part(image))
        contents.append(prompt)

        return await self._generate(contents, model or self.model)
