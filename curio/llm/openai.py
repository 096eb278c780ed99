"""OpenAI LLM provider implementation."""

from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from curio.analysis.models import AnalysisRecord
from curio.config import get_settings
from curio.exceptions import ProviderError, ResponseParseError
from curio.llm.base import BaseLLMProvider
from curio.llm.models import CapturedImage


def _image_part(image: CapturedImage) -> Dict[str, Any]:
    return {
        "type": "image_url",
        "image_url": {"url": image.data_url, "detail": "high"},
    }


class OpenAIProvider(BaseLLMProvider):
    """OpenAI provider for item analysis and reasoning synthesis."""

    name = "openai"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        """Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key. If None, uses config value.
            model: Model to use. If None, uses config value.
        """
        settings = get_settings()
        api_key = api_key or settings.openai_api_key
        model = model or settings.default_llm_model_openai

        if not api_key:
            raise ProviderError("OPENAI_API_KEY is not configured", provider=self.name)

        super().__init__(api_key, model)
        self.client = AsyncOpenAI(api_key=self.api_key)

    async def analyze_item(
        self, images: List[CapturedImage], asking_price: Optional[float] = None
    ) -> AnalysisRecord:
        """Analyze item photographs using OpenAI vision.

        Args:
            images: Photographs of the item
            asking_price: Seller's asking price, if known

        Returns:
            Analysis record

        Raises:
            ProviderError: If API call fails or response parsing fails
        """
        prompt = self._build_analysis_prompt(asking_price)
        content = [{"type": "text", "text": prompt}] + [_image_part(img) for img in images]

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": content}],
                response_format={"type": "json_object"},
                max_completion_tokens=2048,
            )
        except Exception as e:
            raise ProviderError(f"OpenAI API error: {e}", provider=self.name) from e

        message = response.choices[0].message

        # Check for refusal
        if getattr(message, "refusal", None):
            raise ProviderError(f"OpenAI refused to respond: {message.refusal}", provider=self.name)

        return self._parse_analysis_response(message.content or "")

    async def analyze_custom_prompt(
        self,
        prompt: str,
        image: Optional[CapturedImage] = None,
        model: Optional[str] = None,
    ) -> str:
        """Send a custom prompt, return raw text response.

        Reasoning models (o1, o3-mini) take ``max_completion_tokens`` and no
        temperature, which is what this call sends for every model.

        Raises:
            ProviderError: If API call fails or returns nothing
        """
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        if image is not None:
            content.append(_image_part(image))

        try:
            response = await self.client.chat.completions.create(
                model=model or self.model,
                messages=[{"role": "user", "content": content}],
                max_completion_tokens=2000,
            )
        except Exception as e:
            raise ProviderError(f"OpenAI API error: {e}", provider=self.name) from e

        response_text = response.choices[0].message.content if response.choices else None
        if not response_text:
            raise ResponseParseError("OpenAI returned empty response", provider=self.name)

        return response_text
