"""Claude (Anthropic) LLM provider implementation."""

from typing import Any, Dict, List, Optional

from anthropic import AsyncAnthropic

from curio.analysis.models import AnalysisRecord
from curio.config import get_settings
from curio.exceptions import ProviderError, ResponseParseError
from curio.llm.base import BaseLLMProvider
from curio.llm.models import CapturedImage
from curio.utils.helpers import parse_data_url


def _image_block(image: CapturedImage) -> Dict[str, Any]:
    if image.data_url.startswith(("http://", "https://")):
        return {"type": "image", "source": {"type": "url", "url": image.data_url}}

    media_type, payload = parse_data_url(image.data_url)
    return {
        "type": "image",
        "source": {"type": "base64", "media_type": media_type, "data": payload},
    }


class ClaudeProvider(BaseLLMProvider):
    """Claude provider for item analysis."""

    name = "claude"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        """Initialize Claude provider.

        Args:
            api_key: Anthropic API key. If None, uses config value.
            model: Model to use. If None, uses config value.
        """
        settings = get_settings()
        api_key = api_key or settings.anthropic_api_key
        model = model or settings.default_llm_model_claude

        if not api_key:
            raise ProviderError("ANTHROPIC_API_KEY is not configured", provider=self.name)

        super().__init__(api_key, model)
        self.client = AsyncAnthropic(api_key=self.api_key)

    async def _complete(self, content: List[Dict[str, Any]], model: str) -> str:
        try:
            response = await self.client.messages.create(
                model=model,
                max_tokens=2048,
                messages=[{"role": "user", "content": content}],
            )
        except Exception as e:
            raise ProviderError(f"Claude API error: {e}", provider=self.name) from e

        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise ResponseParseError("Claude returned empty response", provider=self.name)
        return "".join(text_blocks)

    async def analyze_item(
        self, images: List[CapturedImage], asking_price: Optional[float] = None
    ) -> AnalysisRecord:
        """Analyze item photographs using Claude.

        Raises:
            ProviderError: If API call fails or response parsing fails
        """
        content = [_image_block(img) for img in images]
        content.append({"type": "text", "text": self._build_analysis_prompt(asking_price)})

        response_text = await self._complete(content, self.model)
        return self._parse_analysis_response(response_text)

    async def analyze_custom_prompt(
        self,
        prompt: str,
        image: Optional[CapturedImage] = None,
        model: Optional[str] = None,
    ) -> str:
        """Analyze with custom prompt, return raw text response."""
        content: List[Dict[str, Any]] = []
        if image is not None:
            content.append(_image_block(image))
        content.append({"type": "text", "text": prompt})

        return await self._complete(content, model or self.model)
