"""LLM provider manager exposing the analysis and reasoning calls."""

import logging
from typing import Dict, List, Optional

from curio.analysis.models import AnalysisRecord
from curio.config import get_settings
from curio.exceptions import ProviderError
from curio.llm.base import BaseLLMProvider
from curio.llm.claude import ClaudeProvider
from curio.llm.gemini import GeminiProvider
from curio.llm.models import CapturedImage
from curio.llm.openai import OpenAIProvider

logger = logging.getLogger(__name__)


class LLMManager:
    """Manages LLM providers used for item analysis and reasoning synthesis."""

    def __init__(
        self,
        use_openai: bool = True,
        use_claude: bool = True,
        use_gemini: bool = True,
        vision_provider: Optional[str] = None,
        reasoning_provider: str = "openai",
    ):
        """Initialize LLM manager.

        Args:
            use_openai: Enable OpenAI provider
            use_claude: Enable Claude provider
            use_gemini: Enable Gemini provider
            vision_provider: Provider used for analysis runs. If None, uses config value.
            reasoning_provider: Provider used for reasoning synthesis
        """
        settings = get_settings()
        self.providers: Dict[str, BaseLLMProvider] = {}

        candidates = (
            ("openai", use_openai, OpenAIProvider),
            ("claude", use_claude, ClaudeProvider),
            ("gemini", use_gemini, GeminiProvider),
        )
        for name, enabled, provider_cls in candidates:
            if not enabled:
                continue
            try:
                self.providers[name] = provider_cls()
            except Exception as e:
                logger.warning("Failed to initialize %s provider: %s", name, e)

        if not self.providers:
            raise ProviderError("No LLM providers available")

        self.vision_provider = vision_provider or settings.vision_provider
        self.reasoning_provider = reasoning_provider

    def get_available_providers(self) -> List[str]:
        """Get list of available provider names.

        Returns:
            List of provider names
        """
        return list(self.providers.keys())

    def get_provider(self, provider_name: str) -> BaseLLMProvider:
        """Look up a provider by name.

        Raises:
            ProviderError: If provider not available
        """
        if provider_name not in self.providers:
            raise ProviderError(f"Provider '{provider_name}' not available", provider=provider_name)
        return self.providers[provider_name]

    async def analyze_item(
        self, images: List[CapturedImage], asking_price: Optional[float] = None
    ) -> AnalysisRecord:
        """Single-shot analysis with the configured vision provider."""
        provider = self.get_provider(self.vision_provider)
        return await provider.analyze_item(images, asking_price)

    async def reason(
        self, prompt: str, image: Optional[CapturedImage], model: str
    ) -> str:
        """Send a synthesis prompt to the reasoning model."""
        provider = self.get_provider(self.reasoning_provider)
        return await provider.analyze_custom_prompt(prompt, image=image, model=model)

    async def complete_text(self, prompt: str, model: Optional[str] = None) -> str:
        """Free-form text completion used for conversational replies."""
        provider = self.get_provider(self.reasoning_provider)
        return await provider.analyze_custom_prompt(prompt, model=model)
