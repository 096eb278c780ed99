"""Configuration management for Curio."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # LLM Provider API Keys
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = None

    # Logging Configuration
    log_level: str = "INFO"
    log_file: Optional[str] = "curio.log"

    # LLM Model Configuration
    vision_provider: str = "openai"
    default_llm_model_openai: str = "gpt-4o"
    default_llm_model_claude: str = "claude-3-5-sonnet-20241022"
    default_llm_model_gemini: str = "gemini-1.5-pro"
    reasoning_model: str = "o1"
    reasoning_timeout_seconds: float = 120.0
    assistant_model: str = "gpt-4o-mini"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Singleton instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create settings singleton instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
