"""Exceptions for consensus analysis operations."""


class CurioError(Exception):
    """Base exception for Curio errors."""

    pass


class ConsensusConfigError(CurioError):
    """Consensus configuration violates policy (e.g. max_runs < 1)."""

    pass


class AnalysisFailedError(CurioError):
    """No analysis run succeeded."""

    def __init__(self, message: str, attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts


class ProviderError(CurioError):
    """Upstream LLM provider call failed."""

    def __init__(self, message: str, provider: str = None):
        super().__init__(message)
        self.provider = provider


class ResponseParseError(ProviderError):
    """Provider returned content that could not be parsed."""

    pass
