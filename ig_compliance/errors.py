from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class AnalysisInputError(ValueError):
    """Raised when the caller supplies an unusable post, URL or requirement list."""


class ApifyError(RuntimeError):
    """Raised when an Apify Actor run or dataset read fails."""


class LLMError(RuntimeError):
    """Raised when an OpenAI model call or structured parse fails."""


class AnalysisError(RuntimeError):
    """Raised when AI analysis fails and the rule-based fallback is disabled."""


class TranscriptionError(RuntimeError):
    """Raised when a video cannot be downloaded or transcribed."""


class ModelCallTimeout(TimeoutError):
    """Raised when a model call does not finish within its wall-clock budget."""
