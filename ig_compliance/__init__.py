from __future__ import annotations

from .ai_analyzer import AIAnalyzer
from .analysis_schema import AIAnalysisReport, AIAnalysisResult, AnalysisReport, AnalysisResult
from .cache import AnalysisCache, generate_key
from .config import load_config, resolve_runtime_secrets
from .config_schema import AppConfig
from .errors import AnalysisError, AnalysisInputError, ConfigError
from .facade import AnalysisFacade, parse_requirements
from .post import Post, Segment, TimestampedTranscript, Word
from .rate_limit import RateLimiter
from .rule_analyzer import RuleBasedAnalyzer

__all__ = [
    "AIAnalysisReport",
    "AIAnalysisResult",
    "AIAnalyzer",
    "AnalysisCache",
    "AnalysisError",
    "AnalysisFacade",
    "AnalysisInputError",
    "AnalysisReport",
    "AnalysisResult",
    "AppConfig",
    "ConfigError",
    "Post",
    "RateLimiter",
    "RuleBasedAnalyzer",
    "Segment",
    "TimestampedTranscript",
    "Word",
    "generate_key",
    "load_config",
    "parse_requirements",
    "resolve_runtime_secrets",
]
