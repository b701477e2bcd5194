from __future__ import annotations

import time
from typing import Sequence

from .ai_analyzer import AIAnalyzer, ProgressFn, validate_inputs, wrap_rule_report
from .analysis_schema import AIAnalysisReport
from .errors import AnalysisInputError, ConfigError
from .post import Post
from .rule_analyzer import RuleBasedAnalyzer

RULE_BASED_MODEL = "rule-based"
RULE_BASED_CONFIDENCE = 0.8
RULE_BASED_REASONING = "Analyzed using rule-based approach"


def parse_requirements(text: str | Sequence[str]) -> list[str]:
    """
    Split newline-delimited requirement text into trimmed, non-blank lines.

    A sequence is trimmed and filtered the same way. Zero remaining lines is a
    caller error.
    """
    lines = text.splitlines() if isinstance(text, str) else list(text)
    out = [(line or "").strip() for line in lines]
    out = [line for line in out if line]
    if not out:
        raise AnalysisInputError("At least one requirement must be provided")
    return out


class AnalysisFacade:
    """
    Single entry point for compliance analysis.

    Both engines come back in the AI report shape so callers never branch on
    which one ran.
    """

    def __init__(
        self,
        *,
        ai_analyzer: AIAnalyzer | None = None,
        rule_analyzer: RuleBasedAnalyzer | None = None,
    ) -> None:
        self._ai = ai_analyzer
        self._rules = rule_analyzer or RuleBasedAnalyzer()

    def analyze(
        self,
        post: Post,
        requirements: str | Sequence[str],
        *,
        use_ai: bool = True,
        on_progress: ProgressFn | None = None,
    ) -> AIAnalysisReport:
        reqs = parse_requirements(requirements)

        if use_ai:
            if self._ai is None:
                raise ConfigError("AI analysis requested but no AI analyzer is configured")
            return self._ai.analyze(post, reqs, on_progress=on_progress)

        start = time.monotonic()
        validate_inputs(post, reqs)
        report = self._rules.analyze(post, reqs)
        return wrap_rule_report(
            report,
            confidence=RULE_BASED_CONFIDENCE,
            reasoning=RULE_BASED_REASONING,
            model=RULE_BASED_MODEL,
            processing_time_ms=int(round((time.monotonic() - start) * 1000)),
        )
