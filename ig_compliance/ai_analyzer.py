from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Sequence

from .analysis_schema import AIAnalysisReport, AIAnalysisResult, AnalysisReport, overall_score
from .cache import AnalysisCache
from .config_schema import OpenAIConfig
from .errors import AnalysisError, AnalysisInputError
from .llm import ComplianceModel
from .post import Post
from .prompts import build_system_prompt, build_user_prompt
from .rate_limit import RateLimiter
from .retry import RetryEvent
from .rule_analyzer import RuleBasedAnalyzer
from .run_log import RunLogger

ProgressFn = Callable[[str, int], None]
ClockFn = Callable[[], float]

FALLBACK_MODEL = "rule-based-fallback"
FALLBACK_CONFIDENCE = 0.7
FALLBACK_REASONING = "Analyzed using rule-based fallback due to AI service unavailability"


@dataclass(frozen=True)
class AIAttempt:
    """Outcome of the AI path: either a report, or the stage that failed and why."""

    report: AIAnalysisReport | None = None
    error: Exception | None = None
    stage: str | None = None

    @property
    def ok(self) -> bool:
        return self.report is not None


def validate_inputs(post: Post | None, requirements: Sequence[str] | None) -> list[str]:
    """Return trimmed requirements, or raise AnalysisInputError for caller mistakes."""
    if post is None:
        raise AnalysisInputError("Post data is required")

    if not requirements:
        raise AnalysisInputError("At least one requirement must be provided")

    trimmed = [(r or "").strip() for r in requirements]
    if any(not r for r in trimmed):
        raise AnalysisInputError("All requirements must be non-empty strings")

    return trimmed


def wrap_rule_report(
    report: AnalysisReport,
    *,
    confidence: float,
    reasoning: str,
    model: str,
    processing_time_ms: int,
) -> AIAnalysisReport:
    """Lift a rule-based report into the AI report shape with uniform confidence."""
    results = [
        AIAnalysisResult(
            requirement=r.requirement,
            passed=r.passed,
            explanation=r.explanation,
            confidence=confidence,
            evidence=[],
            reasoning=reasoning,
        )
        for r in report.results
    ]
    return AIAnalysisReport(
        results=results,
        overall_score=report.overall_score,
        ai_powered=False,
        processing_time=max(0, int(processing_time_ms)),
        model=model,
    )


class AIAnalyzer:
    """
    Compliance analysis through a structured-output model call.

    Flow per call: validate -> cache lookup -> rate-limit gate -> prompt -> model call
    (with retries) -> aggregate -> cache store. Provider failures fall back to the
    rule-based analyzer when fallback is enabled; invalid input always raises.
    """

    def __init__(
        self,
        model: ComplianceModel,
        *,
        openai_cfg: OpenAIConfig | None = None,
        cache: AnalysisCache | None = None,
        rate_limiter: RateLimiter | None = None,
        rule_analyzer: RuleBasedAnalyzer | None = None,
        fallback_enabled: bool | None = None,
        logger: RunLogger | None = None,
        clock: ClockFn | None = None,
    ) -> None:
        cfg = openai_cfg or OpenAIConfig()
        self._model = model
        self._cache = cache
        self._rate_limiter = rate_limiter or RateLimiter(cfg.max_requests_per_minute, logger=logger)
        self._rules = rule_analyzer or RuleBasedAnalyzer()
        self._fallback_enabled = cfg.fallback_enabled if fallback_enabled is None else bool(fallback_enabled)
        self._logger = logger
        self._clock = clock or time.monotonic

    @property
    def fallback_enabled(self) -> bool:
        return self._fallback_enabled

    def analyze(
        self,
        post: Post,
        requirements: Sequence[str],
        *,
        on_progress: ProgressFn | None = None,
    ) -> AIAnalysisReport:
        start = self._clock()

        self._progress(on_progress, "Validating inputs", 5)
        reqs = validate_inputs(post, requirements)

        cache_key: str | None = None
        if self._cache is not None:
            self._progress(on_progress, "Checking analysis cache", 20)
            cache_key = self._cache.generate_key(post, reqs)
            cached = self._cache.get(cache_key)
            if isinstance(cached, AIAnalysisReport):
                self._log_info("analysis_cache_hit", model=cached.model)
                self._progress(on_progress, "Found cached analysis result", 100)
                return cached.model_copy(update={"processing_time": self._elapsed_ms(start)})
            self._log_info("analysis_cache_miss")

        attempt = self._attempt_ai(post, reqs, start=start, on_progress=on_progress)

        if attempt.ok:
            assert attempt.report is not None
            if self._cache is not None and cache_key is not None:
                self._progress(on_progress, "Caching analysis results", 95)
                self._cache.set(cache_key, attempt.report)
            self._progress(on_progress, "AI analysis completed", 100)
            return attempt.report

        assert attempt.error is not None
        if self._logger is not None:
            self._logger.exception(
                "ai_analysis_failed",
                exc=attempt.error,
                stage=attempt.stage,
                fallback_enabled=self._fallback_enabled,
            )

        if not self._fallback_enabled:
            raise AnalysisError(f"AI analysis failed: {attempt.error}") from attempt.error

        self._progress(on_progress, "AI failed, using rule-based fallback", 50)
        return self.fallback_report(post, reqs, start=start)

    def fallback_report(self, post: Post, requirements: Sequence[str], *, start: float) -> AIAnalysisReport:
        report = self._rules.analyze(post, requirements)
        return wrap_rule_report(
            report,
            confidence=FALLBACK_CONFIDENCE,
            reasoning=FALLBACK_REASONING,
            model=FALLBACK_MODEL,
            processing_time_ms=self._elapsed_ms(start),
        )

    def _attempt_ai(
        self,
        post: Post,
        requirements: list[str],
        *,
        start: float,
        on_progress: ProgressFn | None,
    ) -> AIAttempt:
        waited = self._rate_limiter.acquire()
        if waited > 0:
            self._log_info("rate_limit_released", waited_seconds=round(waited, 3))

        self._progress(on_progress, "Building AI prompts", 45)
        try:
            system_prompt = build_system_prompt()
            user_prompt = build_user_prompt(post, requirements)
        except Exception as e:
            return AIAttempt(error=e, stage="build_prompt")

        self._progress(on_progress, "Sending request to OpenAI", 60)
        try:
            response = self._model.chat_complete(
                system_prompt,
                user_prompt,
                on_retry=self._on_retry,
            )
        except Exception as e:
            # Every provider failure routes to the fallback branch.
            return AIAttempt(error=e, stage="model_call")

        self._progress(on_progress, "Processing AI response", 80)
        results = list(response.results)
        if len(results) != len(requirements):
            self._log_warning(
                "ai_result_count_mismatch",
                expected=len(requirements),
                received=len(results),
            )

        self._progress(on_progress, "Calculating analysis scores", 90)
        report = AIAnalysisReport(
            results=results,
            overall_score=overall_score(results),
            ai_powered=True,
            processing_time=self._elapsed_ms(start),
            model=self._model.model,
        )
        return AIAttempt(report=report)

    def _on_retry(self, event: RetryEvent) -> None:
        self._log_warning(
            "ai_call_retry_scheduled",
            operation=event.operation,
            failure_attempt=event.failure_attempt,
            next_attempt=event.next_attempt,
            max_attempts=event.max_attempts,
            delay_seconds=round(event.delay_seconds, 3),
            reason=event.reason,
            error_type=event.error_type,
            error_message=event.error_message,
        )

    def _elapsed_ms(self, start: float) -> int:
        return max(0, int(round((self._clock() - start) * 1000)))

    def _progress(self, on_progress: ProgressFn | None, message: str, percent: int) -> None:
        if on_progress is None:
            return
        try:
            on_progress(message, percent)
        except Exception as e:
            # Observers cannot change the outcome.
            self._log_warning("progress_callback_failed", message=message, error=str(e))

    def _log_info(self, event: str, **data: object) -> None:
        if self._logger is not None:
            self._logger.info(event, **data)

    def _log_warning(self, event: str, **data: object) -> None:
        if self._logger is not None:
            self._logger.warning(event, **data)
