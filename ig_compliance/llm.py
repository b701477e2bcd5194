from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Protocol

from openai import OpenAI

from .analysis_schema import ANALYSIS_JSON_SCHEMA, ANALYSIS_SCHEMA_NAME, AnalysisResponse
from .config_schema import OpenAIConfig
from .errors import LLMError, ModelCallTimeout
from .openai_retry import is_retryable_openai_exception, openai_backoff_seconds
from .retry import OnRetryFn, RetryConfig, SleepFn, call_with_retries


class _ResponsesAPI(Protocol):
    def create(self, **kwargs: Any) -> Any: ...


class _OpenAIClient(Protocol):
    responses: _ResponsesAPI


class ComplianceModel(Protocol):
    """What AIAnalyzer needs from a provider: a schema-constrained completion."""

    model: str

    def chat_complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        on_retry: OnRetryFn | None = None,
    ) -> AnalysisResponse: ...


_TEXT_FORMAT: dict[str, Any] = {
    "format": {
        "type": "json_schema",
        "name": ANALYSIS_SCHEMA_NAME,
        "strict": True,
        "schema": ANALYSIS_JSON_SCHEMA,
    }
}


def retry_config_from(cfg: OpenAIConfig) -> RetryConfig:
    return RetryConfig(
        max_attempts=cfg.max_attempts,
        base_delay_seconds=cfg.base_backoff_seconds,
        max_delay_seconds=max(cfg.max_backoff_seconds, cfg.base_backoff_seconds),
        retry_after_cap_seconds=cfg.max_backoff_seconds,
    )


def _extract_output_text(response: Any) -> str:
    direct = (getattr(response, "output_text", None) or "").strip()
    if direct:
        return direct

    output = getattr(response, "output", None) or []
    for item in output:
        content = getattr(item, "content", None) or []
        for part in content:
            text = getattr(part, "text", None)
            if isinstance(text, str) and text.strip():
                return text.strip()

    raise LLMError("No response content from OpenAI")


class OpenAIComplianceClient:
    """
    OpenAI wrapper returning a validated AnalysisResponse via Structured Outputs.

    Each attempt races a wall-clock timeout; transient failures are retried with
    exponential backoff for rate limits and linear backoff otherwise. A response that
    arrives after its attempt timed out is dropped.

    The client owns a worker pool for those timed calls: call close() (or use it as a
    context manager) to release it.
    """

    def __init__(
        self,
        api_key: str,
        *,
        openai_cfg: OpenAIConfig,
        client: _OpenAIClient | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> None:
        key = (api_key or "").strip()
        if not key:
            raise ValueError("api_key must be a non-empty string")

        self._cfg = openai_cfg
        self._client: _OpenAIClient = client or OpenAI(
            api_key=key,
            max_retries=0,
            timeout=openai_cfg.timeout_seconds,
        )
        self._retry = retry_config_from(openai_cfg)
        self._sleep_fn = sleep_fn
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="openai-call")

    @property
    def model(self) -> str:
        return self._cfg.model

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "OpenAIComplianceClient":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def _create_with_timeout(self, **kwargs: Any) -> Any:
        future = self._executor.submit(self._client.responses.create, **kwargs)
        try:
            return future.result(timeout=self._cfg.timeout_seconds)
        except FutureTimeoutError:
            future.cancel()
            raise ModelCallTimeout(
                f"Request timeout after {self._cfg.timeout_seconds:g}s"
            ) from None

    def _call_raw(self, system_prompt: str, user_prompt: str, *, on_retry: OnRetryFn | None) -> str:
        model = self._cfg.model

        def _do_call() -> Any:
            return self._create_with_timeout(
                model=model,
                instructions=system_prompt,
                input=[
                    {"role": "user", "content": user_prompt},
                ],
                text=_TEXT_FORMAT,
                temperature=self._cfg.temperature,
                max_output_tokens=self._cfg.max_output_tokens,
            )

        try:
            response = call_with_retries(
                _do_call,
                cfg=self._retry,
                is_retryable=is_retryable_openai_exception,
                operation=f"openai.responses.create:{model}",
                delay_fn=openai_backoff_seconds,
                on_retry=on_retry,
                sleep_fn=self._sleep_fn,
            )
        except Exception as e:
            raise LLMError(f"OpenAI call failed ({model}): {e}") from e

        return _extract_output_text(response)

    def _parse_response(self, raw: str) -> AnalysisResponse:
        try:
            parsed = AnalysisResponse.model_validate_json(raw)
        except Exception as e:
            raise LLMError(f"Failed to parse structured output ({self._cfg.model}): {e}") from e

        if not parsed.results:
            raise LLMError(f"Structured output contained no results ({self._cfg.model})")
        return parsed

    def chat_complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        on_retry: OnRetryFn | None = None,
    ) -> AnalysisResponse:
        raw = self._call_raw(system_prompt, user_prompt, on_retry=on_retry)
        return self._parse_response(raw)
