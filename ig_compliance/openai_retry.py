from __future__ import annotations

from typing import Any, Mapping

from openai import APIConnectionError, APIStatusError, APITimeoutError, RateLimitError

from .retry import RetryConfig, exponential_backoff_seconds, linear_backoff_seconds

RATE_LIMITED = "rate_limited"


def _extract_headers(obj: Any) -> Mapping[str, Any]:
    headers = getattr(obj, "headers", None)
    if headers is None:
        return {}

    if isinstance(headers, Mapping):
        return headers

    # httpx.Headers is iterable over items; try coercion.
    try:
        return dict(headers)
    except Exception:
        return {}


def _parse_retry_after(headers: Mapping[str, Any]) -> float | None:
    if not headers:
        return None

    val: Any = None
    for key in ("retry-after", "Retry-After", "RETRY-AFTER"):
        try:
            val = headers.get(key)  # type: ignore[call-arg]
        except Exception:
            val = None
        if val is not None:
            break

    if val is None:
        return None

    try:
        if isinstance(val, (list, tuple)) and val:
            val = val[0]
        return float(str(val).strip())
    except Exception:
        return None


def _extract_retry_after_seconds(exc: BaseException) -> float | None:
    direct = getattr(exc, "retry_after", None)
    if direct is None:
        direct = getattr(exc, "retry_after_seconds", None)

    if direct is not None:
        try:
            return float(direct)
        except Exception:
            pass

    response = getattr(exc, "response", None)
    headers = _extract_headers(response)
    return _parse_retry_after(headers)


def _extract_status_code(exc: BaseException) -> int | None:
    val = getattr(exc, "status_code", None)
    if val is None:
        val = getattr(exc, "statusCode", None)
    if val is None:
        val = getattr(exc, "http_status", None)

    if val is None:
        return None

    try:
        return int(val)
    except Exception:
        return None


def _extract_error_code(exc: BaseException) -> str | None:
    code = getattr(exc, "code", None)
    if isinstance(code, str) and code.strip():
        return code.strip()
    body = getattr(exc, "body", None)
    if isinstance(body, Mapping):
        inner = body.get("error") if isinstance(body.get("error"), Mapping) else body
        val = inner.get("code") if isinstance(inner, Mapping) else None
        if isinstance(val, str) and val.strip():
            return val.strip()
    return None


def _looks_rate_limited(exc: BaseException) -> bool:
    msg = (str(exc) or "").casefold()
    return "rate_limit" in msg or "rate limit" in msg


def is_retryable_openai_exception(exc: BaseException) -> tuple[bool, float | None, str | None]:
    """
    OpenAI retry policy:
    - rate limits (HTTP 429) => "rate_limited", except exhausted quota which is permanent
    - connection errors and timeouts (SDK or local wall-clock) => transient
    - HTTP 408, 409 and 5xx => transient
    - anything else (auth, bad request, ...) => permanent
    """
    retry_after = _extract_retry_after_seconds(exc)

    if _extract_error_code(exc) == "insufficient_quota":
        return False, None, "insufficient_quota"

    if isinstance(exc, RateLimitError):
        return True, retry_after, RATE_LIMITED

    # APITimeoutError subclasses APIConnectionError, so check it first.
    if isinstance(exc, APITimeoutError) or isinstance(exc, TimeoutError):
        return True, retry_after, "timeout"

    if isinstance(exc, APIConnectionError):
        return True, retry_after, "connection_error"

    code = _extract_status_code(exc)
    if isinstance(exc, APIStatusError) or code is not None:
        if code == 429:
            return True, retry_after, RATE_LIMITED
        if code in (408, 409) or (isinstance(code, int) and code >= 500):
            return True, retry_after, f"http_{code}"
        return False, None, f"http_{code}" if code is not None else "http_status"

    if _looks_rate_limited(exc):
        return True, retry_after, RATE_LIMITED

    return False, None, None


def openai_backoff_seconds(failure_attempt: int, reason: str | None, cfg: RetryConfig) -> float:
    """Exponential backoff for rate limits, linear backoff for other transient failures."""
    if reason == RATE_LIMITED:
        return exponential_backoff_seconds(failure_attempt, reason, cfg)
    return linear_backoff_seconds(failure_attempt, reason, cfg)
