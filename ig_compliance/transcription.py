from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Protocol
from urllib.parse import quote

import httpx
from openai import OpenAI

from .config_schema import TranscriptionConfig
from .errors import TranscriptionError
from .post import Segment, TimestampedTranscript, Word
from .retry import (
    RetryConfig,
    RetryEvent,
    SleepFn,
    call_with_retries,
    progressive_backoff_seconds,
    retry_always,
)
from .run_log import RunLogger

_BROWSER_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "video/mp4,video/webm,video/*;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Referer": "https://www.instagram.com/",
    "Origin": "https://www.instagram.com",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

_PROXY_HEADERS: dict[str, str] = {
    "User-Agent": "ig-compliance/1.0",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


class _HTTPClient(Protocol):
    def get(self, url: str, **kwargs: Any) -> Any: ...


class _DownloadFailed(RuntimeError):
    pass


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    timestamped_transcript: TimestampedTranscript | None = None


def retry_config_from(cfg: TranscriptionConfig) -> RetryConfig:
    return RetryConfig(
        max_attempts=cfg.max_attempts,
        base_delay_seconds=cfg.base_delay_seconds,
        max_delay_seconds=cfg.base_delay_seconds,
        step_delay_seconds=cfg.step_delay_seconds,
        jitter_seconds=cfg.jitter_seconds,
        retry_after_cap_seconds=0.0,
    )


def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def timestamped_from_whisper(result: Any) -> TimestampedTranscript | None:
    """Convert a verbose_json transcription into segments; None when it has no segments."""
    segments_raw = _get(result, "segments") or []
    segments: list[Segment] = []
    for seg in segments_raw:
        words_raw = _get(seg, "words")
        words = None
        if words_raw:
            words = tuple(
                Word(
                    word=str(_get(w, "word") or ""),
                    start=_as_float(_get(w, "start")),
                    end=_as_float(_get(w, "end")),
                )
                for w in words_raw
            )
        segments.append(
            Segment(
                text=str(_get(seg, "text") or ""),
                start=_as_float(_get(seg, "start")),
                end=_as_float(_get(seg, "end")),
                words=words,
            )
        )

    if not segments:
        return None
    return TimestampedTranscript(text=str(_get(result, "text") or ""), segments=tuple(segments))


def _translate_error(err: BaseException) -> str:
    msg = str(err) or type(err).__name__
    lower = msg.casefold()
    if "api key" in lower or "api_key" in lower:
        return "Invalid OpenAI API key. Please check your OpenAI API key environment variable."
    if "quota" in lower or "exceeded" in lower:
        return "OpenAI API quota exceeded. Please check your OpenAI account credits."
    if "too large" in lower:
        return "Video file is too large for transcription."
    return f"Failed to transcribe video: {msg}"


class VideoTranscriber:
    """
    Download a post's video and transcribe it with Whisper.

    The download tries the media URL directly and then, when configured, a proxy
    service; each path gets its own retry loop. The temporary file is always removed.
    """

    def __init__(
        self,
        api_key: str,
        *,
        cfg: TranscriptionConfig,
        proxy_url: str | None = None,
        openai_client: Any | None = None,
        http_client: _HTTPClient | None = None,
        sleep_fn: SleepFn | None = None,
        logger: RunLogger | None = None,
        temp_dir: str | Path | None = None,
    ) -> None:
        self._cfg = cfg
        self._proxy_url = (proxy_url or "").strip() or None
        self._openai = openai_client or OpenAI(api_key=api_key)
        self._http: _HTTPClient = http_client or httpx.Client(
            timeout=cfg.request_timeout_seconds,
            follow_redirects=True,
        )
        self._retry = retry_config_from(cfg)
        self._sleep_fn = sleep_fn
        self._logger = logger
        self._temp_dir = Path(temp_dir) if temp_dir is not None else Path(tempfile.gettempdir()) / "ig-compliance"

    @property
    def max_bytes(self) -> int:
        return int(self._cfg.max_file_mb) * 1024 * 1024

    def transcribe(self, media_url: str) -> TranscriptionResult:
        url = (media_url or "").strip()
        if not url:
            raise TranscriptionError("media_url must be non-empty")

        path: Path | None = None
        try:
            path = self.download(url)

            size = path.stat().st_size
            if size > self.max_bytes:
                raise TranscriptionError(
                    f"Video file is too large for transcription ({self._cfg.max_file_mb}MB limit)."
                )

            return self._transcribe_file(path)
        except TranscriptionError:
            raise
        except Exception as e:
            raise TranscriptionError(_translate_error(e)) from e
        finally:
            if path is not None:
                self._remove(path)

    def download(self, url: str) -> Path:
        """Download to a new temporary file; raises TranscriptionError when every path fails."""
        self._temp_dir.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix="video-", suffix=".mp4", dir=self._temp_dir)
        os.close(fd)
        path = Path(name)

        try:
            try:
                self._download_with_retries(url, path, headers=_BROWSER_HEADERS, operation="video.download.direct")
                return path
            except Exception as direct_err:
                self._log_warning("video_direct_download_failed", url=url, error=str(direct_err))
                try:
                    self._download_via_proxy(url, path)
                    return path
                except Exception as proxy_err:
                    raise TranscriptionError(
                        "Failed to download video for transcription: "
                        f"Both direct and proxy downloads failed. Direct: {direct_err}, Proxy: {proxy_err}"
                    ) from proxy_err
        except BaseException:
            self._remove(path)
            raise

    def _download_via_proxy(self, url: str, path: Path) -> None:
        if self._proxy_url is None:
            raise _DownloadFailed(
                f"No proxy service configured. Set {self._cfg.proxy_url_env} to enable it."
            )
        proxied = f"{self._proxy_url}?url={quote(url, safe='')}"
        self._download_with_retries(proxied, path, headers=_PROXY_HEADERS, operation="video.download.proxy")

    def _download_with_retries(self, url: str, path: Path, *, headers: Mapping[str, str], operation: str) -> None:
        def _do_download() -> None:
            self._fetch_to_file(url, path, headers=headers)

        call_with_retries(
            _do_download,
            cfg=self._retry,
            is_retryable=retry_always,
            operation=operation,
            delay_fn=progressive_backoff_seconds,
            on_retry=self._on_retry,
            sleep_fn=self._sleep_fn,
            context_url=url,
        )

    def _fetch_to_file(self, url: str, path: Path, *, headers: Mapping[str, str]) -> None:
        response = self._http.get(url, headers=dict(headers))

        status = int(getattr(response, "status_code", 0) or 0)
        if status >= 400 or status == 0:
            raise _DownloadFailed(f"HTTP {status}: {getattr(response, 'reason_phrase', '') or 'request failed'}")

        body = getattr(response, "content", b"") or b""
        if not body:
            raise _DownloadFailed("Response body is empty")

        path.write_bytes(body)
        if path.stat().st_size == 0:
            raise _DownloadFailed("Downloaded file is empty")

        self._log_info("video_download_succeeded", url=url, size_bytes=len(body))

    def _transcribe_file(self, path: Path) -> TranscriptionResult:
        kwargs: dict[str, Any] = {
            "model": self._cfg.model,
            "language": self._cfg.language,
        }
        if self._cfg.timestamps:
            kwargs["response_format"] = "verbose_json"
            kwargs["timestamp_granularities"] = ["segment"]
        else:
            kwargs["response_format"] = "text"

        with path.open("rb") as fh:
            result = self._openai.audio.transcriptions.create(file=fh, **kwargs)

        if isinstance(result, str):
            return TranscriptionResult(text=result.strip())

        text = str(_get(result, "text") or "").strip()
        return TranscriptionResult(text=text, timestamped_transcript=timestamped_from_whisper(result))

    def _remove(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            self._log_warning("temp_file_cleanup_failed", path=str(path), error=str(e))

    def _on_retry(self, event: RetryEvent) -> None:
        self._log_warning(
            "video_download_retry_scheduled",
            url=event.context_url,
            operation=event.operation,
            failure_attempt=event.failure_attempt,
            max_attempts=event.max_attempts,
            delay_seconds=round(event.delay_seconds, 3),
            error_message=event.error_message,
        )

    def _log_info(self, event: str, *, url: str | None = None, **data: Any) -> None:
        if self._logger is not None:
            self._logger.info(event, url=url, **data)

    def _log_warning(self, event: str, *, url: str | None = None, **data: Any) -> None:
        if self._logger is not None:
            self._logger.warning(event, url=url, **data)
