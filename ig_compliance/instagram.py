from __future__ import annotations

import dataclasses
import re
from typing import Any, Callable

from apify_client import ApifyClient

from .apify_retry import is_retryable_apify_exception
from .config_schema import ApifyConfig
from .errors import AnalysisInputError, ApifyError, TranscriptionError
from .normalize import post_from_apify_item
from .post import Post
from .retry import OnRetryFn, RetryConfig, RetryEvent, SleepFn, call_with_retries
from .run_log import RunLogger
from .transcription import VideoTranscriber

ProgressFn = Callable[[str, int], None]

_INSTAGRAM_URL_RE = re.compile(
    r"^https?://(?:www\.)?instagram\.com/"
    r"(?:p|reel|[A-Za-z0-9_.]+/reel)/[A-Za-z0-9_-]+/?(?:[?#].*)?$"
)

_DEFAULT_APIFY_RETRY = RetryConfig(
    max_attempts=3,
    base_delay_seconds=1.0,
    max_delay_seconds=10.0,
    retry_after_cap_seconds=0.0,
)

DOWNLOAD_BLOCKED_TRANSCRIPT = (
    "Instagram video transcription is not available. Instagram restricts direct video downloads."
)
TRANSCRIPTION_FAILED_TRANSCRIPT = "Transcription failed. Please try again later."

_MOCK_CAPTION = """\
🔥 Just tried the new Sneak Eats protein bars and they're incredible! The chocolate chip flavor is my absolute favorite. Perfect for post-workout fuel! 💪

Use my code SAVE20 for 20% off your first order. Link in bio!

What's your go-to post-workout snack? Let me know in the comments! 👇

#ad #sneakeats #proteinbar #fitness #postworkout #healthyeating #sponsored #fitnessmotivation #nutrition #gains"""


def mock_post() -> Post:
    """Deterministic sample post served when the scraper is unavailable."""
    return Post(
        caption=_MOCK_CAPTION,
        media_type="video",
        media_url="https://example.com/sample-video.mp4",
        transcript=(
            "This is a mock transcript. To get real transcriptions, configure the Apify "
            "token and OpenAI API key environment variables."
        ),
        hashtags=(
            "ad",
            "sneakeats",
            "proteinbar",
            "fitness",
            "postworkout",
            "healthyeating",
            "sponsored",
            "fitnessmotivation",
            "nutrition",
            "gains",
        ),
        alt_text="Person holding a chocolate chip protein bar with gym equipment in the background",
    )


def is_valid_instagram_url(url: str) -> bool:
    """Accept /p/<code>, /reel/<code> and /<username>/reel/<code> post URLs."""
    return bool(_INSTAGRAM_URL_RE.match((url or "").strip()))


def translate_apify_error(err: BaseException) -> str:
    msg = str(err) or type(err).__name__
    lower = msg.casefold()
    if "timeout" in lower or "timed out" in lower:
        return "Request timed out. The Instagram post might be taking too long to scrape. Please try again."
    if "credits" in lower or "quota" in lower:
        return "Apify API quota exceeded. Please check your Apify account credits."
    if "unauthorized" in lower or "token" in lower or "http_401" in lower:
        return "Invalid Apify API token. Please check your Apify token environment variable."
    return msg


class InstagramPostFetcher:
    """
    Fetch a single Instagram post through Apify's Instagram Scraper Actor.

    Provider failures are logged and answered with mock_post() unless
    fallback_to_mock is off, in which case a translated ApifyError is raised.
    """

    def __init__(
        self,
        token: str | None,
        *,
        apify: ApifyConfig | None = None,
        client: ApifyClient | None = None,
        transcriber: VideoTranscriber | None = None,
        fallback_to_mock: bool = True,
        retry: RetryConfig | None = None,
        on_retry: OnRetryFn | None = None,
        sleep_fn: SleepFn | None = None,
        logger: RunLogger | None = None,
    ) -> None:
        self._apify = apify or ApifyConfig()
        self._transcriber = transcriber
        self._fallback_to_mock = bool(fallback_to_mock)
        self._retry = retry or _DEFAULT_APIFY_RETRY
        self._on_retry = on_retry
        self._sleep_fn = sleep_fn
        self._logger = logger

        key = (token or "").strip()
        if client is not None:
            self._client: ApifyClient | None = client
        elif key:
            # Client-level retries are off so our own policy applies uniformly.
            self._client = ApifyClient(token=key, max_retries=0)
        else:
            self._client = None

    def fetch_post(self, url: str, *, on_progress: ProgressFn | None = None) -> Post:
        self._progress(on_progress, "Validating Instagram URL", 5)
        if not is_valid_instagram_url(url):
            raise AnalysisInputError(
                "Invalid Instagram URL provided. Please provide a valid Instagram post or reel URL."
            )

        if self._client is None:
            self._log("WARN", "apify_token_missing_using_mock", url=url)
            return mock_post()

        self._progress(on_progress, "Fetching Instagram post data", 10)
        try:
            item = self.fetch_item(url)
        except ApifyError as e:
            if not self._fallback_to_mock:
                raise
            if self._logger is not None:
                self._logger.exception("apify_fetch_failed_using_mock", exc=e, url=url)
            return mock_post()

        post = post_from_apify_item(item)

        if post.media_type == "video" and post.media_url and self._transcriber is not None:
            self._progress(on_progress, "Transcribing video audio", 25)
            post = self._with_transcript(post)

        self._progress(on_progress, "Post data ready", 40)
        return post

    def fetch_item(self, url: str) -> dict[str, Any]:
        """Run the actor for one URL and return its first dataset item."""
        actor = self._apify.actor
        run_input: dict[str, Any] = {
            "directUrls": [url.strip()],
            "resultsType": "posts",
            "resultsLimit": 1,
            "addParentData": False,
        }

        def _do_call() -> Any:
            return self._client.actor(actor).call(  # type: ignore[union-attr]
                run_input=run_input,
                timeout_secs=self._apify.timeout_secs,
            )

        try:
            result = call_with_retries(
                _do_call,
                cfg=self._retry,
                is_retryable=is_retryable_apify_exception,
                operation=f"apify.actor.call:{actor}:directUrls",
                on_retry=self._on_retry or self._log_retry,
                sleep_fn=self._sleep_fn,
                context_url=url,
            )
        except Exception as e:
            raise ApifyError(translate_apify_error(e)) from e

        if result is None:
            raise ApifyError(f"Apify Actor run failed ({actor})")

        dataset_id = (result.get("defaultDatasetId") or "").strip()
        if not dataset_id:
            raise ApifyError(f"Apify Actor run response missing default dataset id: {result}")

        def _do_fetch() -> list[dict[str, Any]]:
            return list(self._client.dataset(dataset_id).iterate_items(limit=1, clean=True))  # type: ignore[union-attr]

        try:
            items = call_with_retries(
                _do_fetch,
                cfg=self._retry,
                is_retryable=is_retryable_apify_exception,
                operation=f"apify.dataset.iterate_items:{dataset_id}",
                on_retry=self._on_retry or self._log_retry,
                sleep_fn=self._sleep_fn,
                context_url=url,
            )
        except Exception as e:
            raise ApifyError(translate_apify_error(e)) from e

        if not items:
            raise ApifyError(
                "No data found for the provided Instagram URL. "
                "The post might be private or the URL might be invalid."
            )
        return items[0]

    def _with_transcript(self, post: Post) -> Post:
        assert self._transcriber is not None
        try:
            result = self._transcriber.transcribe(post.media_url)
        except TranscriptionError as e:
            if self._logger is not None:
                self._logger.exception("video_transcription_failed", exc=e, url=post.media_url)
            placeholder = (
                DOWNLOAD_BLOCKED_TRANSCRIPT if "download" in str(e).casefold() else TRANSCRIPTION_FAILED_TRANSCRIPT
            )
            return dataclasses.replace(post, transcript=placeholder)

        return dataclasses.replace(
            post,
            transcript=result.text,
            timestamped_transcript=result.timestamped_transcript,
        )

    def _log_retry(self, event: RetryEvent) -> None:
        self._log(
            "WARN",
            "apify_retry_scheduled",
            url=event.context_url,
            operation=event.operation,
            failure_attempt=event.failure_attempt,
            delay_seconds=round(event.delay_seconds, 3),
            reason=event.reason,
        )

    def _progress(self, on_progress: ProgressFn | None, message: str, percent: int) -> None:
        if on_progress is None:
            return
        try:
            on_progress(message, percent)
        except Exception as e:
            self._log("WARN", "progress_callback_failed", message=message, error=str(e))

    def _log(self, level: str, event: str, *, url: str | None = None, **data: Any) -> None:
        if self._logger is not None:
            self._logger.log(level, event, url=url, **data)
