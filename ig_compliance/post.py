from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping, Sequence

MediaType = Literal["video", "image"]


@dataclass(frozen=True)
class Word:
    word: str
    start: float
    end: float


@dataclass(frozen=True)
class Segment:
    """A contiguous span of transcribed speech, times in seconds."""

    text: str
    start: float
    end: float
    words: Sequence[Word] | None = None


@dataclass(frozen=True)
class TimestampedTranscript:
    text: str
    segments: Sequence[Segment] = ()


@dataclass(frozen=True)
class Post:
    """
    Post content as analyzed for compliance.

    Image posts carry an empty transcript and no timestamped transcript.
    """

    caption: str = ""
    media_type: MediaType = "image"
    media_url: str = ""
    transcript: str = ""
    hashtags: Sequence[str] = ()
    alt_text: str = ""
    timestamped_transcript: TimestampedTranscript | None = None


def _float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _segment_from_mapping(data: Mapping[str, Any]) -> Segment:
    words_raw = data.get("words")
    words: tuple[Word, ...] | None = None
    if isinstance(words_raw, list):
        words = tuple(
            Word(
                word=str(w.get("word") or ""),
                start=_float(w.get("start")),
                end=_float(w.get("end")),
            )
            for w in words_raw
            if isinstance(w, Mapping)
        )
    return Segment(
        text=str(data.get("text") or ""),
        start=_float(data.get("start")),
        end=_float(data.get("end")),
        words=words,
    )


def timestamped_transcript_from_mapping(data: Mapping[str, Any]) -> TimestampedTranscript:
    segments_raw = data.get("segments") or []
    segments = tuple(
        _segment_from_mapping(seg) for seg in segments_raw if isinstance(seg, Mapping)
    )
    return TimestampedTranscript(text=str(data.get("text") or ""), segments=segments)


def post_from_mapping(data: Mapping[str, Any]) -> Post:
    """
    Build a Post from a camelCase JSON object (as produced by the fetch layer).

    Unknown keys are ignored. Image posts never keep transcript data.
    """
    media_type: MediaType = "video" if str(data.get("mediaType") or "").strip() == "video" else "image"

    hashtags_raw = data.get("hashtags") or []
    hashtags = tuple(
        str(tag).strip().lstrip("#") for tag in hashtags_raw if str(tag or "").strip()
    )

    transcript = str(data.get("transcript") or "") if media_type == "video" else ""

    timestamped: TimestampedTranscript | None = None
    ts_raw = data.get("timestampedTranscript")
    if media_type == "video" and isinstance(ts_raw, Mapping):
        timestamped = timestamped_transcript_from_mapping(ts_raw)

    return Post(
        caption=str(data.get("caption") or ""),
        media_type=media_type,
        media_url=str(data.get("mediaUrl") or ""),
        transcript=transcript,
        hashtags=hashtags,
        alt_text=str(data.get("altText") or ""),
        timestamped_transcript=timestamped,
    )
