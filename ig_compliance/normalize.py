from __future__ import annotations

from typing import Any, Mapping

from .post import MediaType, Post


def _coerce_str(value: Any) -> str | None:
    if isinstance(value, str):
        s = value.strip()
        return s if s else None
    return None


def _coerce_str_list(value: Any, *, strip_prefix: str | None = None) -> list[str]:
    def _norm(item: str) -> str | None:
        s = (item or "").strip()
        if not s:
            return None
        if strip_prefix and s.startswith(strip_prefix):
            s = s[len(strip_prefix) :].strip()
        return s or None

    if isinstance(value, str):
        normed = _norm(value)
        return [normed] if normed else []

    out: list[str] = []
    if isinstance(value, list):
        for item in value:
            if isinstance(item, str):
                normed = _norm(item)
                if normed:
                    out.append(normed)
    return out


def _dedupe_terms(values: list[str]) -> tuple[str, ...]:
    out: list[str] = []
    seen: set[str] = set()
    for term in values:
        key = term.casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(term)
    return tuple(out)


def media_type_of(item: Mapping[str, Any]) -> MediaType:
    if _coerce_str(item.get("type")) == "Video" or _coerce_str(item.get("videoUrl")):
        return "video"
    return "image"


def post_from_apify_item(item: Mapping[str, Any]) -> Post:
    """
    Map an Instagram Scraper dataset item to a Post without transcript data.

    Video media URL prefers videoUrl, image media URL prefers imageUrl; both fall
    back to displayUrl and then the post url.
    """
    media_type = media_type_of(item)

    primary_url = item.get("videoUrl") if media_type == "video" else item.get("imageUrl")
    media_url = (
        _coerce_str(primary_url)
        or _coerce_str(item.get("displayUrl"))
        or _coerce_str(item.get("url"))
        or ""
    )

    hashtags = _coerce_str_list(item.get("hashtags"), strip_prefix="#")
    if not hashtags:
        hashtags = _coerce_str_list(item.get("hashTags"), strip_prefix="#")

    alt = (
        _coerce_str(item.get("alt"))
        or _coerce_str(item.get("accessibilityCaption"))
        or _coerce_str(item.get("accessibility_caption"))
        or ""
    )

    caption = item.get("caption")
    return Post(
        caption=caption if isinstance(caption, str) else "",
        media_type=media_type,
        media_url=media_url,
        transcript="",
        hashtags=_dedupe_terms(hashtags),
        alt_text=alt,
    )
