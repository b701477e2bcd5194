from __future__ import annotations

import re

_NON_KEYWORD_CHARS_RE = re.compile(r"[^\w#]", re.ASCII)

STOP_WORDS: frozenset[str] = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
        "should", "must", "have", "has", "is", "are", "be", "been", "being", "will", "would",
        "above", "fold", "first", "seconds", "mention", "mentions", "says", "said", "caption",
        "description", "text", "hashtag", "audio", "video", "beginning", "contains", "includes",
    }
)


def extract_keywords(text: str) -> list[str]:
    """
    Reduce a free-text requirement to its significant lower-cased tokens.

    Tokens keep ASCII word characters and '#', and must be longer than two characters.
    """
    out: list[str] = []
    for raw in (text or "").lower().split():
        word = _NON_KEYWORD_CHARS_RE.sub("", raw)
        if len(word) <= 2 or word in STOP_WORDS:
            continue
        out.append(word)
    return out
