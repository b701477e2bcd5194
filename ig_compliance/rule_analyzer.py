from __future__ import annotations

import re
from typing import Sequence

from .analysis_schema import AnalysisReport, AnalysisResult, overall_score
from .keywords import extract_keywords
from .post import Post

ABOVE_THE_FOLD_CHAR_LIMIT = 150
# Roughly the number of words spoken in the first 10 seconds.
FIRST_SECONDS_WORD_LIMIT = 50

_HASHTAG_RE = re.compile(r"#\w+", re.ASCII)


def _result(requirement: str, passed: bool, pass_msg: str, fail_msg: str) -> AnalysisResult:
    return AnalysisResult(
        requirement=requirement,
        passed=passed,
        explanation=f"Pass: {pass_msg}" if passed else f"Fail: {fail_msg}",
    )


def _any_keyword_in(keywords: Sequence[str], haystack: str) -> bool:
    return any(k in haystack for k in keywords)


def _mentions_fold(lower_req: str) -> bool:
    return "above the fold" in lower_req or "beginning" in lower_req


def _check_hashtag(caption: str, requirement: str, lower_req: str) -> AnalysisResult:
    lower_caption = caption.lower()
    match = _HASHTAG_RE.search(requirement)

    if match is None:
        keywords = extract_keywords(lower_req)
        found = any(f"#{k}" in lower_caption or k in lower_caption for k in keywords)
        return _result(
            requirement,
            found,
            "Found relevant hashtag content in the caption.",
            "Could not find relevant hashtag content in the caption.",
        )

    hashtag = match.group(0).lower()

    if _mentions_fold(lower_req):
        window = lower_caption[:ABOVE_THE_FOLD_CHAR_LIMIT]
        found = hashtag in window
        return _result(
            requirement,
            found,
            f"'{hashtag}' found in the first {ABOVE_THE_FOLD_CHAR_LIMIT} characters.",
            f"'{hashtag}' not found in the first {ABOVE_THE_FOLD_CHAR_LIMIT} characters.",
        )

    found = hashtag in lower_caption
    return _result(
        requirement,
        found,
        f"'{hashtag}' found in the caption.",
        f"'{hashtag}' not found in the caption.",
    )


def _check_above_fold(caption: str, requirement: str, lower_req: str) -> AnalysisResult:
    window = caption[:ABOVE_THE_FOLD_CHAR_LIMIT].lower()
    found = _any_keyword_in(extract_keywords(lower_req), window)
    return _result(
        requirement,
        found,
        f"Required content found in the first {ABOVE_THE_FOLD_CHAR_LIMIT} characters.",
        f"Required content not found in the first {ABOVE_THE_FOLD_CHAR_LIMIT} characters.",
    )


def _check_transcript(transcript: str, requirement: str, lower_req: str) -> AnalysisResult:
    found = _any_keyword_in(extract_keywords(lower_req), transcript.lower())
    return _result(
        requirement,
        found,
        "Required content mentioned in the audio/video.",
        "Required content not mentioned in the audio/video.",
    )


def _check_first_seconds(transcript: str, requirement: str, lower_req: str) -> AnalysisResult:
    first_words = " ".join(transcript.split()[:FIRST_SECONDS_WORD_LIMIT]).lower()
    found = _any_keyword_in(extract_keywords(lower_req), first_words)
    return _result(
        requirement,
        found,
        "Required content mentioned in the first 10 seconds.",
        "Required content not mentioned in the first 10 seconds.",
    )


def _check_caption(caption: str, requirement: str, lower_req: str) -> AnalysisResult:
    found = _any_keyword_in(extract_keywords(lower_req), caption.lower())
    return _result(
        requirement,
        found,
        "Required content found in the caption.",
        "Required content not found in the caption.",
    )


def _check_general(
    caption: str, transcript: str, requirement: str, lower_req: str
) -> AnalysisResult:
    keywords = extract_keywords(lower_req)
    in_caption = _any_keyword_in(keywords, caption.lower())
    in_transcript = _any_keyword_in(keywords, transcript.lower())

    if in_caption and in_transcript:
        location = "caption and audio"
    elif in_caption:
        location = "caption"
    else:
        location = "audio"

    return _result(
        requirement,
        in_caption or in_transcript,
        f"Required content found in the {location}.",
        "Required content not found in the post.",
    )


def check_requirement(post: Post, requirement: str) -> AnalysisResult:
    """
    Evaluate one trimmed requirement against the post.

    The first matching category wins: hashtag, above the fold, audio mention,
    first seconds, caption, then a general caption-or-audio search.
    """
    lower_req = requirement.lower()
    caption = post.caption or ""
    transcript = post.transcript or ""

    if "#" in lower_req or "hashtag" in lower_req:
        return _check_hashtag(caption, requirement, lower_req)

    if _mentions_fold(lower_req):
        return _check_above_fold(caption, requirement, lower_req)

    if any(term in lower_req for term in ("mention", "says", "audio", "speak")):
        return _check_transcript(transcript, requirement, lower_req)

    if "first" in lower_req and ("second" in lower_req or "10" in lower_req):
        return _check_first_seconds(transcript, requirement, lower_req)

    if any(term in lower_req for term in ("caption", "description", "text")):
        return _check_caption(caption, requirement, lower_req)

    return _check_general(caption, transcript, requirement, lower_req)


def analyze_content(post: Post, requirements: Sequence[str]) -> AnalysisReport:
    results: list[AnalysisResult] = []
    for raw in requirements:
        requirement = (raw or "").strip()
        if not requirement:
            continue
        results.append(check_requirement(post, requirement))

    return AnalysisReport(results=results, overall_score=overall_score(results))


class RuleBasedAnalyzer:
    """Deterministic keyword analyzer; a pure function of (post, requirements)."""

    def analyze(self, post: Post, requirements: Sequence[str]) -> AnalysisReport:
        return analyze_content(post, requirements)
