from __future__ import annotations

import math
from typing import Sequence

from .post import Post

SYSTEM_PROMPT = """\
You are an expert Instagram content compliance analyzer specializing in FTC guidelines, sponsored content disclosure, and social media marketing regulations.

Your task is to analyze Instagram posts (captions, transcripts, media) against specific compliance requirements and provide detailed, accurate assessments.

Analysis Guidelines:
- Be precise about disclosure placement and visibility
- Consider Instagram's UI limitations (character limits, "more" button truncating long captions)
- Evaluate both explicit and implicit compliance
- Provide specific evidence from the content
- Consider context and intent, not just keyword matching
- Account for common compliance mistakes and edge cases
- Pay special attention to timing requirements when timestamped transcripts are available

Timestamp Analysis:
- When timestamps are provided, use them to verify timing-based requirements
- "First 10 seconds" means content appearing between [00:00-00:10]
- "At the beginning" typically means within the first 15-20 seconds
- "Above the fold" in video context means visible/audible without user interaction (first 5-10 seconds)
- Be precise about when specific content appears in the video timeline
- Consider that Instagram videos may have brief intro music or logos before the main content

For each requirement, provide:
- Clear pass/fail determination
- Brief explanation of the result
- Confidence score (0.0-1.0) based on evidence clarity
- Specific evidence quotes from the content (include timestamps when relevant)
- Detailed reasoning explaining your decision

When the transcript carries [MM:SS-MM:SS] segment markers, base timing judgments on those markers.

Return a JSON object that matches the provided schema EXACTLY, with one result per requirement in the order given.
"""

NO_TRANSCRIPT = "No transcript available"
IMAGE_TRANSCRIPT_SECTION = "**TRANSCRIPT: Not applicable for image content**"


def format_time(seconds: float) -> str:
    """Render seconds as MM:SS; minutes are not wrapped at 60 (3661 -> '61:01')."""
    total = float(seconds)
    if not math.isfinite(total) or total < 0:
        total = 0.0
    minutes = int(total // 60)
    remainder = int(total % 60)
    return f"{minutes:02d}:{remainder:02d}"


def build_system_prompt() -> str:
    return SYSTEM_PROMPT


def _has_segments(post: Post) -> bool:
    ts = post.timestamped_transcript
    return post.media_type == "video" and ts is not None and bool(ts.segments)


def _transcript_section(post: Post) -> str:
    if post.media_type != "video":
        return IMAGE_TRANSCRIPT_SECTION

    transcript = post.transcript or NO_TRANSCRIPT
    if _has_segments(post):
        assert post.timestamped_transcript is not None
        lines = "\n".join(
            f"[{format_time(seg.start)}-{format_time(seg.end)}]: {seg.text.strip()}"
            for seg in post.timestamped_transcript.segments
        )
        return (
            "**TRANSCRIPT (with timestamps):**\n"
            f"{lines}\n\n"
            f"**Full transcript text:** {transcript}"
        )

    return f"**TRANSCRIPT:**\n{transcript}"


def build_user_prompt(post: Post, requirements: Sequence[str]) -> str:
    hashtags = " ".join(f"#{tag}" for tag in post.hashtags) if post.hashtags else "No hashtags found"
    numbered = "\n".join(f"{i}. {req}" for i, req in enumerate(requirements, start=1))

    sections = [
        f"Analyze this Instagram {post.media_type} post for compliance:",
        f"**CAPTION:**\n{post.caption or 'No caption provided'}",
        f"**HASHTAGS:**\n{hashtags}",
        f"**ALT TEXT (Image Description):**\n{post.alt_text or 'No alt text available'}",
        _transcript_section(post),
        f"**MEDIA TYPE:** {post.media_type}",
        f"**REQUIREMENTS TO CHECK:**\n{numbered}",
    ]

    if _has_segments(post):
        sections.append(
            "IMPORTANT: When analyzing requirements that mention timing (e.g., \"within the "
            "first X seconds\", \"at the beginning\", \"above the fold\"), pay close attention "
            "to the segment timestamps above to determine when specific content appears in "
            "the video."
        )

    sections.append(
        "Please analyze each requirement thoroughly and provide your assessment with evidence "
        "and reasoning. Consider all available content including caption, hashtags, alt text, "
        "and transcript."
    )
    return "\n\n".join(sections)
