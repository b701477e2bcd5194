from __future__ import annotations

import re
import unittest

from ig_compliance.post import Post, Segment, TimestampedTranscript
from ig_compliance.prompts import build_system_prompt, build_user_prompt, format_time

_TIMESTAMP_LINE_RE = re.compile(r"^\[\d{2}:\d{2}-\d{2}:\d{2}\]: ", re.MULTILINE)


class TestFormatTime(unittest.TestCase):
    def test_formats_minutes_and_seconds(self) -> None:
        self.assertEqual(format_time(0), "00:00")
        self.assertEqual(format_time(75), "01:15")
        self.assertEqual(format_time(9.9), "00:09")

    def test_minutes_are_not_wrapped(self) -> None:
        self.assertEqual(format_time(3661), "61:01")

    def test_non_finite_and_negative_clamp_to_zero(self) -> None:
        self.assertEqual(format_time(float("inf")), "00:00")
        self.assertEqual(format_time(float("nan")), "00:00")
        self.assertEqual(format_time(-5), "00:00")


class TestBuildUserPrompt(unittest.TestCase):
    def test_image_post_has_no_transcript(self) -> None:
        post = Post(caption="Nice view", media_type="image", hashtags=("travel",))

        prompt = build_user_prompt(post, ["Must include #ad"])

        self.assertIn("TRANSCRIPT: Not applicable for image content", prompt)
        self.assertNotIn("TRANSCRIPT (with timestamps)", prompt)
        self.assertIn("**MEDIA TYPE:** image", prompt)

    def test_video_with_segments_lists_each_segment(self) -> None:
        post = Post(
            caption="Watch this",
            media_type="video",
            transcript="Hello everyone. Use code SAVE20.",
            timestamped_transcript=TimestampedTranscript(
                text="Hello everyone. Use code SAVE20.",
                segments=(
                    Segment(text=" Hello everyone.", start=0.0, end=4.5),
                    Segment(text="Use code SAVE20.", start=75.0, end=80.2),
                ),
            ),
        )

        prompt = build_user_prompt(post, ["Mention the code in the first 10 seconds"])

        self.assertIn("TRANSCRIPT (with timestamps)", prompt)
        self.assertIn("[00:00-00:04]: Hello everyone.", prompt)
        self.assertIn("[01:15-01:20]: Use code SAVE20.", prompt)
        self.assertEqual(len(_TIMESTAMP_LINE_RE.findall(prompt)), 2)
        self.assertIn("**Full transcript text:** Hello everyone. Use code SAVE20.", prompt)
        self.assertIn("segment timestamps", prompt)

    def test_video_without_segments_uses_plain_transcript(self) -> None:
        post = Post(caption="Watch this", media_type="video", transcript="I love this brand")

        prompt = build_user_prompt(post, ["Mention brand"])

        self.assertIn("I love this brand", prompt)
        self.assertNotIn("[", prompt.split("**REQUIREMENTS TO CHECK:**")[0])
        self.assertIsNone(re.search(r"\[\d{2}:\d{2}", prompt))
        self.assertNotIn("TRANSCRIPT (with timestamps)", prompt)

    def test_empty_segments_fall_back_to_plain_transcript(self) -> None:
        post = Post(
            media_type="video",
            transcript="plain words",
            timestamped_transcript=TimestampedTranscript(text="plain words", segments=()),
        )

        prompt = build_user_prompt(post, ["x"])

        self.assertIn("**TRANSCRIPT:**\nplain words", prompt)
        self.assertNotIn("TRANSCRIPT (with timestamps)", prompt)

    def test_placeholders_for_missing_content(self) -> None:
        prompt = build_user_prompt(Post(media_type="video"), ["x"])

        self.assertIn("No caption provided", prompt)
        self.assertIn("No hashtags found", prompt)
        self.assertIn("No alt text available", prompt)
        self.assertIn("No transcript available", prompt)

    def test_requirements_are_numbered_in_order(self) -> None:
        post = Post(caption="c", hashtags=("ad", "sponsored"))

        prompt = build_user_prompt(post, ["First thing", "Second thing"])

        self.assertIn("#ad #sponsored", prompt)
        self.assertIn("1. First thing\n2. Second thing", prompt)

    def test_system_prompt_describes_output(self) -> None:
        system = build_system_prompt()

        self.assertIn("compliance", system)
        self.assertIn("JSON", system)
        self.assertIn("Confidence score (0.0-1.0)", system)


if __name__ == "__main__":
    unittest.main()
