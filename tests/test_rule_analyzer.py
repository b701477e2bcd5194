from __future__ import annotations

import unittest

from ig_compliance.keywords import extract_keywords
from ig_compliance.post import Post
from ig_compliance.rule_analyzer import RuleBasedAnalyzer, analyze_content, check_requirement


def _scenario_post() -> Post:
    return Post(
        caption="#ad This is a sponsored post about fitness.",
        media_type="video",
        transcript="In this video, I mention my partnership with the brand.",
        hashtags=("ad", "sponsored", "fitness"),
    )


class TestExtractKeywords(unittest.TestCase):
    def test_drops_stop_words_and_short_tokens(self) -> None:
        self.assertEqual(extract_keywords("Must include #ad hashtag"), ["include", "#ad"])
        self.assertEqual(extract_keywords("Must mention partnership in audio"), ["partnership"])

    def test_strips_punctuation_but_keeps_hash(self) -> None:
        self.assertEqual(extract_keywords("Code: SAVE20, (required)!"), ["code", "save20", "required"])

    def test_empty_text(self) -> None:
        self.assertEqual(extract_keywords(""), [])
        self.assertEqual(extract_keywords("   "), [])

    def test_hashtags_use_ascii_word_characters(self) -> None:
        self.assertEqual(extract_keywords("#café promo"), ["#caf", "promo"])

        result = check_requirement(Post(caption="Dinner at #caf tonight"), "Must include #café")
        self.assertTrue(result.passed)
        self.assertEqual(result.explanation, "Pass: '#caf' found in the caption.")


class TestRuleBasedAnalyzer(unittest.TestCase):
    def test_scenario_scores_two_of_three(self) -> None:
        report = RuleBasedAnalyzer().analyze(
            _scenario_post(),
            [
                "Must include #ad hashtag",
                "Must mention partnership in audio",
                "Must include nonexistent term",
            ],
        )

        self.assertEqual(len(report.results), 3)
        self.assertEqual([r.passed for r in report.results], [True, True, False])
        self.assertEqual(report.overall_score, 67)
        self.assertTrue(report.results[0].explanation.startswith("Pass:"))
        self.assertTrue(report.results[2].explanation.startswith("Fail:"))

    def test_blank_requirements_are_skipped(self) -> None:
        report = analyze_content(_scenario_post(), ["Valid", "", "   ", "Another"])

        self.assertEqual(len(report.results), 2)
        self.assertEqual([r.requirement for r in report.results], ["Valid", "Another"])

    def test_no_requirements_scores_zero(self) -> None:
        report = analyze_content(_scenario_post(), [])

        self.assertEqual(report.results, [])
        self.assertEqual(report.overall_score, 0)

    def test_hashtag_above_the_fold_depends_on_position(self) -> None:
        req = "#ad must be above the fold"

        early = check_requirement(Post(caption="#ad " + "x" * 200), req)
        self.assertTrue(early.passed)
        self.assertIn("first 150 characters", early.explanation)

        late = check_requirement(Post(caption="x" * 160 + " #ad"), req)
        self.assertFalse(late.passed)

    def test_hashtag_match_is_case_insensitive(self) -> None:
        result = check_requirement(Post(caption="Loving this #AD collab"), "Must include #ad")

        self.assertTrue(result.passed)
        self.assertEqual(result.explanation, "Pass: '#ad' found in the caption.")

    def test_hashtag_without_literal_tag_uses_keywords(self) -> None:
        post = Post(caption="Morning session #fitness")

        self.assertTrue(check_requirement(post, "Needs a fitness hashtag").passed)
        self.assertFalse(check_requirement(post, "Needs a giveaway hashtag").passed)

    def test_above_the_fold_keyword(self) -> None:
        post = Post(caption="Use code SAVE20 at checkout. " + "y" * 300)

        self.assertTrue(check_requirement(post, "Discount code above the fold").passed)
        self.assertFalse(check_requirement(post, "Giveaway at the beginning").passed)

    def test_audio_mention_reads_transcript_only(self) -> None:
        post = Post(caption="partnership", media_type="video", transcript="nothing relevant")

        result = check_requirement(post, "Creator says partnership")

        self.assertFalse(result.passed)
        self.assertEqual(result.explanation, "Fail: Required content not mentioned in the audio/video.")

    def test_first_seconds_limits_to_leading_words(self) -> None:
        req = "Brand name in first 10 seconds"
        early = Post(media_type="video", transcript="brand " + "filler " * 80)
        late = Post(media_type="video", transcript="filler " * 60 + "brand")

        self.assertTrue(check_requirement(early, req).passed)
        self.assertFalse(check_requirement(late, req).passed)

    def test_caption_category(self) -> None:
        post = Post(caption="Link in bio for the giveaway", media_type="video", transcript="giveaway")

        self.assertTrue(check_requirement(post, "Caption includes giveaway").passed)
        self.assertFalse(check_requirement(post, "Caption includes discount").passed)

    def test_general_reports_location(self) -> None:
        post = Post(caption="sponsored content", media_type="video", transcript="this is sponsored")

        both = check_requirement(post, "Sponsored disclosure")
        self.assertTrue(both.passed)
        self.assertEqual(both.explanation, "Pass: Required content found in the caption and audio.")

        audio_only = check_requirement(
            Post(caption="", media_type="video", transcript="sponsored"), "Sponsored disclosure"
        )
        self.assertEqual(audio_only.explanation, "Pass: Required content found in the audio.")

        missing = check_requirement(Post(caption="hello"), "Sponsored disclosure")
        self.assertFalse(missing.passed)
        self.assertEqual(missing.explanation, "Fail: Required content not found in the post.")

    def test_repeated_runs_are_identical(self) -> None:
        analyzer = RuleBasedAnalyzer()
        reqs = ["Must include #ad hashtag", "Must mention partnership in audio", "Anything else"]

        first = analyzer.analyze(_scenario_post(), reqs)
        second = analyzer.analyze(_scenario_post(), reqs)

        self.assertEqual(first.model_dump_json(), second.model_dump_json())


if __name__ == "__main__":
    unittest.main()
