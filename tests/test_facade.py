from __future__ import annotations

import unittest

from ig_compliance.ai_analyzer import AIAnalyzer
from ig_compliance.analysis_schema import AIAnalysisResult, AnalysisResponse
from ig_compliance.errors import AnalysisInputError, ConfigError
from ig_compliance.facade import (
    RULE_BASED_CONFIDENCE,
    RULE_BASED_MODEL,
    RULE_BASED_REASONING,
    AnalysisFacade,
    parse_requirements,
)
from ig_compliance.post import Post


class _FakeModel:
    model = "gpt-test"

    def __init__(self) -> None:
        self.calls = 0

    def chat_complete(self, system_prompt: str, user_prompt: str, *, on_retry: object = None) -> AnalysisResponse:
        self.calls += 1
        return AnalysisResponse(
            results=[
                AIAnalysisResult(
                    requirement="Must include #ad hashtag",
                    passed=True,
                    explanation="Found.",
                    confidence=1.0,
                    evidence=["#ad"],
                    reasoning="Explicit tag.",
                )
            ],
            overall_assessment="Compliant.",
        )


_POST = Post(
    caption="#ad This is a sponsored post about fitness.",
    media_type="video",
    transcript="In this video, I mention my partnership with the brand.",
    hashtags=("ad", "sponsored", "fitness"),
)


class TestParseRequirements(unittest.TestCase):
    def test_splits_lines_and_drops_blanks(self) -> None:
        text = "  Must include #ad hashtag \n\n   \nMust mention partnership in audio\r\n"

        self.assertEqual(
            parse_requirements(text),
            ["Must include #ad hashtag", "Must mention partnership in audio"],
        )

    def test_accepts_sequences(self) -> None:
        self.assertEqual(parse_requirements([" a ", "", "b"]), ["a", "b"])

    def test_nothing_left_is_an_error(self) -> None:
        with self.assertRaises(AnalysisInputError):
            parse_requirements(" \n \n")
        with self.assertRaises(AnalysisInputError):
            parse_requirements([])


class TestAnalysisFacade(unittest.TestCase):
    def test_rule_based_path_uses_ai_report_shape(self) -> None:
        facade = AnalysisFacade()

        report = facade.analyze(
            _POST,
            "Must include #ad hashtag\nMust mention partnership in audio\nMust include nonexistent term",
            use_ai=False,
        )

        self.assertFalse(report.ai_powered)
        self.assertEqual(report.model, RULE_BASED_MODEL)
        self.assertEqual(report.overall_score, 67)
        self.assertGreaterEqual(report.processing_time, 0)
        for r in report.results:
            self.assertEqual(r.confidence, RULE_BASED_CONFIDENCE)
            self.assertEqual(r.reasoning, RULE_BASED_REASONING)
            self.assertEqual(r.evidence, [])

    def test_serializes_with_camel_case_keys(self) -> None:
        report = AnalysisFacade().analyze(_POST, ["Must include #ad hashtag"], use_ai=False)

        payload = report.model_dump(mode="json", by_alias=True)

        self.assertEqual(
            set(payload),
            {"results", "overallScore", "aiPowered", "processingTime", "model"},
        )
        self.assertEqual(payload["overallScore"], 100)

    def test_ai_path_delegates(self) -> None:
        model = _FakeModel()
        facade = AnalysisFacade(ai_analyzer=AIAnalyzer(model))

        report = facade.analyze(_POST, "Must include #ad hashtag")

        self.assertTrue(report.ai_powered)
        self.assertEqual(report.model, "gpt-test")
        self.assertEqual(model.calls, 1)

    def test_ai_requested_without_analyzer(self) -> None:
        with self.assertRaises(ConfigError):
            AnalysisFacade().analyze(_POST, "Must include #ad hashtag", use_ai=True)


if __name__ == "__main__":
    unittest.main()
