from __future__ import annotations

from typing import Any, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


ANALYSIS_SCHEMA_NAME = "instagram_compliance_analysis"

# NOTE: Hand-authored to stay within the JSON Schema subset accepted by Structured
# Outputs; the confidence range is enforced by the pydantic models below instead.
ANALYSIS_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "results": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "requirement": {"type": "string"},
                    "passed": {"type": "boolean"},
                    "explanation": {"type": "string"},
                    "confidence": {"type": "number"},
                    "evidence": {"type": "array", "items": {"type": "string"}},
                    "reasoning": {"type": "string"},
                },
                "required": [
                    "requirement",
                    "passed",
                    "explanation",
                    "confidence",
                    "evidence",
                    "reasoning",
                ],
            },
        },
        "overallAssessment": {"type": "string"},
    },
    "required": ["results", "overallAssessment"],
}


class _Model(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class AnalysisResult(_Model):
    requirement: str
    passed: bool
    explanation: str


class AIAnalysisResult(AnalysisResult):
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: list[str]
    reasoning: str


class AnalysisReport(_Model):
    results: list[AnalysisResult]
    overall_score: int = Field(ge=0, le=100)


class AIAnalysisReport(_Model):
    results: list[AIAnalysisResult]
    overall_score: int = Field(ge=0, le=100)
    ai_powered: bool
    processing_time: int = Field(ge=0, description="Elapsed milliseconds since the call started.")
    model: str


class AnalysisResponse(_Model):
    """Structured output returned by the model."""

    results: list[AIAnalysisResult]
    overall_assessment: str


def overall_score(results: Sequence[AnalysisResult]) -> int:
    """Percentage of passed results, rounded half up; 0 for an empty list."""
    total = len(results)
    if total == 0:
        return 0
    passed = sum(1 for r in results if r.passed)
    # Half-up rounding: round() would send 12.5 down to 12.
    return int((100 * passed) / total + 0.5)
