"""Structured-output schemas the automation backends extract into."""

from __future__ import annotations

from pydantic import BaseModel, Field

from grammarly_optimizer.types import ScorePair


class ScoreExtraction(BaseModel):
    """Grammarly AI-detection and plagiarism readings."""

    aiDetectionPercent: float | None = Field(
        default=None,
        ge=0,
        le=100,
        description=(
            "AI-generated content percentage (0-100) shown by Grammarly's AI Detector. "
            "Null if the feature is unavailable or not visible."
        ),
    )
    plagiarismPercent: float | None = Field(
        default=None,
        ge=0,
        le=100,
        description=(
            "Plagiarism percentage (0-100) from Grammarly's Plagiarism Checker. "
            "Null if the feature is unavailable or not visible."
        ),
    )
    overallScore: float | None = Field(
        default=None,
        ge=0,
        le=100,
        description="Overall Grammarly performance score if visible. Optional.",
    )
    notes: str = Field(
        default="",
        description=(
            "Brief observations about what was visible in the UI, including "
            "warnings, loading states, or issues encountered."
        ),
    )

    def to_score_pair(self) -> ScorePair:
        return ScorePair(
            ai_percent=self.aiDetectionPercent,
            plagiarism_percent=self.plagiarismPercent,
        )
