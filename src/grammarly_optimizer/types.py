"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class ScorePair:
    """AI-likelihood and plagiarism percentages from one scoring pass."""

    ai_percent: float | None = None
    plagiarism_percent: float | None = None

    def __post_init__(self) -> None:
        for name in ("ai_percent", "plagiarism_percent"):
            value = getattr(self, name)
            if value is not None and not 0.0 <= value <= 100.0:
                raise ValueError(f"{name} must be within [0, 100], got {value}")

    @property
    def is_empty(self) -> bool:
        return self.ai_percent is None and self.plagiarism_percent is None


@dataclass(slots=True)
class ScoreResult:
    """What a provider returns for one measurement."""

    scores: ScorePair
    notes: str = ""
    live_url: str | None = None


@dataclass(slots=True)
class SessionHandle:
    """Opaque browser session owned by one provider instance."""

    session_id: str
    live_url: str | None = None
    context_id: str | None = None


@dataclass(slots=True)
class IterationRecord:
    """One audit-trail entry; iteration 0 is the baseline."""

    iteration: int
    scores: ScorePair
    note: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "iteration": self.iteration,
            "ai_detection_percent": self.scores.ai_percent,
            "plagiarism_percent": self.scores.plagiarism_percent,
            "note": self.note,
        }


@dataclass(slots=True)
class RewriteRequest:
    original_text: str
    last_scores: ScorePair
    max_ai_percent: float
    max_plagiarism_percent: float
    tone: str
    max_iterations: int
    domain_hint: str | None = None
    custom_instructions: str | None = None


@dataclass(slots=True)
class RewriteResult:
    rewritten_text: str
    reasoning: str


@dataclass(slots=True)
class SummaryRequest:
    mode: str
    iterations_used: int
    thresholds_met: bool
    history: list[IterationRecord]
    final_text: str
    max_ai_percent: float
    max_plagiarism_percent: float


@dataclass(slots=True)
class OptimizationResult:
    """Terminal output of a run."""

    final_text: str
    scores: ScorePair
    iterations_used: int
    thresholds_met: bool
    history: list[IterationRecord] = field(default_factory=list)
    notes: str = ""
    live_url: str | None = None
    provider: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "final_text": self.final_text,
            "ai_detection_percent": self.scores.ai_percent,
            "plagiarism_percent": self.scores.plagiarism_percent,
            "iterations_used": self.iterations_used,
            "thresholds_met": self.thresholds_met,
            "history": [record.to_dict() for record in self.history],
            "notes": self.notes,
            "live_url": self.live_url,
            "provider": self.provider,
        }
