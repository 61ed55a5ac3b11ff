"""Collaborator contract for rewriting, analysis and summaries."""

from __future__ import annotations

from typing import Protocol

from grammarly_optimizer.types import RewriteRequest, RewriteResult, ScorePair, SummaryRequest


class TextCollaborator(Protocol):
    """Any backend with these three coroutines can drive the optimizer."""

    async def rewrite(self, request: RewriteRequest) -> RewriteResult:
        """Rewrite the text to move the scores under the ceilings."""
        ...

    async def analyze(
        self,
        text: str,
        scores: ScorePair,
        max_ai_percent: float,
        max_plagiarism_percent: float,
        tone: str,
        domain_hint: str | None = None,
    ) -> str:
        """Explain the detection risk and suggest changes."""
        ...

    async def summarize(self, request: SummaryRequest) -> str:
        """Produce user-facing notes for a finished optimize run."""
        ...
