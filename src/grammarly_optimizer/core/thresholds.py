"""Threshold verdicts over partially available scores."""

from __future__ import annotations

import logging

from grammarly_optimizer.types import ScorePair

logger = logging.getLogger(__name__)


def thresholds_met(
    scores: ScorePair,
    max_ai_percent: float,
    max_plagiarism_percent: float,
) -> bool:
    """Return whether the scores sit at or under both ceilings.

    A missing score passes its own ceiling, but at least one score must be
    present: with no evidence at all the verdict is always False.
    """
    if scores.is_empty:
        logger.warning("Cannot verify thresholds: both scores unavailable")
        return False

    ai_ok = scores.ai_percent is None or scores.ai_percent <= max_ai_percent
    plagiarism_ok = (
        scores.plagiarism_percent is None
        or scores.plagiarism_percent <= max_plagiarism_percent
    )
    return ai_ok and plagiarism_ok
