"""Timing and progress reporting for optimization runs."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, "float | None"], Awaitable[None]]


class Timer:
    """Wall-clock duration of one scoring or rewrite pass.

    With a label, the duration is logged at debug level on exit, failed
    passes included.
    """

    def __init__(self, label: str | None = None) -> None:
        self.label = label
        self.started_at = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self.started_at = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self.started_at) * 1000.0
        if self.label:
            outcome = "failed" if exc_type is not None else "done"
            logger.debug("%s %s in %.0fms", self.label, outcome, self.elapsed_ms)


class ProgressReporter:
    """Forwards checkpoints to an optional caller sink.

    Percentages never go backwards and stay within [0, 100]. A failing sink is
    logged and otherwise ignored so it cannot abort the run.
    """

    def __init__(self, sink: ProgressCallback | None = None) -> None:
        self._sink = sink
        self.last_percent = 0.0
        self.checkpoints: list[tuple[str, float]] = []

    async def report(self, message: str, percent: float | None = None) -> None:
        if percent is not None:
            percent = min(100.0, max(self.last_percent, percent))
            self.last_percent = percent
        self.checkpoints.append((message, self.last_percent))
        logger.debug("Progress: %s (%s%%)", message, percent)

        if self._sink is None:
            return
        try:
            await self._sink(message, percent)
        except Exception as exc:
            logger.warning("Progress callback failed: %s", exc)


def iteration_percent(iteration: int, max_iterations: int, offset: float = 0.0) -> float:
    """Progress inside the rewrite loop, which owns the 15-85% band."""
    raw = 15.0 + ((iteration - 1 + offset) / max_iterations) * 70.0
    return max(15.0, min(85.0, raw))
