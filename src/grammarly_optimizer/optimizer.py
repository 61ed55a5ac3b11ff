"""Score / analyze / optimize orchestration over a browser provider and Claude."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from grammarly_optimizer.browser.provider import (
    BrowserProvider,
    ScoreOptions,
    SessionOptions,
    create_browser_provider,
)
from grammarly_optimizer.config import AppSettings, OptimizeRequest, OrchestratorConfig
from grammarly_optimizer.core.retry import retry_with_policy
from grammarly_optimizer.core.thresholds import thresholds_met
from grammarly_optimizer.llm.interfaces import TextCollaborator
from grammarly_optimizer.obs.tracing import ProgressCallback, ProgressReporter, Timer, iteration_percent
from grammarly_optimizer.types import (
    IterationRecord,
    OptimizationResult,
    RewriteRequest,
    ScorePair,
    SessionHandle,
    SummaryRequest,
)

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[AppSettings], BrowserProvider]

BASELINE_NOTE = "Baseline Grammarly scores on original text (iteration 0)."
SCORE_ONLY_MET_NOTE = (
    "Score-only run: original text already meets configured AI and plagiarism thresholds."
)
SCORE_ONLY_UNMET_NOTE = (
    "Score-only run: thresholds not met or scores unavailable; no rewriting performed."
)

_PROVIDER_LABELS = {"stagehand": "Stagehand", "browser-use": "Browser Use"}


class OptimizationOrchestrator:
    """Runs one score/analyze/optimize pass over a single browser session.

    The session is always closed before `run` returns or raises. Close
    failures are logged by the provider and never surface to the caller.
    """

    def __init__(
        self,
        settings: AppSettings,
        *,
        collaborator: TextCollaborator | None = None,
        provider_factory: ProviderFactory = create_browser_provider,
        config: OrchestratorConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if collaborator is None:
            from grammarly_optimizer.llm.claude_client import ClaudeTextCollaborator

            collaborator = ClaudeTextCollaborator(settings)
        self.settings = settings
        self.collaborator = collaborator
        self.provider_factory = provider_factory
        self.config = config or OrchestratorConfig()
        self._sleep = sleep

    async def run(
        self,
        request: OptimizeRequest,
        on_progress: ProgressCallback | None = None,
    ) -> OptimizationResult:
        progress = ProgressReporter(on_progress)
        provider: BrowserProvider | None = None
        session: SessionHandle | None = None

        label = _PROVIDER_LABELS.get(self.settings.browser_provider, self.settings.browser_provider)
        await progress.report(f"Creating {label} session...", 5)

        try:
            provider = await retry_with_policy(
                self._build_provider,
                self.config.provider_retry,
                label="createProvider",
                sleep=self._sleep,
            )
            logger.info("Using browser provider: %s", provider.provider_name)

            active = provider
            session = await retry_with_policy(
                lambda: active.create_session(
                    SessionOptions(proxy_country_code=request.proxy_country_code)
                ),
                self.config.session_retry,
                label="createSession",
                sleep=self._sleep,
            )
            logger.info(
                "Browser session %s created (live_url=%s)", session.session_id, session.live_url
            )

            await progress.report("Running initial Grammarly scoring...", 10)
            scores = await self._score(
                active,
                session.session_id,
                request.text,
                request,
                iteration=0,
                flash_mode=request.mode == "score_only",
            )
            history = [IterationRecord(iteration=0, scores=scores, note=BASELINE_NOTE)]

            if request.mode == "score_only":
                return await self._finish_score_only(request, session, active, scores, history, progress)
            if request.mode == "analyze":
                return await self._finish_analyze(request, session, active, scores, history, progress)
            return await self._optimize(request, session, active, scores, history, progress)
        finally:
            if provider is not None and session is not None:
                await self._close(provider, session.session_id)

    async def _build_provider(self) -> BrowserProvider:
        return self.provider_factory(self.settings)

    async def _score(
        self,
        provider: BrowserProvider,
        session_id: str,
        text: str,
        request: OptimizeRequest,
        *,
        iteration: int,
        flash_mode: bool = False,
    ) -> ScorePair:
        options = ScoreOptions(
            max_steps=request.max_steps,
            iteration=iteration,
            mode=request.mode,
            flash_mode=flash_mode,
        )
        label = "initialScore" if iteration == 0 else f"score-iteration-{iteration}"
        with Timer(f"Scoring pass {iteration}"):
            result = await retry_with_policy(
                lambda: provider.score_text(session_id, text, options),
                self.config.scoring_retry,
                label=label,
                sleep=self._sleep,
            )
        return result.scores

    async def _finish_score_only(
        self,
        request: OptimizeRequest,
        session: SessionHandle,
        provider: BrowserProvider,
        scores: ScorePair,
        history: list[IterationRecord],
        progress: ProgressReporter,
    ) -> OptimizationResult:
        met = thresholds_met(scores, request.max_ai_percent, request.max_plagiarism_percent)
        await progress.report("Scoring complete", 100)
        return OptimizationResult(
            final_text=request.text,
            scores=scores,
            iterations_used=0,
            thresholds_met=met,
            history=history,
            notes=SCORE_ONLY_MET_NOTE if met else SCORE_ONLY_UNMET_NOTE,
            live_url=session.live_url,
            provider=provider.provider_name,
        )

    async def _finish_analyze(
        self,
        request: OptimizeRequest,
        session: SessionHandle,
        provider: BrowserProvider,
        scores: ScorePair,
        history: list[IterationRecord],
        progress: ProgressReporter,
    ) -> OptimizationResult:
        await progress.report("Analyzing text with Claude...", 50)
        analysis = await self.collaborator.analyze(
            request.text,
            scores,
            request.max_ai_percent,
            request.max_plagiarism_percent,
            request.tone,
            request.domain_hint,
        )
        met = thresholds_met(scores, request.max_ai_percent, request.max_plagiarism_percent)
        await progress.report("Analysis complete", 100)
        return OptimizationResult(
            final_text=request.text,
            scores=scores,
            iterations_used=0,
            thresholds_met=met,
            history=history,
            notes=analysis,
            live_url=session.live_url,
            provider=provider.provider_name,
        )

    async def _optimize(
        self,
        request: OptimizeRequest,
        session: SessionHandle,
        provider: BrowserProvider,
        scores: ScorePair,
        history: list[IterationRecord],
        progress: ProgressReporter,
    ) -> OptimizationResult:
        await progress.report("Starting optimization loop...", 15)
        logger.info(
            "Starting optimization loop (max_iterations=%d, max_ai=%s, max_plagiarism=%s)",
            request.max_iterations,
            request.max_ai_percent,
            request.max_plagiarism_percent,
        )

        current_text = request.text
        iterations_used = 0
        met = False

        for iteration in range(1, request.max_iterations + 1):
            iterations_used = iteration
            await progress.report(
                f"Iteration {iteration}/{request.max_iterations}: Rewriting with Claude...",
                iteration_percent(iteration, request.max_iterations),
            )
            with Timer(f"Rewrite pass {iteration}"):
                rewrite = await self.collaborator.rewrite(
                    RewriteRequest(
                        original_text=current_text,
                        last_scores=scores,
                        max_ai_percent=request.max_ai_percent,
                        max_plagiarism_percent=request.max_plagiarism_percent,
                        tone=request.tone,
                        max_iterations=request.max_iterations,
                        domain_hint=request.domain_hint,
                        custom_instructions=request.custom_instructions,
                    )
                )
            current_text = rewrite.rewritten_text

            await progress.report(
                f"Iteration {iteration}/{request.max_iterations}: Re-scoring with Grammarly...",
                iteration_percent(iteration, request.max_iterations, offset=0.5),
            )
            scores = await self._score(
                provider, session.session_id, current_text, request, iteration=iteration
            )
            met = thresholds_met(scores, request.max_ai_percent, request.max_plagiarism_percent)
            history.append(IterationRecord(iteration=iteration, scores=scores, note=rewrite.reasoning))

            logger.info(
                "Optimization iteration %d completed (ai=%s, plagiarism=%s, met=%s)",
                iteration,
                scores.ai_percent,
                scores.plagiarism_percent,
                met,
            )
            if met:
                break

        await progress.report("Generating optimization summary...", 92)
        notes = await self.collaborator.summarize(
            SummaryRequest(
                mode=request.mode,
                iterations_used=iterations_used,
                thresholds_met=met,
                history=list(history),
                final_text=current_text,
                max_ai_percent=request.max_ai_percent,
                max_plagiarism_percent=request.max_plagiarism_percent,
            )
        )
        await progress.report("Optimization complete", 100)

        return OptimizationResult(
            final_text=current_text,
            scores=scores,
            iterations_used=iterations_used,
            thresholds_met=met,
            history=history,
            notes=notes,
            live_url=session.live_url,
            provider=provider.provider_name,
        )

    async def _close(self, provider: BrowserProvider, session_id: str) -> None:
        try:
            await provider.close_session(session_id)
            logger.debug("Browser session %s closed", session_id)
        except Exception as exc:
            logger.warning("Failed to close browser session %s: %s", session_id, exc)


async def run_optimization(
    settings: AppSettings,
    request: OptimizeRequest,
    on_progress: ProgressCallback | None = None,
    **dependencies,
) -> OptimizationResult:
    """Convenience entry point: build an orchestrator and run it once."""
    orchestrator = OptimizationOrchestrator(settings, **dependencies)
    return await orchestrator.run(request, on_progress)
