"""Grammarly scoring through Stagehand's observe -> act -> extract pattern."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from grammarly_optimizer.browser.provider import GRAMMARLY_URL, ScoreOptions
from grammarly_optimizer.browser.schemas import ScoreExtraction
from grammarly_optimizer.errors import ProviderError

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 8000
SHORT_TEXT_LENGTH = 500

_EXTRACT_INSTRUCTION = """
Look at the Grammarly interface and extract the following information:
1. AI Detection Percentage: the percentage of the text that appears AI-generated (0-100).
   It may be labeled "AI-generated", "Likely AI", "AI content detected", etc.
2. Plagiarism Percentage: the percentage of content matching existing sources (0-100).
   If shown as originality (e.g. "95% original"), convert it to plagiarism (100 - originality).
3. Overall Score: the overall Grammarly performance score if visible (optional).
4. Notes: relevant observations, including features that are unavailable.

If a percentage is not visible or the feature is not available, set it to null.
""".strip()

_FALLBACK_INSTRUCTION = (
    "Extract any visible AI detection or plagiarism scores from the current page. "
    "If none are visible, explain what you see."
)


async def run_stagehand_score_task(
    stagehand: Any,
    text: str,
    options: ScoreOptions | None = None,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ScoreExtraction:
    """Paste `text` into a fresh Grammarly document and read back the scores."""

    options = options or ScoreOptions()
    page = getattr(stagehand, "page", None)
    if page is None:
        raise ProviderError("No page available in Stagehand session")

    truncated = text[:MAX_TEXT_LENGTH]
    logger.debug(
        "Starting Stagehand scoring (length=%d, truncated=%s, iteration=%s, mode=%s)",
        len(text),
        len(text) > MAX_TEXT_LENGTH,
        options.iteration,
        options.mode,
    )

    try:
        if "app.grammarly.com" not in (page.url or ""):
            logger.debug("Navigating to Grammarly")
            await page.goto(GRAMMARLY_URL, wait_until="networkidle")
            await page.wait_for_load_state("domcontentloaded")

        await _observe_then_act(
            page,
            "Find the button or link to create a new document. Look for 'New', "
            "'New document', '+', or similar options in the interface.",
            "Click on 'New' or the button to create a new document in the Grammarly interface",
        )
        await page.wait_for_load_state("domcontentloaded")
        await sleep(1.5)

        await page.act("Click on the main text editor area to focus it")
        await page.act("Select all text in the editor using Ctrl+A or Cmd+A")
        if len(truncated) <= SHORT_TEXT_LENGTH:
            await page.act(f"Type the following text exactly: {truncated}")
        else:
            await page.locator('[contenteditable="true"]').fill(truncated)
        await sleep(1.0)

        await _observe_then_act(
            page,
            "Find the button or option to check for AI-generated text or plagiarism. "
            "Look for 'AI', 'AI Detection', 'Plagiarism', 'Check for AI', or similar "
            "options in the sidebar or toolbar.",
            "Open the AI detection panel or click on 'Check for AI text & plagiarism' "
            "in the Grammarly interface",
        )

        try:
            await page.wait_for_load_state("networkidle")
        except Exception:
            logger.debug("Network idle wait timed out, continuing")
        await sleep(4.0)

        result = await _extract(page, _EXTRACT_INSTRUCTION)
    except Exception as exc:
        logger.error("Stagehand Grammarly task failed: %s", exc)
        try:
            fallback = await _extract(page, _FALLBACK_INSTRUCTION)
        except Exception:
            raise exc
        return fallback.model_copy(
            update={"notes": f"Error during task, partial extraction: {fallback.notes}"}
        )

    logger.info(
        "Extracted Grammarly scores (ai=%s, plagiarism=%s, overall=%s)",
        result.aiDetectionPercent,
        result.plagiarismPercent,
        result.overallScore,
    )
    return result


async def _observe_then_act(page: Any, observe: str, fallback_action: str) -> None:
    observed = await page.observe(observe)
    if observed:
        await page.act(observed[0])
    else:
        logger.debug("Nothing observed, acting directly: %s", fallback_action)
        await page.act(fallback_action)


async def _extract(page: Any, instruction: str) -> ScoreExtraction:
    raw = await page.extract(instruction, schema=ScoreExtraction)
    if isinstance(raw, ScoreExtraction):
        return raw
    if isinstance(raw, dict):
        return ScoreExtraction.model_validate(raw)
    return ScoreExtraction.model_validate(raw, from_attributes=True)


async def cleanup_document(stagehand: Any) -> None:
    """Close the scratch document; failures are not significant."""
    try:
        await stagehand.page.act(
            "Delete the current document or close it without saving to clean up"
        )
    except Exception as exc:
        logger.debug("Could not clean up Grammarly document: %s", exc)
