"""Claude-backed rewrite, analysis and summary collaborator."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel, Field

from grammarly_optimizer.config import AppSettings
from grammarly_optimizer.errors import CollaboratorError
from grammarly_optimizer.types import RewriteRequest, RewriteResult, ScorePair, SummaryRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")

CLAUDE_MODELS = {
    "sonnet": "claude-sonnet-4-5-20250929",
    "opus": "claude-opus-4-5-20251101",
}

_REWRITE_SYSTEM_PROMPT = """
You are an expert human-writing optimizer.
You rewrite text so that:
- It reads as naturally human as possible.
- It avoids obvious AI-writing patterns: template-like phrasing, overuse of buzzwords,
  repetitive sentence openings, or exaggerated enthusiasm.
- It preserves all important factual content and structure.
- It avoids copying long phrases from common AI models or from Grammarly's own rewrite style.

Do NOT:
- Add citations or references that do not exist in the original.
- Fabricate sources or numeric data.
- Change code blocks, inline code, or math expressions other than trivial formatting.

When you rewrite:
- Prefer varied sentence lengths.
- Occasionally use short, direct sentences.
- Remove filler phrases like 'in today's world', 'in conclusion', and similar cliches,
  unless they are essential to the content.

Return strictly in the schema you were given.
""".strip()

_ANALYSIS_SYSTEM_PROMPT = """
You are analyzing a piece of text for the risk of being flagged by Grammarly's AI Detector
and Plagiarism Checker.

Tasks:
1. Briefly assess how likely this text is to be flagged as AI-generated by a typical detector.
2. Briefly assess plagiarism risk given the score (if available).
3. Suggest 3-5 specific, concrete changes that would make the text feel more human-written
   while preserving the meaning.
4. Call out any obviously AI-ish phrases or structures to avoid.

Respond with a few short paragraphs and bullet points, suitable for showing directly to a user.
""".strip()

_SUMMARY_SYSTEM_PROMPT = """
You are summarizing the outcome of a Grammarly-based AI detection and plagiarism optimization run.

Produce a short summary with:
- A one-line verdict of how safe the text is with respect to AI and plagiarism detection.
- A bullet list of the most important changes made across iterations.
- A note if scores are missing or thresholds were not met.

Keep the response under 250 words.
""".strip()

REWRITE_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", _REWRITE_SYSTEM_PROMPT),
        (
            "human",
            "Context:\n{domain}{last_ai}\n{last_plagiarism}\n{targets}.\n\n"
            "{tone}\n{custom}\n\nOriginal text:\n-----\n{text}\n-----",
        ),
    ]
)

ANALYSIS_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", _ANALYSIS_SYSTEM_PROMPT),
        (
            "human",
            "{ai}\n{plagiarism}\n{targets}.\n{domain}\nDesired tone: {tone}.\n\n"
            "Text to analyze:\n-----\n{text}\n-----",
        ),
    ]
)

SUMMARY_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", _SUMMARY_SYSTEM_PROMPT),
        (
            "human",
            "Mode: {mode}\n"
            "Iterations used (excluding initial scoring at iteration 0): {iterations}\n"
            "Thresholds met: {met}\n"
            "Targets: AI <= {max_ai}%, plagiarism <= {max_plagiarism}%\n\n"
            "History entries:\n{history}\n\n"
            "Final text (for context only, do not quote large passages):\n-----\n{text}\n-----",
        ),
    ]
)


class RewriteOutput(BaseModel):
    rewrittenText: str = Field(description="The full rewritten text.")
    reasoning: str = Field(
        description=(
            "Short explanation of modifications and strategies used to reduce "
            "AI and plagiarism scores."
        )
    )


class AnalysisOutput(BaseModel):
    analysis: str = Field(
        description=(
            "Concise analysis of AI detection and plagiarism risk and suggestions "
            "for improvement."
        )
    )


def choose_claude_model(text_length: int, max_iterations: int) -> str:
    """Pick opus for long texts or heavy rewrite loops, sonnet otherwise."""
    if text_length > 12000 or max_iterations > 8:
        return "opus"
    return "sonnet"


def _create_llm(model: str, settings: AppSettings) -> Any:
    from langchain_anthropic import ChatAnthropic

    kwargs: dict[str, Any] = {
        "model": CLAUDE_MODELS[model],
        "max_tokens": 8192,
        "timeout": settings.claude_request_timeout_ms / 1000.0,
    }
    if settings.claude_api_key:
        kwargs["api_key"] = settings.claude_api_key
    return ChatAnthropic(**kwargs)


class ClaudeTextCollaborator:
    """Implements the text collaborator contract on top of LangChain's Anthropic chat model."""

    def __init__(
        self,
        settings: AppSettings,
        *,
        llm_factory: Callable[[str, AppSettings], Any] | None = None,
    ) -> None:
        self._settings = settings
        self._llm_factory = llm_factory or _create_llm
        if not settings.claude_api_key:
            logger.debug("CLAUDE_API_KEY not set, relying on ANTHROPIC_API_KEY in the environment")

    async def rewrite(self, request: RewriteRequest) -> RewriteResult:
        model = choose_claude_model(len(request.original_text), request.max_iterations)
        messages = REWRITE_PROMPT.format_messages(
            domain=f"Domain: {request.domain_hint.strip()}.\n" if request.domain_hint else "",
            last_ai=_describe_score(
                request.last_scores.ai_percent,
                "The last AI detection score was unavailable.",
                "The last AI detection score from Grammarly was approximately {}%.",
            ),
            last_plagiarism=_describe_score(
                request.last_scores.plagiarism_percent,
                "The last plagiarism / originality score was unavailable.",
                "The last plagiarism score from Grammarly was approximately {}%.",
            ),
            targets=(
                f"Target: AI detection <= {_fmt(request.max_ai_percent)}%, "
                f"Target: plagiarism <= {_fmt(request.max_plagiarism_percent)}%"
            ),
            tone=describe_tone(request.tone),
            custom=(
                f"Additional constraints from the user: {request.custom_instructions.strip()}"
                if request.custom_instructions
                else "No additional custom constraints were provided."
            ),
            text=request.original_text,
        )

        logger.info("Calling Claude for rewrite (model=%s)", model)
        output = await self._call(
            "rewrite",
            lambda: self._llm_factory(model, self._settings)
            .with_structured_output(RewriteOutput)
            .ainvoke(messages),
        )
        return RewriteResult(rewritten_text=output.rewrittenText, reasoning=output.reasoning)

    async def analyze(
        self,
        text: str,
        scores: ScorePair,
        max_ai_percent: float,
        max_plagiarism_percent: float,
        tone: str,
        domain_hint: str | None = None,
    ) -> str:
        model = choose_claude_model(len(text), 1)
        messages = ANALYSIS_PROMPT.format_messages(
            ai=_describe_score(
                scores.ai_percent,
                "Current Grammarly AI detection score is unknown (not available).",
                "Current Grammarly AI detection score is approximately {}%.",
            ),
            plagiarism=_describe_score(
                scores.plagiarism_percent,
                "Current Grammarly plagiarism / originality score is unknown (not available).",
                "Current Grammarly plagiarism / originality score is approximately {}%.",
            ),
            targets=(
                f"Target AI detection <= {_fmt(max_ai_percent)}%, "
                f"Target plagiarism <= {_fmt(max_plagiarism_percent)}%"
            ),
            domain=f"Domain: {domain_hint.strip()}" if domain_hint else "Domain not specified.",
            tone=tone,
            text=text,
        )

        logger.info("Calling Claude for analysis (model=%s)", model)
        output = await self._call(
            "analysis",
            lambda: self._llm_factory(model, self._settings)
            .with_structured_output(AnalysisOutput)
            .ainvoke(messages),
        )
        return output.analysis

    async def summarize(self, request: SummaryRequest) -> str:
        model = choose_claude_model(len(request.final_text), 1)
        messages = SUMMARY_PROMPT.format_messages(
            mode=request.mode,
            iterations=request.iterations_used,
            met=str(request.thresholds_met).lower(),
            max_ai=_fmt(request.max_ai_percent),
            max_plagiarism=_fmt(request.max_plagiarism_percent),
            history=json.dumps([record.to_dict() for record in request.history], indent=2),
            text=request.final_text[:4000],
        )

        logger.debug("Calling Claude for optimization summary (model=%s)", model)
        response = await self._call(
            "optimization summary",
            lambda: self._llm_factory(model, self._settings).ainvoke(messages),
        )
        return _message_text(response)

    async def _call(self, what: str, invoke: Callable[[], Awaitable[T]]) -> T:
        timeout_ms = self._settings.claude_request_timeout_ms
        try:
            return await asyncio.wait_for(invoke(), timeout=timeout_ms / 1000.0)
        except asyncio.TimeoutError as exc:
            logger.error("Claude %s timed out after %dms", what, timeout_ms)
            raise CollaboratorError(
                f"Claude {what} request exceeded timeout of {timeout_ms}ms"
            ) from exc
        except Exception as exc:
            logger.error("Claude %s failed: %s", what, exc)
            raise CollaboratorError(f"Claude {what} failed: {exc}") from exc


def describe_tone(tone: str) -> str:
    if tone == "custom":
        return "Use a natural human tone guided by the custom instructions."
    article = "an" if tone[:1].lower() in "aeiou" else "a"
    return f"Use {article} {tone} tone that feels like a human wrote it."


def _describe_score(value: float | None, missing: str, template: str) -> str:
    return missing if value is None else template.format(_fmt(value))


def _fmt(value: float) -> str:
    return f"{value:g}"


def _message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            elif isinstance(item, str):
                parts.append(item)
        return "".join(parts).strip()
    return str(content)
