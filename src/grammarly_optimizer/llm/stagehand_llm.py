"""Model selection for Stagehand's own observe/act/extract calls."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from grammarly_optimizer.config import AppSettings

logger = logging.getLogger(__name__)

StagehandLlmProvider = Literal["explicit", "openai", "google", "anthropic", "default"]

GOOGLE_STAGEHAND_MODEL = "google/gemini-2.5-flash"
ANTHROPIC_STAGEHAND_MODEL = "anthropic/claude-sonnet-4-20250514"


@dataclass(frozen=True, slots=True)
class StagehandLlm:
    provider: StagehandLlmProvider
    model_name: str
    model_api_key: str | None


def detect_stagehand_llm(settings: AppSettings) -> StagehandLlm:
    """Pick Stagehand's model from whichever credential is configured.

    An explicit `STAGEHAND_MODEL_API_KEY` wins. Otherwise OpenAI, then
    Google, then Anthropic (the Claude key). With none of them set, the
    configured model name is passed without a key and Stagehand falls back
    to its own environment lookup.
    """
    if settings.stagehand_model_api_key:
        choice = StagehandLlm("explicit", settings.stagehand_model, settings.stagehand_model_api_key)
    elif settings.openai_api_key:
        choice = StagehandLlm("openai", settings.stagehand_model, settings.openai_api_key)
    elif settings.google_api_key:
        choice = StagehandLlm("google", GOOGLE_STAGEHAND_MODEL, settings.google_api_key)
    elif settings.claude_api_key:
        choice = StagehandLlm("anthropic", ANTHROPIC_STAGEHAND_MODEL, settings.claude_api_key)
    else:
        choice = StagehandLlm("default", settings.stagehand_model, None)

    logger.debug("Stagehand LLM: provider=%s model=%s", choice.provider, choice.model_name)
    return choice
