"""Browser automation provider contract and backend selection."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from grammarly_optimizer.config import AppSettings
from grammarly_optimizer.errors import ConfigurationError
from grammarly_optimizer.types import ScoreResult, SessionHandle

logger = logging.getLogger(__name__)

GRAMMARLY_URL = "https://app.grammarly.com"


@dataclass(slots=True)
class SessionOptions:
    proxy_country_code: str | None = None


@dataclass(slots=True)
class ScoreOptions:
    max_steps: int | None = None
    iteration: int | None = None
    mode: str | None = None
    flash_mode: bool = False


class BrowserProvider(ABC):
    """Capability contract every automation backend implements.

    `close_session` must never raise: teardown problems are logged by the
    backend so they cannot replace the outcome of a run.
    """

    provider_name: str

    @abstractmethod
    async def create_session(self, options: SessionOptions | None = None) -> SessionHandle:
        """Acquire a browser session, releasing any partial resources on failure."""

    @abstractmethod
    async def score_text(
        self,
        session_id: str,
        text: str,
        options: ScoreOptions | None = None,
    ) -> ScoreResult:
        """Measure `text` in the Grammarly surface bound to `session_id`."""

    @abstractmethod
    async def close_session(self, session_id: str) -> None:
        """Release the session. Safe for unknown or already closed ids."""


def create_browser_provider(settings: AppSettings) -> BrowserProvider:
    """Build the backend named by `settings.browser_provider`."""

    if settings.browser_provider == "stagehand":
        from grammarly_optimizer.browser.stagehand_provider import StagehandProvider

        return StagehandProvider(settings)
    if settings.browser_provider == "browser-use":
        from grammarly_optimizer.browser.browser_use_provider import BrowserUseProvider

        return BrowserUseProvider(settings)
    raise ConfigurationError(f"Unknown browser provider: {settings.browser_provider}")
