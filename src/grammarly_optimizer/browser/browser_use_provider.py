"""Browser Use Cloud backend: natural-language task delegation."""

from __future__ import annotations

import logging
from typing import Any

from grammarly_optimizer.browser.browser_use_task import create_grammarly_session, run_score_task
from grammarly_optimizer.browser.provider import BrowserProvider, ScoreOptions, SessionOptions
from grammarly_optimizer.config import AppSettings
from grammarly_optimizer.errors import ConfigurationError
from grammarly_optimizer.types import ScoreResult, SessionHandle

logger = logging.getLogger(__name__)


class BrowserUseProvider(BrowserProvider):
    provider_name = "browser-use"

    def __init__(self, settings: AppSettings, *, client: Any | None = None) -> None:
        self._settings = settings
        self._client = client
        self._live_urls: dict[str, str | None] = {}

    def _get_client(self) -> Any:
        if self._client is None:
            if not self._settings.browser_use_api_key:
                raise ConfigurationError("BROWSER_USE_API_KEY is required for Browser Use provider")
            from browser_use_sdk import AsyncBrowserUse

            self._client = AsyncBrowserUse(api_key=self._settings.browser_use_api_key)
        return self._client

    async def create_session(self, options: SessionOptions | None = None) -> SessionHandle:
        if not self._settings.browser_use_profile_id:
            raise ConfigurationError("BROWSER_USE_PROFILE_ID is required for Browser Use provider")
        options = options or SessionOptions()

        session_id, live_url = await create_grammarly_session(
            self._get_client(),
            self._settings.browser_use_profile_id,
            proxy_country_code=options.proxy_country_code,
        )
        self._live_urls[session_id] = live_url
        return SessionHandle(session_id=session_id, live_url=live_url)

    async def score_text(
        self,
        session_id: str,
        text: str,
        options: ScoreOptions | None = None,
    ) -> ScoreResult:
        logger.debug("BrowserUseProvider: scoring %d chars in %s", len(text), session_id)
        extraction = await run_score_task(
            self._get_client(),
            session_id,
            text,
            llm=self._settings.browser_use_llm,
            timeout_seconds=self._settings.browser_use_default_timeout_ms / 1000.0,
            options=options,
        )
        return ScoreResult(
            scores=extraction.to_score_pair(),
            notes=extraction.notes,
            live_url=self._live_urls.get(session_id),
        )

    async def close_session(self, session_id: str) -> None:
        try:
            await self._get_client().sessions.delete_session(session_id)
            logger.debug("BrowserUseProvider: session %s closed", session_id)
        except Exception as exc:
            logger.warning("BrowserUseProvider: failed to close session %s: %s", session_id, exc)
        finally:
            self._live_urls.pop(session_id, None)
