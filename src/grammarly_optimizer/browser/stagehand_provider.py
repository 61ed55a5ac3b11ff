"""Stagehand + Browserbase backend: deterministic observe/act/extract automation."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from grammarly_optimizer.browser.provider import BrowserProvider, ScoreOptions, SessionOptions
from grammarly_optimizer.browser.session_manager import BrowserbaseSessionManager
from grammarly_optimizer.browser.stagehand_task import cleanup_document, run_stagehand_score_task
from grammarly_optimizer.config import AppSettings
from grammarly_optimizer.errors import ProviderError
from grammarly_optimizer.llm.stagehand_llm import detect_stagehand_llm
from grammarly_optimizer.types import ScoreResult, SessionHandle

logger = logging.getLogger(__name__)

StagehandFactory = Callable[[AppSettings, str], Awaitable[Any]]


def stagehand_config_kwargs(settings: AppSettings, session_id: str) -> dict[str, Any]:
    """Arguments for `StagehandConfig` attached to an existing Browserbase session."""
    llm = detect_stagehand_llm(settings)
    kwargs: dict[str, Any] = {
        "env": "BROWSERBASE",
        "api_key": settings.browserbase_api_key,
        "project_id": settings.browserbase_project_id,
        "browserbase_session_id": session_id,
        "model_name": llm.model_name,
        "model_api_key": llm.model_api_key,
        "self_heal": True,
        "verbose": 2 if settings.log_level == "debug" else 1,
    }
    # The Python SDK exposes action caching as a switch; the directory only
    # turns it on.
    if settings.stagehand_cache_dir:
        kwargs["enable_caching"] = True
        logger.debug("Stagehand caching enabled (cache_dir=%s)", settings.stagehand_cache_dir)
    return kwargs


async def _default_stagehand_factory(settings: AppSettings, session_id: str) -> Any:
    from stagehand import Stagehand, StagehandConfig

    stagehand = Stagehand(StagehandConfig(**stagehand_config_kwargs(settings, session_id)))
    try:
        await stagehand.init()
    except BaseException:
        try:
            await stagehand.close()
        except Exception as exc:
            logger.debug("Closing half-initialised Stagehand failed: %s", exc)
        raise
    return stagehand


class StagehandProvider(BrowserProvider):
    provider_name = "stagehand"

    def __init__(
        self,
        settings: AppSettings,
        *,
        session_manager: BrowserbaseSessionManager | None = None,
        stagehand_factory: StagehandFactory | None = None,
    ) -> None:
        self._settings = settings
        self._sessions = session_manager or BrowserbaseSessionManager(settings)
        self._stagehand_factory = stagehand_factory or _default_stagehand_factory
        self._instances: dict[str, Any] = {}

    async def create_session(self, options: SessionOptions | None = None) -> SessionHandle:
        # Browserbase routes through its own proxy settings; the country hint is
        # only honoured by the Browser Use backend.
        logger.debug("StagehandProvider: creating session (%s)", options)
        info = await self._sessions.get_or_create_session(
            context_id=self._settings.browserbase_context_id
        )

        # The caller only learns the session id from the returned handle, so any
        # exit before that (cancellation included) releases it here.
        try:
            self._instances[info.session_id] = await self._stagehand_factory(
                self._settings, info.session_id
            )
            live_url = await self._sessions.get_debug_url(info.session_id)
        except BaseException:
            logger.error("Failed to initialise Stagehand for session %s", info.session_id)
            await self.close_session(info.session_id)
            raise
        logger.info(
            "StagehandProvider: session %s ready (context=%s)",
            info.session_id,
            info.context_id,
        )
        return SessionHandle(
            session_id=info.session_id,
            live_url=live_url or info.live_url,
            context_id=info.context_id,
        )

    async def score_text(
        self,
        session_id: str,
        text: str,
        options: ScoreOptions | None = None,
    ) -> ScoreResult:
        stagehand = self._instances.get(session_id)
        if stagehand is None:
            raise ProviderError(f"No Stagehand instance found for session: {session_id}")

        logger.debug("StagehandProvider: scoring %d chars in %s", len(text), session_id)
        extraction = await run_stagehand_score_task(stagehand, text, options)
        live_url = await self._sessions.get_debug_url(session_id)
        return ScoreResult(
            scores=extraction.to_score_pair(),
            notes=extraction.notes,
            live_url=live_url,
        )

    async def close_session(self, session_id: str) -> None:
        stagehand = self._instances.pop(session_id, None)
        if stagehand is not None:
            await cleanup_document(stagehand)
            try:
                await stagehand.close()
            except Exception as exc:
                logger.warning("Failed to close Stagehand instance %s: %s", session_id, exc)
        await self._sessions.close_session(session_id)
