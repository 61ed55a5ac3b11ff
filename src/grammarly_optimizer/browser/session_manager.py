"""Browserbase session and context management."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, ClassVar

from grammarly_optimizer.config import AppSettings
from grammarly_optimizer.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BrowserbaseSession:
    session_id: str
    context_id: str | None = None
    live_url: str | None = None
    status: str | None = None


class BrowserbaseSessionManager:
    """Creates, reuses and releases Browserbase sessions.

    A persistent context keeps the Grammarly login between sessions; contexts
    are never deleted here. A configured session id is handed to at most one
    manager at a time in this process, so concurrent runs never drive the
    same browser.
    """

    _claimed_sessions: ClassVar[set[str]] = set()

    def __init__(self, settings: AppSettings, client: Any | None = None) -> None:
        if not settings.browserbase_api_key or not settings.browserbase_project_id:
            raise ConfigurationError(
                "BrowserbaseSessionManager requires BROWSERBASE_API_KEY and "
                "BROWSERBASE_PROJECT_ID"
            )
        if client is None:
            from browserbase import AsyncBrowserbase

            client = AsyncBrowserbase(
                api_key=settings.browserbase_api_key,
                timeout=settings.connect_timeout_ms / 1000.0,
            )

        self._bb = client
        self.project_id = settings.browserbase_project_id
        self.cached_session_id: str | None = settings.browserbase_session_id
        self.cached_context_id: str | None = settings.browserbase_context_id

    async def is_session_active(self, session_id: str) -> bool:
        try:
            session = await self._bb.sessions.retrieve(session_id)
        except Exception as exc:
            logger.debug("Session %s not found or expired: %s", session_id, exc)
            return False
        return getattr(session, "status", None) == "RUNNING"

    async def get_or_create_session(
        self,
        *,
        context_id: str | None = None,
        force_new: bool = False,
    ) -> BrowserbaseSession:
        cached = self.cached_session_id
        if not force_new and cached and self._claim(cached):
            try:
                active = await self.is_session_active(cached)
            except BaseException:
                self._claimed_sessions.discard(cached)
                raise
            if active:
                logger.debug("Reusing Browserbase session %s", cached)
                return BrowserbaseSession(session_id=cached, context_id=self.cached_context_id)
            self._claimed_sessions.discard(cached)
            logger.debug("Cached Browserbase session expired, creating a new one")
        elif cached and not force_new:
            logger.debug(
                "Browserbase session %s is in use by another run, creating a new one", cached
            )

        context_id = context_id or self.cached_context_id
        browser_settings: dict[str, Any] = {
            "advanced_stealth": True,
            "solve_captchas": True,
            "block_ads": True,
        }
        if context_id:
            browser_settings["context"] = {"id": context_id, "persist": True}

        session = await self._bb.sessions.create(
            project_id=self.project_id,
            browser_settings=browser_settings,
        )
        self.cached_session_id = session.id
        new_context_id = getattr(session, "context_id", None) or context_id
        if new_context_id:
            self.cached_context_id = new_context_id

        logger.info(
            "Created Browserbase session %s (context=%s)", session.id, new_context_id
        )
        return BrowserbaseSession(
            session_id=session.id,
            context_id=new_context_id,
            status=getattr(session, "status", None),
        )

    def _claim(self, session_id: str) -> bool:
        if session_id in self._claimed_sessions:
            return False
        self._claimed_sessions.add(session_id)
        return True

    async def close_session(self, session_id: str) -> None:
        self._claimed_sessions.discard(session_id)
        try:
            await self._bb.sessions.update(
                session_id,
                project_id=self.project_id,
                status="REQUEST_RELEASE",
            )
        except Exception as exc:
            logger.warning("Failed to close Browserbase session %s: %s", session_id, exc)
            return

        if self.cached_session_id == session_id:
            self.cached_session_id = None
        logger.debug("Closed Browserbase session %s", session_id)

    async def create_context(self) -> str:
        """Create a persistent context; run once when setting up the login."""
        context = await self._bb.contexts.create(project_id=self.project_id)
        self.cached_context_id = context.id
        logger.info("Created Browserbase context %s", context.id)
        return context.id

    async def get_debug_url(self, session_id: str) -> str | None:
        try:
            debug = await self._bb.sessions.debug(session_id)
        except Exception as exc:
            logger.debug("Failed to get debug URL for %s: %s", session_id, exc)
            return None
        return (
            getattr(debug, "debugger_fullscreen_url", None)
            or getattr(debug, "debugger_url", None)
        )
