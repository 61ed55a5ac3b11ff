import asyncio
import logging
from types import SimpleNamespace
from typing import Any

import pytest

from grammarly_optimizer.browser import stagehand_provider
from grammarly_optimizer.browser.provider import ScoreOptions
from grammarly_optimizer.browser.schemas import ScoreExtraction
from grammarly_optimizer.browser.session_manager import BrowserbaseSessionManager
from grammarly_optimizer.browser.stagehand_provider import StagehandProvider, stagehand_config_kwargs
from grammarly_optimizer.browser.stagehand_task import (
    SHORT_TEXT_LENGTH,
    cleanup_document,
    run_stagehand_score_task,
)
from grammarly_optimizer.config import AppSettings
from grammarly_optimizer.errors import ConfigurationError, ProviderError
from grammarly_optimizer.llm.stagehand_llm import (
    ANTHROPIC_STAGEHAND_MODEL,
    GOOGLE_STAGEHAND_MODEL,
    detect_stagehand_llm,
)


async def _no_sleep(seconds: float) -> None:
    return None


@pytest.fixture(autouse=True)
def _reset_session_claims():
    BrowserbaseSessionManager._claimed_sessions.clear()
    yield
    BrowserbaseSessionManager._claimed_sessions.clear()


class _BbSessions:
    def __init__(self, status: str = "RUNNING", fail_update: bool = False) -> None:
        self.status = status
        self.fail_update = fail_update
        self.created: list[dict[str, Any]] = []
        self.updates: list[tuple[str, dict[str, Any]]] = []

    async def retrieve(self, session_id: str) -> Any:
        return SimpleNamespace(id=session_id, status=self.status)

    async def create(self, **kwargs: Any) -> Any:
        self.created.append(kwargs)
        return SimpleNamespace(id=f"bb-{len(self.created)}", status="RUNNING", context_id=None)

    async def update(self, session_id: str, **kwargs: Any) -> None:
        self.updates.append((session_id, kwargs))
        if self.fail_update:
            raise ConnectionError("release rejected")

    async def debug(self, session_id: str) -> Any:
        return SimpleNamespace(debugger_fullscreen_url=None, debugger_url=f"https://debug/{session_id}")


class _BbContexts:
    async def create(self, **kwargs: Any) -> Any:
        return SimpleNamespace(id="ctx-new")


class _BbClient:
    def __init__(self, **kwargs: Any) -> None:
        self.sessions = _BbSessions(**kwargs)
        self.contexts = _BbContexts()


class _Page:
    def __init__(
        self,
        extraction: Any = None,
        *,
        url: str = "about:blank",
        observed: list[Any] | None = None,
        fail_on: str | None = None,
        fail_extract: bool = False,
    ) -> None:
        self.url = url
        self.extraction = extraction or {"aiDetectionPercent": 40, "plagiarismPercent": 2, "notes": "seen"}
        self.observed = observed if observed is not None else []
        self.fail_on = fail_on
        self.fail_extract = fail_extract
        self.actions: list[Any] = []
        self.visits: list[str] = []
        self.filled: list[str] = []
        self.extract_calls: list[str] = []

    async def goto(self, url: str, **kwargs: Any) -> None:
        self.visits.append(url)
        self.url = url

    async def wait_for_load_state(self, state: str) -> None:
        return None

    async def observe(self, instruction: str) -> list[Any]:
        return self.observed

    async def act(self, action: Any) -> None:
        if self.fail_on and isinstance(action, str) and self.fail_on in action:
            raise RuntimeError("element not found")
        self.actions.append(action)

    def locator(self, selector: str) -> Any:
        page = self

        class _Locator:
            async def fill(self, value: str) -> None:
                page.filled.append(value)

        return _Locator()

    async def extract(self, instruction: str, schema: Any = None) -> Any:
        self.extract_calls.append(instruction)
        if self.fail_extract:
            raise RuntimeError("extraction failed")
        return self.extraction


class _Stagehand:
    def __init__(self, page: _Page | None, fail_close: bool = False) -> None:
        self.page = page
        self.fail_close = fail_close
        self.closed = False

    async def close(self) -> None:
        self.closed = True
        if self.fail_close:
            raise RuntimeError("already closed")


def test_manager_requires_credentials(settings: AppSettings) -> None:
    missing = settings.model_copy(update={"browserbase_project_id": None})
    with pytest.raises(ConfigurationError):
        BrowserbaseSessionManager(missing, client=_BbClient())


@pytest.mark.asyncio
async def test_manager_creates_session_with_context(settings: AppSettings) -> None:
    client = _BbClient()
    manager = BrowserbaseSessionManager(settings, client=client)

    session = await manager.get_or_create_session(context_id="ctx-1")

    assert session.session_id == "bb-1"
    assert session.context_id == "ctx-1"
    browser_settings = client.sessions.created[0]["browser_settings"]
    assert browser_settings["context"] == {"id": "ctx-1", "persist": True}
    assert browser_settings["advanced_stealth"] is True
    assert manager.cached_session_id == "bb-1"


@pytest.mark.asyncio
async def test_manager_reuses_running_session(settings: AppSettings) -> None:
    client = _BbClient()
    manager = BrowserbaseSessionManager(
        settings.model_copy(update={"browserbase_session_id": "bb-existing"}), client=client
    )

    session = await manager.get_or_create_session()

    assert session.session_id == "bb-existing"
    assert client.sessions.created == []


@pytest.mark.asyncio
async def test_manager_replaces_expired_session(settings: AppSettings) -> None:
    client = _BbClient(status="COMPLETED")
    manager = BrowserbaseSessionManager(
        settings.model_copy(update={"browserbase_session_id": "bb-old"}), client=client
    )

    session = await manager.get_or_create_session()

    assert session.session_id == "bb-1"


@pytest.mark.asyncio
async def test_manager_close_requests_release_and_logs_failures(settings: AppSettings, caplog) -> None:
    client = _BbClient(fail_update=True)
    manager = BrowserbaseSessionManager(settings, client=client)

    with caplog.at_level(logging.WARNING, logger="grammarly_optimizer"):
        await manager.close_session("bb-9")

    assert client.sessions.updates == [
        ("bb-9", {"project_id": "bb-project", "status": "REQUEST_RELEASE"})
    ]
    assert "release rejected" in caplog.text


@pytest.mark.asyncio
async def test_manager_context_and_debug_url(settings: AppSettings) -> None:
    manager = BrowserbaseSessionManager(settings, client=_BbClient())

    assert await manager.create_context() == "ctx-new"
    assert manager.cached_context_id == "ctx-new"
    assert await manager.get_debug_url("bb-3") == "https://debug/bb-3"


@pytest.mark.asyncio
async def test_task_types_short_text_after_navigation() -> None:
    page = _Page(observed=[{"selector": "#new"}])

    result = await run_stagehand_score_task(_Stagehand(page), "Short text.", sleep=_no_sleep)

    assert result.aiDetectionPercent == 40
    assert page.visits and "app.grammarly.com" in page.visits[0]
    assert {"selector": "#new"} in page.actions
    assert any("Type the following text exactly: Short text." == a for a in page.actions)
    assert page.filled == []


@pytest.mark.asyncio
async def test_task_fills_long_text_without_navigation() -> None:
    page = _Page(url="https://app.grammarly.com/ddocs/1")
    text = "x" * (SHORT_TEXT_LENGTH + 1)

    await run_stagehand_score_task(_Stagehand(page), text, ScoreOptions(iteration=1), sleep=_no_sleep)

    assert page.visits == []
    assert page.filled == [text]


@pytest.mark.asyncio
async def test_task_falls_back_to_partial_extraction() -> None:
    page = _Page(fail_on="main text editor")

    result = await run_stagehand_score_task(_Stagehand(page), "text", sleep=_no_sleep)

    assert result.notes.startswith("Error during task, partial extraction: ")
    assert len(page.extract_calls) == 1


@pytest.mark.asyncio
async def test_task_reraises_original_error_when_fallback_fails() -> None:
    page = _Page(fail_on="main text editor", fail_extract=True)

    with pytest.raises(RuntimeError, match="element not found"):
        await run_stagehand_score_task(_Stagehand(page), "text", sleep=_no_sleep)


@pytest.mark.asyncio
async def test_task_requires_page() -> None:
    with pytest.raises(ProviderError):
        await run_stagehand_score_task(_Stagehand(None), "text", sleep=_no_sleep)


@pytest.mark.asyncio
async def test_cleanup_never_raises() -> None:
    await cleanup_document(_Stagehand(_Page(fail_on="Delete the current document")))


@pytest.mark.asyncio
async def test_provider_round_trip(settings: AppSettings, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _BbClient()
    manager = BrowserbaseSessionManager(settings, client=client)
    instance = _Stagehand(_Page(), fail_close=True)

    async def factory(cfg: AppSettings, session_id: str) -> _Stagehand:
        return instance

    async def fake_task(stagehand: Any, text: str, options: Any = None) -> ScoreExtraction:
        assert stagehand is instance
        return ScoreExtraction(aiDetectionPercent=7, plagiarismPercent=None, notes="fine")

    monkeypatch.setattr(stagehand_provider, "run_stagehand_score_task", fake_task)
    provider = StagehandProvider(settings, session_manager=manager, stagehand_factory=factory)

    handle = await provider.create_session()
    result = await provider.score_text(handle.session_id, "hello")
    await provider.close_session(handle.session_id)

    assert handle.live_url == "https://debug/bb-1"
    assert result.scores.ai_percent == 7
    assert result.scores.plagiarism_percent is None
    assert result.live_url == "https://debug/bb-1"
    assert instance.closed
    assert client.sessions.updates[0][0] == "bb-1"


@pytest.mark.asyncio
async def test_provider_releases_session_when_init_fails(settings: AppSettings) -> None:
    client = _BbClient()
    manager = BrowserbaseSessionManager(settings, client=client)

    async def broken_factory(cfg: AppSettings, session_id: str) -> Any:
        raise RuntimeError("stagehand init failed")

    provider = StagehandProvider(settings, session_manager=manager, stagehand_factory=broken_factory)

    with pytest.raises(RuntimeError, match="stagehand init failed"):
        await provider.create_session()
    assert [sid for sid, _ in client.sessions.updates] == ["bb-1"]


@pytest.mark.asyncio
async def test_provider_rejects_unknown_session(settings: AppSettings) -> None:
    provider = StagehandProvider(
        settings, session_manager=BrowserbaseSessionManager(settings, client=_BbClient())
    )

    with pytest.raises(ProviderError, match="No Stagehand instance"):
        await provider.score_text("missing", "hello")


@pytest.mark.asyncio
async def test_provider_releases_session_when_init_is_cancelled(settings: AppSettings) -> None:
    client = _BbClient()
    manager = BrowserbaseSessionManager(settings, client=client)

    async def slow_factory(cfg: AppSettings, session_id: str) -> Any:
        await asyncio.sleep(10)

    provider = StagehandProvider(settings, session_manager=manager, stagehand_factory=slow_factory)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(provider.create_session(), timeout=0.05)

    assert [sid for sid, _ in client.sessions.updates] == ["bb-1"]


@pytest.mark.asyncio
async def test_provider_closes_instance_when_cancelled_after_init(settings: AppSettings) -> None:
    client = _BbClient()
    manager = BrowserbaseSessionManager(settings, client=client)
    instance = _Stagehand(_Page())

    async def factory(cfg: AppSettings, session_id: str) -> _Stagehand:
        return instance

    async def hanging_debug(session_id: str) -> Any:
        await asyncio.sleep(10)

    client.sessions.debug = hanging_debug
    provider = StagehandProvider(settings, session_manager=manager, stagehand_factory=factory)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(provider.create_session(), timeout=0.05)

    assert instance.closed
    assert [sid for sid, _ in client.sessions.updates] == ["bb-1"]


@pytest.mark.asyncio
async def test_configured_session_is_not_shared_by_concurrent_runs(settings: AppSettings) -> None:
    shared = settings.model_copy(update={"browserbase_session_id": "shared-bb"})
    client = _BbClient()

    async def factory(cfg: AppSettings, session_id: str) -> _Stagehand:
        return _Stagehand(_Page())

    first = StagehandProvider(
        shared, session_manager=BrowserbaseSessionManager(shared, client=client), stagehand_factory=factory
    )
    second = StagehandProvider(
        shared, session_manager=BrowserbaseSessionManager(shared, client=client), stagehand_factory=factory
    )

    a, b = await asyncio.gather(first.create_session(), second.create_session())

    assert a.session_id != b.session_id
    assert {a.session_id, b.session_id} == {"shared-bb", "bb-1"}


@pytest.mark.asyncio
async def test_configured_session_is_reusable_after_close(settings: AppSettings) -> None:
    shared = settings.model_copy(update={"browserbase_session_id": "shared-bb"})
    client = _BbClient()

    first = BrowserbaseSessionManager(shared, client=client)
    claimed = await first.get_or_create_session()
    await first.close_session(claimed.session_id)
    again = await BrowserbaseSessionManager(shared, client=client).get_or_create_session()

    assert claimed.session_id == "shared-bb"
    assert again.session_id == "shared-bb"
    assert client.sessions.created == []


@pytest.mark.parametrize(
    ("overrides", "provider", "model", "key"),
    [
        ({"stagehand_model_api_key": "sh-key", "openai_api_key": "oa"}, "explicit", "gpt-4o", "sh-key"),
        ({"openai_api_key": "oa", "google_api_key": "g"}, "openai", "gpt-4o", "oa"),
        ({"google_api_key": "g"}, "google", GOOGLE_STAGEHAND_MODEL, "g"),
        ({}, "anthropic", ANTHROPIC_STAGEHAND_MODEL, "claude-key"),
        ({"claude_api_key": None}, "default", "gpt-4o", None),
    ],
)
def test_stagehand_llm_follows_available_credentials(
    settings: AppSettings, overrides: dict[str, Any], provider: str, model: str, key: str | None
) -> None:
    choice = detect_stagehand_llm(settings.model_copy(update=overrides))

    assert (choice.provider, choice.model_name, choice.model_api_key) == (provider, model, key)


def test_stagehand_config_uses_detected_model_and_cache(settings: AppSettings) -> None:
    cached = settings.model_copy(update={"stagehand_cache_dir": "/tmp/stagehand-cache"})

    kwargs = stagehand_config_kwargs(cached, "bb-7")
    plain = stagehand_config_kwargs(settings, "bb-7")

    assert kwargs["browserbase_session_id"] == "bb-7"
    assert kwargs["model_name"] == ANTHROPIC_STAGEHAND_MODEL
    assert kwargs["model_api_key"] == "claude-key"
    assert kwargs["enable_caching"] is True
    assert "enable_caching" not in plain
