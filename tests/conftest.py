"""Shared fixtures.

Settings are built explicitly with `_env_file=None` so a developer's local
`.env` never leaks into the tests.
"""

import pytest

from grammarly_optimizer.config import AppSettings


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch) -> AppSettings:
    for name in (
        "CLAUDE_API_KEY",
        "ANTHROPIC_API_KEY",
        "OPENAI_API_KEY",
        "GOOGLE_GENERATIVE_AI_API_KEY",
        "GOOGLE_API_KEY",
        "STAGEHAND_MODEL_API_KEY",
        "BROWSER_PROVIDER",
    ):
        monkeypatch.delenv(name, raising=False)
    return AppSettings(
        _env_file=None,
        browser_provider="stagehand",
        browserbase_api_key="bb-key",
        browserbase_project_id="bb-project",
        claude_api_key="claude-key",
    )
