"""Configuration models for the optimizer service."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ProviderName = Literal["stagehand", "browser-use"]
OptimizeMode = Literal["score_only", "analyze", "optimize"]
RewriterTone = Literal["neutral", "formal", "informal", "academic", "custom"]
LogLevel = Literal["debug", "info", "warn", "error"]


class AppSettings(BaseSettings):
    """Environment-driven settings, validated once at process start."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    browser_provider: ProviderName = "stagehand"

    # Browser Use Cloud
    browser_use_api_key: str | None = None
    browser_use_profile_id: str | None = None
    browser_use_llm: str = "browser-use-llm"
    browser_use_default_timeout_ms: int = Field(default=5 * 60 * 1000, gt=0)

    # Browserbase + Stagehand
    browserbase_api_key: str | None = None
    browserbase_project_id: str | None = None
    browserbase_session_id: str | None = None
    browserbase_context_id: str | None = None
    stagehand_model: str = "gpt-4o"
    stagehand_model_api_key: str | None = None
    stagehand_cache_dir: str | None = None

    # Credentials that select Stagehand's own model when no explicit key is set
    openai_api_key: str | None = None
    google_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "GOOGLE_GENERATIVE_AI_API_KEY", "GOOGLE_API_KEY", "google_api_key"
        ),
    )

    # Claude
    claude_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CLAUDE_API_KEY", "ANTHROPIC_API_KEY", "claude_api_key"),
    )
    claude_request_timeout_ms: int = Field(default=2 * 60 * 1000, gt=0)
    connect_timeout_ms: int = Field(default=30_000, gt=0)

    log_level: LogLevel = "info"

    default_max_ai_percent: float = Field(default=10, ge=0, le=100)
    default_max_plagiarism_percent: float = Field(default=5, ge=0, le=100)
    default_max_iterations: int = Field(default=5, ge=1, le=20)

    @model_validator(mode="after")
    def _require_provider_credentials(self) -> "AppSettings":
        if self.browser_provider == "stagehand":
            if not self.browserbase_api_key or not self.browserbase_project_id:
                raise ValueError(
                    "BROWSERBASE_API_KEY and BROWSERBASE_PROJECT_ID are required "
                    "when BROWSER_PROVIDER=stagehand"
                )
        elif not self.browser_use_api_key or not self.browser_use_profile_id:
            raise ValueError(
                "BROWSER_USE_API_KEY and BROWSER_USE_PROFILE_ID are required "
                "when BROWSER_PROVIDER=browser-use"
            )
        return self


class RetryPolicy(BaseModel):
    """Retry budget for one call-site."""

    max_retries: int = Field(ge=0)
    backoff_ms: float = Field(gt=0.0)


class OrchestratorConfig(BaseModel):
    """Per-call-site retry budgets used by the orchestrator."""

    provider_retry: RetryPolicy = RetryPolicy(max_retries=2, backoff_ms=1000)
    session_retry: RetryPolicy = RetryPolicy(max_retries=3, backoff_ms=1000)
    scoring_retry: RetryPolicy = RetryPolicy(max_retries=2, backoff_ms=2000)


class OptimizeRequest(BaseModel):
    """Caller input for one optimization run."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(min_length=1)
    mode: OptimizeMode = "optimize"
    max_ai_percent: float = Field(default=10, ge=0, le=100)
    max_plagiarism_percent: float = Field(default=5, ge=0, le=100)
    max_iterations: int = Field(default=5, ge=1, le=20)
    tone: RewriterTone = "neutral"
    domain_hint: str | None = Field(default=None, max_length=200)
    custom_instructions: str | None = Field(default=None, max_length=2000)
    proxy_country_code: str | None = Field(default=None, min_length=2, max_length=2)
    response_format: Literal["json", "markdown"] = "json"
    max_steps: int | None = Field(default=None, ge=5, le=100)

    @classmethod
    def with_defaults(
        cls, settings: AppSettings, fields: Mapping[str, Any]
    ) -> "OptimizeRequest":
        """Build a request, taking omitted thresholds from the settings."""
        fields = dict(fields)
        fields.setdefault("max_ai_percent", settings.default_max_ai_percent)
        fields.setdefault("max_plagiarism_percent", settings.default_max_plagiarism_percent)
        fields.setdefault("max_iterations", settings.default_max_iterations)
        return cls.model_validate(fields)
