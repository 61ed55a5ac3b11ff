"""FastAPI entrypoint for scoring and optimization runs."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import Field, ValidationError

from grammarly_optimizer.api.formatting import render_markdown
from grammarly_optimizer.config import AppSettings, OptimizeRequest
from grammarly_optimizer.errors import OptimizerError
from grammarly_optimizer.obs.logs import configure_logging
from grammarly_optimizer.optimizer import OptimizationOrchestrator

logger = logging.getLogger(__name__)


class OptimizePayload(OptimizeRequest):
    """HTTP body; omitted thresholds and iteration cap come from the settings."""

    max_ai_percent: float | None = Field(default=None, ge=0, le=100)
    max_plagiarism_percent: float | None = Field(default=None, ge=0, le=100)
    max_iterations: int | None = Field(default=None, ge=1, le=20)


@lru_cache
def _load_settings() -> AppSettings:
    settings = AppSettings()
    configure_logging(settings.log_level)
    return settings


def get_settings() -> AppSettings:
    try:
        return _load_settings()
    except ValidationError as exc:
        logger.error("Invalid environment configuration: %s", exc)
        raise HTTPException(status_code=500, detail="Invalid environment configuration") from exc


def get_orchestrator(settings: AppSettings = Depends(get_settings)) -> OptimizationOrchestrator:
    return OptimizationOrchestrator(settings)


async def _log_progress(message: str, percent: float | None = None) -> None:
    logger.info("Progress %s%%: %s", percent, message)


app = FastAPI(title="Grammarly Optimizer", version="0.1.0")


@app.get("/health")
def health(settings: AppSettings = Depends(get_settings)) -> dict[str, Any]:
    return {
        "status": "ok",
        "provider": settings.browser_provider,
        "claude_api_key_configured": settings.claude_api_key is not None,
    }


@app.post("/optimize", response_model=None)
async def optimize(
    payload: OptimizePayload,
    settings: AppSettings = Depends(get_settings),
    orchestrator: OptimizationOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any] | PlainTextResponse:
    try:
        request = OptimizeRequest.with_defaults(settings, payload.model_dump(exclude_none=True))
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=exc.errors(include_url=False, include_context=False),
        ) from exc

    logger.info(
        "Received optimize request (mode=%s, max_ai=%s, max_plagiarism=%s, max_iterations=%d)",
        request.mode,
        request.max_ai_percent,
        request.max_plagiarism_percent,
        request.max_iterations,
    )

    try:
        result = await orchestrator.run(request, _log_progress)
    except OptimizerError as exc:
        raise HTTPException(
            status_code=502,
            detail={"error_code": exc.error_code, "message": exc.message},
        ) from exc
    except Exception as exc:
        logger.exception("Optimization run failed")
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    if request.response_format == "markdown":
        return PlainTextResponse(render_markdown(result), media_type="text/markdown")
    return result.to_dict()
