"""Shared models, error bodies and component wiring for API route modules."""
from __future__ import annotations

import logging
from datetime import datetime, UTC
from typing import Any

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

import config
from errors import ReportSmithError
from finetune.collector import LaunchTrigger, SampleCollector, http_launch_trigger
from finetune.launcher import FineTuneLauncher
from finetune.poller import FineTuneStatusPoller
from inference.client import InferenceClient
from reports.generator import ReportSectionGenerator
from runtime_stores import get_inference_client, get_sample_store, get_settings_store
from stores import SampleStore, SettingsStore

log = logging.getLogger("reportsmith")

# ── Pydantic models ────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    error: str
    details: str | None = None
    code: str | None = None
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())


# Request fields are all optional so that missing ones surface as a 400 with
# the operation's own message rather than FastAPI's 422.

class GenerateSectionRequest(BaseModel):
    section: str | None = None
    context: dict[str, Any] | None = None
    customInstructions: str | None = None


class StoreSampleRequest(BaseModel):
    finalReportText: Any = None
    ratings: Any = None
    metadata: Any = None


class LaunchRequest(BaseModel):
    trigger: str | None = None


# ── Error bodies ───────────────────────────────────────────────────────────────

def error_response(status_code: int, error: str, details: str | None = None, code: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, details=details, code=code).model_dump(exclude_none=True),
    )


def failure_response(summary: str, exc: Exception) -> JSONResponse:
    """500 body ``{error: summary, details: <cause>}``."""
    details = exc.message if isinstance(exc, ReportSmithError) else str(exc)
    log.error("%s: %s", summary, details, exc_info=not isinstance(exc, ReportSmithError))
    return error_response(500, summary, details, code=type(exc).__name__)


# ── Runtime guards ─────────────────────────────────────────────────────────────

def require_stores() -> tuple[SettingsStore, SampleStore]:
    settings = get_settings_store()
    samples = get_sample_store()
    if settings is None or samples is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return settings, samples


def require_inference() -> InferenceClient:
    client = get_inference_client()
    if client is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return client


# ── Component builders (one per request; no shared state) ─────────────────────

def build_generator() -> ReportSectionGenerator:
    settings, _ = require_stores()
    return ReportSectionGenerator(settings, require_inference())


def build_launcher() -> FineTuneLauncher:
    settings, samples = require_stores()
    return FineTuneLauncher(settings, samples, require_inference())


def build_poller() -> FineTuneStatusPoller:
    settings, _ = require_stores()
    return FineTuneStatusPoller(settings, require_inference())


def build_launch_trigger() -> LaunchTrigger:
    if config.FINETUNE_TRIGGER_URL:
        return http_launch_trigger(config.FINETUNE_TRIGGER_URL)

    async def _launch_in_process(reason: str) -> dict[str, Any]:
        outcome = await build_launcher().launch(trigger=reason)
        return outcome.model_dump()

    return _launch_in_process


def build_collector() -> SampleCollector:
    _, samples = require_stores()
    return SampleCollector(samples, launch=build_launch_trigger())
