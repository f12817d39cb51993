"""Training corpus and fine-tune lifecycle API routes."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Body

import config
from errors import ValidationError
from finetune.models import ACTIVE_MODEL_KEY, CURRENT_JOB_KEY, IN_PROGRESS_KEY

from api.deps import (
    LaunchRequest,
    StoreSampleRequest,
    build_collector,
    build_launcher,
    build_poller,
    error_response,
    failure_response,
    require_stores,
)

log = logging.getLogger("reportsmith")
router = APIRouter()


# ── Samples ────────────────────────────────────────────────────────────────────

@router.post("/training/samples", operation_id="post_training_sample")
@router.post("/store-training-data", operation_id="post_store_training_data_legacy")
async def store_sample(
    body: StoreSampleRequest | None = Body(None),
):
    req = body or StoreSampleRequest()
    collector = build_collector()
    try:
        outcome = await collector.store_sample(req.finalReportText, req.ratings, req.metadata)
    except ValidationError as exc:
        return error_response(400, exc.message, code="VALIDATION_ERROR")
    except Exception as exc:
        return failure_response("Failed to store training data", exc)

    return {
        "message": outcome.message,
        "stored": outcome.stored,
        "sampleCount": outcome.sample_count,
        "fineTuneTriggered": outcome.triggered,
    }


# ── Fine-tune ──────────────────────────────────────────────────────────────────

@router.post("/training/finetune", operation_id="post_training_finetune")
@router.post("/fine-tune", operation_id="post_fine_tune_legacy")
async def launch_finetune(
    body: LaunchRequest | None = Body(None),
):
    req = body or LaunchRequest()
    launcher = build_launcher()
    try:
        outcome = await launcher.launch(trigger=req.trigger)
    except Exception as exc:
        return failure_response("Failed to start fine-tune job", exc)

    payload: dict[str, Any] = {"message": outcome.message}
    if outcome.started:
        payload["fineTuneId"] = outcome.job_id
    return payload


@router.post("/training/finetune/status", operation_id="post_training_finetune_status")
@router.get("/training/finetune/status", operation_id="get_training_finetune_status")
@router.post("/check-finetune-status", operation_id="post_check_finetune_status_legacy")
@router.get("/check-finetune-status", operation_id="get_check_finetune_status_legacy")
async def poll_finetune_status():
    poller = build_poller()
    try:
        outcome = await poller.poll()
    except Exception as exc:
        return failure_response("Failed to check fine-tune status", exc)

    payload: dict[str, Any] = {"message": outcome.message}
    if outcome.status is not None:
        payload["status"] = outcome.status
    return payload


@router.get("/training/status", operation_id="get_training_status")
async def training_status():
    settings, samples = require_stores()
    try:
        active = await asyncio.to_thread(settings.get, ACTIVE_MODEL_KEY)
        job_id = await asyncio.to_thread(settings.get, CURRENT_JOB_KEY)
        in_progress = await asyncio.to_thread(settings.get, IN_PROGRESS_KEY)
        count = await asyncio.to_thread(samples.count)
    except Exception as exc:
        return failure_response("Failed to read training status", exc)

    return {
        "active_model": active or config.DEFAULT_MODEL,
        "active_model_is_default": not active,
        "current_job_id": job_id,
        "finetune_in_progress": (in_progress or "false") == "true",
        "sample_count": count,
        "batch_size": config.FINETUNE_BATCH_SIZE,
        "base_model": config.FINETUNE_BASE_MODEL,
    }
