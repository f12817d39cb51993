"""Fine-tune status poller: the only writer of ``active_finetuned_model``.

States, keyed on ``current_finetune_job_id``:
  idle     key absent        -> no-op
  polling  key = job handle  -> query the provider
    succeeded + model id  -> promote model, clear handle, flag "false"
    succeeded, no model   -> clear handle, flag "false", keep prior model
    failed                -> clear handle, flag "false"
    anything else         -> untouched

A failed settings read or status query leaves every key as it was.
"""
from __future__ import annotations

import asyncio
import logging

import config
from finetune.models import ACTIVE_MODEL_KEY, CURRENT_JOB_KEY, IN_PROGRESS_KEY, PollOutcome
from inference.client import InferenceClient
from stores import SettingsStore

log = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
FAILED = "failed"


class FineTuneStatusPoller:
    def __init__(self, settings: SettingsStore, inference: InferenceClient):
        self.settings = settings
        self.inference = inference

    async def _clear_job(self) -> None:
        await asyncio.to_thread(self.settings.delete, CURRENT_JOB_KEY)
        await asyncio.to_thread(self.settings.upsert, IN_PROGRESS_KEY, "false")

    async def poll(self) -> PollOutcome:
        job_id = (await asyncio.to_thread(self.settings.get, CURRENT_JOB_KEY) or "").strip()
        if not job_id:
            return PollOutcome(message="No fine-tune job currently in progress.")

        job = await self.inference.get_job_status(job_id)
        status = job.status

        if status == SUCCEEDED:
            model = (job.resulting_model_id or "").strip()
            if model:
                await asyncio.to_thread(self.settings.upsert, ACTIVE_MODEL_KEY, model)
                log.info("Fine-tune job %s succeeded. Active model is now %s", job_id, model)
            else:
                log.warning("Fine-tune job %s succeeded without a model id; active model unchanged", job_id)
            await self._clear_job()
            message = (
                f"Fine-tune succeeded. Model = {model}"
                if model
                else "Fine-tune succeeded but no model id was returned. Active model unchanged."
            )
            return PollOutcome(
                message=message,
                status=status,
                job_id=job_id,
                promoted_model=model or None,
            )

        if status == FAILED:
            log.error("Fine-tune job %s failed", job_id)
            await self._clear_job()
            return PollOutcome(message="Fine-tune job failed. ID cleared.", status=status, job_id=job_id)

        return PollOutcome(
            message=f"Job status = {status}. Still in progress.",
            status=status,
            job_id=job_id,
        )


class FinetunePollWorker:
    """Background loop calling ``poll()`` on a fixed interval."""

    def __init__(self, poller: FineTuneStatusPoller, interval: float | None = None):
        self.poller = poller
        self.interval = interval if interval is not None else config.FINETUNE_POLL_INTERVAL_SECONDS
        self.running = False

    async def start(self) -> None:
        self.running = True
        log.info("Fine-tune poll worker started (interval=%ss)", self.interval)
        while self.running:
            try:
                outcome = await self.poller.poll()
                if outcome.status:
                    log.info("Fine-tune poll: %s", outcome.message)
            except Exception as exc:
                log.error("Fine-tune poll failed: %s", exc, exc_info=True)
            await asyncio.sleep(self.interval)

    def stop(self) -> None:
        self.running = False
