"""Fine-tune launcher: package every stored sample into one remote tuning job.

Flow:
  1. list samples oldest first (a failed read is fatal)
  2. encode them as chat JSONL into a scratch file
  3. upload the file, create a job on the fixed base model
  4. record the job handle and flip ``finetune_in_progress`` to "true"

The scratch file is removed on every exit path. There is no guard against a
second concurrent launch; a later upsert of the job handle overwrites an
earlier one.
"""
from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import uuid
from pathlib import Path

import config
from errors import DependencyWriteError
from finetune.models import CURRENT_JOB_KEY, IN_PROGRESS_KEY, LaunchOutcome
from finetune.training_file import encode_training_records
from inference.client import InferenceClient
from stores import SampleStore, SettingsStore

log = logging.getLogger(__name__)

UPLOAD_PURPOSE = "fine-tune"


def _write_scratch_file(content: str) -> Path:
    scratch_dir = config.SCRATCH_DIR
    scratch_dir.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=scratch_dir,
        prefix=f"fine-tune-{uuid.uuid4().hex[:8]}-",
        suffix=".jsonl",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
    except Exception:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return Path(tmp_name)


def _release_scratch_file(path: Path | None) -> None:
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        log.warning("Failed to delete scratch file %s: %s", path, exc)


class FineTuneLauncher:
    def __init__(self, settings: SettingsStore, samples: SampleStore, inference: InferenceClient):
        self.settings = settings
        self.samples = samples
        self.inference = inference

    async def launch(self, trigger: str | None = None) -> LaunchOutcome:
        if trigger:
            log.info("Fine-tune launch requested: %s", trigger)

        rows = await asyncio.to_thread(self.samples.list_all)
        if not rows:
            return LaunchOutcome(
                started=False,
                message="No training data found. Nothing to fine-tune.",
                trigger=trigger,
            )

        scratch: Path | None = None
        try:
            scratch = await asyncio.to_thread(_write_scratch_file, encode_training_records(rows))
            with scratch.open("rb") as fh:
                dataset_id = await self.inference.upload_dataset(fh, UPLOAD_PURPOSE, filename=scratch.name)
            job_id = await self.inference.create_tuning_job(config.FINETUNE_BASE_MODEL, dataset_id)
        finally:
            await asyncio.to_thread(_release_scratch_file, scratch)

        try:
            await asyncio.to_thread(self.settings.upsert, CURRENT_JOB_KEY, job_id)
            await asyncio.to_thread(self.settings.upsert, IN_PROGRESS_KEY, "true")
        except DependencyWriteError as exc:
            # The remote job keeps running but is no longer tracked here.
            log.error(
                "Fine-tune job %s was created but its state could not be recorded: %s",
                job_id, exc,
            )
            raise DependencyWriteError(
                f"Fine-tune job {job_id} created but not recorded: {exc.message}"
            ) from exc

        log.info("Fine-tune job %s started from %d samples", job_id, len(rows))
        return LaunchOutcome(
            started=True,
            message="Fine-tune job started. Check the job status function to see when it finishes.",
            job_id=job_id,
            dataset_id=dataset_id,
            sample_count=len(rows),
            trigger=trigger,
        )
