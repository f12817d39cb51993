from __future__ import annotations

import asyncio

import pytest

from errors import DependencyReadError, RemoteServiceError
from fakes import FakeInferenceClient, FlakySettingsStore
from finetune.models import ACTIVE_MODEL_KEY, CURRENT_JOB_KEY, IN_PROGRESS_KEY, JobStatus, PollOutcome
from finetune.poller import FineTuneStatusPoller, FinetunePollWorker
from stores import InMemorySettingsStore


def _in_flight(active: str | None = "ft:previous") -> InMemorySettingsStore:
    values = {CURRENT_JOB_KEY: "ftjob-1", IN_PROGRESS_KEY: "true"}
    if active:
        values[ACTIVE_MODEL_KEY] = active
    return InMemorySettingsStore(values)


def test_idle_poll_does_nothing(settings, inference):
    outcome = asyncio.run(FineTuneStatusPoller(settings, inference).poll())

    assert outcome.message == "No fine-tune job currently in progress."
    assert outcome.status is None
    assert inference.calls == []
    assert settings.snapshot() == {}


@pytest.mark.parametrize("status", ["validating_files", "queued", "running"])
def test_non_terminal_status_never_mutates_settings(status):
    settings = _in_flight()
    before = settings.snapshot()
    inference = FakeInferenceClient(job_status=JobStatus(status=status))
    poller = FineTuneStatusPoller(settings, inference)

    for _ in range(3):
        outcome = asyncio.run(poller.poll())
        assert outcome.message == f"Job status = {status}. Still in progress."
        assert outcome.status == status

    assert settings.snapshot() == before


def test_success_promotes_model_and_clears_job():
    settings = _in_flight()
    inference = FakeInferenceClient(job_status=JobStatus(status="succeeded", resulting_model_id="ft:abc123"))

    outcome = asyncio.run(FineTuneStatusPoller(settings, inference).poll())

    assert outcome.message == "Fine-tune succeeded. Model = ft:abc123"
    assert outcome.promoted_model == "ft:abc123"
    assert inference.calls == [("get_job_status", "ftjob-1")]
    assert settings.snapshot() == {ACTIVE_MODEL_KEY: "ft:abc123", IN_PROGRESS_KEY: "false"}


def test_success_without_model_keeps_active_model():
    settings = _in_flight()
    inference = FakeInferenceClient(job_status=JobStatus(status="succeeded"))

    outcome = asyncio.run(FineTuneStatusPoller(settings, inference).poll())

    assert outcome.promoted_model is None
    assert "Active model unchanged" in outcome.message
    assert settings.snapshot() == {ACTIVE_MODEL_KEY: "ft:previous", IN_PROGRESS_KEY: "false"}


@pytest.mark.parametrize("active", ["ft:previous", None])
def test_failure_clears_job_and_keeps_active_model(active):
    settings = _in_flight(active)
    inference = FakeInferenceClient(job_status=JobStatus(status="failed"))

    outcome = asyncio.run(FineTuneStatusPoller(settings, inference).poll())

    assert outcome.message == "Fine-tune job failed. ID cleared."
    assert settings.get(CURRENT_JOB_KEY) is None
    assert settings.get(IN_PROGRESS_KEY) == "false"
    assert settings.get(ACTIVE_MODEL_KEY) == active


def test_status_query_error_mutates_nothing():
    settings = _in_flight()
    before = settings.snapshot()
    inference = FakeInferenceClient()
    inference.fail_on.add("get_job_status")

    with pytest.raises(RemoteServiceError):
        asyncio.run(FineTuneStatusPoller(settings, inference).poll())
    assert settings.snapshot() == before


def test_settings_read_error_skips_status_query(inference):
    settings = FlakySettingsStore({CURRENT_JOB_KEY: "ftjob-1"}, fail_get=True)

    with pytest.raises(DependencyReadError):
        asyncio.run(FineTuneStatusPoller(settings, inference).poll())
    assert inference.calls == []


class _ScriptedPoller:
    def __init__(self, worker_ref: list, results: list):
        self.worker_ref = worker_ref
        self.results = results
        self.calls = 0

    async def poll(self):
        self.calls += 1
        result = self.results.pop(0)
        if not self.results:
            self.worker_ref[0].stop()
        if isinstance(result, Exception):
            raise result
        return result


def test_poll_worker_survives_errors_and_stops():
    ref: list = []
    poller = _ScriptedPoller(ref, [RuntimeError("provider down"), PollOutcome(message="idle")])
    worker = FinetunePollWorker(poller, interval=0)
    ref.append(worker)

    asyncio.run(worker.start())

    assert poller.calls == 2
    assert worker.running is False
