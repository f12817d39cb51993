from __future__ import annotations

import importlib
import sys
from pathlib import Path

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
for _path in (REPO_ROOT / "service", REPO_ROOT / "sdk"):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))


class FakeInference:
    def __init__(self):
        from finetune.models import JobStatus

        self.completion = "**Introduction**\nThe property was inspected."
        self.job_status = JobStatus(status="running")
        self.job_id = "ftjob-test"
        self.fail_on: set[str] = set()
        self.calls: list[tuple] = []

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            from errors import RemoteServiceError

            raise RemoteServiceError(f"{operation} failed: HTTP 500: upstream exploded")

    async def complete(self, model_id, messages, temperature, max_output_tokens):
        self.calls.append(("complete", model_id))
        self._check("complete")
        return self.completion

    async def upload_dataset(self, content, purpose, filename="training.jsonl"):
        self.calls.append(("upload_dataset", purpose))
        self._check("upload_dataset")
        if not isinstance(content, bytes):
            content.read()
        return "file-test"

    async def create_tuning_job(self, base_model_id, dataset_id):
        self.calls.append(("create_tuning_job", base_model_id, dataset_id))
        self._check("create_tuning_job")
        return self.job_id

    async def get_job_status(self, job_handle):
        self.calls.append(("get_job_status", job_handle))
        self._check("get_job_status")
        return self.job_status


class Runtime:
    def __init__(self, settings, samples, inference):
        self.settings = settings
        self.samples = samples
        self.inference = inference


@pytest.fixture()
def runtime():
    from stores import InMemorySampleStore, InMemorySettingsStore

    return Runtime(InMemorySettingsStore(), InMemorySampleStore(), FakeInference())


@pytest.fixture()
def app_module(monkeypatch, tmp_path, runtime):
    pytest.importorskip("fastapi")
    monkeypatch.setenv("REPORTSMITH_TEST_MODE", "1")
    monkeypatch.setenv("REPORTSMITH_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("FINETUNE_TRIGGER_URL", raising=False)

    import config
    import main

    importlib.reload(config)
    importlib.reload(main)

    # Lifespan wiring picks up the fakes instead of real backends.
    monkeypatch.setattr(main, "build_stores", lambda backend=None: (runtime.settings, runtime.samples))
    monkeypatch.setattr(main, "OpenAIInferenceClient", lambda: runtime.inference)
    return main


@pytest.fixture()
def client(app_module):
    from fastapi.testclient import TestClient

    with TestClient(app_module.app) as test_client:
        yield test_client
