from __future__ import annotations

import sys
from pathlib import Path

import pytest

SERVICE_DIR = Path(__file__).resolve().parents[1]
if str(SERVICE_DIR) not in sys.path:
    sys.path.insert(0, str(SERVICE_DIR))

from fakes import FakeInferenceClient
from stores import InMemorySampleStore, InMemorySettingsStore


@pytest.fixture()
def settings():
    return InMemorySettingsStore()


@pytest.fixture()
def samples():
    return InMemorySampleStore()


@pytest.fixture()
def inference():
    return FakeInferenceClient()


@pytest.fixture()
def scratch_dir(tmp_path, monkeypatch):
    import config

    path = tmp_path / "scratch"
    path.mkdir()
    monkeypatch.setattr(config, "SCRATCH_DIR", path)
    return path
