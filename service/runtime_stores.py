"""Shared runtime accessors for the active settings/sample stores and inference client."""
from __future__ import annotations

import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from inference.client import InferenceClient
    from stores import SampleStore, SettingsStore

_SETTINGS_STORE: "SettingsStore | None" = None
_SAMPLE_STORE: "SampleStore | None" = None
_INFERENCE_CLIENT: "InferenceClient | None" = None
_LOCK = threading.Lock()


def set_stores(settings: "SettingsStore | None", samples: "SampleStore | None") -> None:
    """Register or clear the process-wide store pair."""
    global _SETTINGS_STORE, _SAMPLE_STORE
    with _LOCK:
        _SETTINGS_STORE = settings
        _SAMPLE_STORE = samples


def get_settings_store() -> "SettingsStore | None":
    return _SETTINGS_STORE


def get_sample_store() -> "SampleStore | None":
    return _SAMPLE_STORE


def set_inference_client(client: "InferenceClient | None") -> None:
    global _INFERENCE_CLIENT
    with _LOCK:
        _INFERENCE_CLIENT = client


def get_inference_client() -> "InferenceClient | None":
    return _INFERENCE_CLIENT
