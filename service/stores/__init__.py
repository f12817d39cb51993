"""Store adapters for settings and samples, selected by ``STORE_BACKEND``."""
from __future__ import annotations

import config
from stores.samples import (
    InMemorySampleStore,
    SampleStore,
    SqliteSampleStore,
    SupabaseSampleStore,
)
from stores.settings import (
    InMemorySettingsStore,
    SettingsStore,
    SqliteSettingsStore,
    SupabaseSettingsStore,
)

SUPPORTED_BACKENDS = ("sqlite", "supabase", "memory")


def build_stores(backend: str | None = None) -> tuple[SettingsStore, SampleStore]:
    """Create the settings and sample store pair for ``backend``."""
    name = (backend or config.STORE_BACKEND).strip().lower()
    if name == "sqlite":
        return SqliteSettingsStore(), SqliteSampleStore()
    if name == "supabase":
        return SupabaseSettingsStore(), SupabaseSampleStore()
    if name == "memory":
        return InMemorySettingsStore(), InMemorySampleStore()
    raise ValueError(f"Unknown STORE_BACKEND '{name}'. Must be one of: {list(SUPPORTED_BACKENDS)}")


__all__ = [
    "InMemorySampleStore",
    "InMemorySettingsStore",
    "SUPPORTED_BACKENDS",
    "SampleStore",
    "SettingsStore",
    "SqliteSampleStore",
    "SqliteSettingsStore",
    "SupabaseSampleStore",
    "SupabaseSettingsStore",
    "build_stores",
]
