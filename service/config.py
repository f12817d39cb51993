"""Service configuration: all settings from environment variables."""
from __future__ import annotations

import os
from pathlib import Path


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


# ── Core paths ────────────────────────────────────────────────────────────────
DATA_DIR       = Path(os.environ.get("REPORTSMITH_DATA_DIR", str(Path.home() / ".reportsmith"))).expanduser()
SCRATCH_DIR    = DATA_DIR / "scratch"
SQLITE_DB_PATH = Path(os.environ.get("SQLITE_DB_PATH", str(DATA_DIR / "reportsmith.db"))).expanduser()

# ── Service ───────────────────────────────────────────────────────────────────
HOST      = os.environ.get("REPORTSMITH_HOST", "127.0.0.1")
PORT      = int(os.environ.get("REPORTSMITH_PORT", "8787"))
LOG_LEVEL = os.environ.get("REPORTSMITH_LOG_LEVEL", "INFO").upper()
TEST_MODE = _env_flag("REPORTSMITH_TEST_MODE")
CORS_ALLOW_ORIGIN = os.environ.get("CORS_ALLOW_ORIGIN", "*")

# ── Stores ────────────────────────────────────────────────────────────────────
# sqlite (local file), supabase (PostgREST tables), memory (dev/tests)
STORE_BACKEND = os.environ.get("STORE_BACKEND", "sqlite").strip().lower()

SUPABASE_URL              = os.environ.get("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")
SUPABASE_TIMEOUT_SECONDS  = float(os.environ.get("SUPABASE_TIMEOUT_SECONDS", "15"))

# ── Inference ─────────────────────────────────────────────────────────────────
OPENAI_API_KEY            = os.environ.get("OPENAI_API_KEY", "")
OPENAI_BASE_URL           = os.environ.get("OPENAI_BASE_URL", "https://api.openai.com/v1")
INFERENCE_TIMEOUT_SECONDS = float(os.environ.get("INFERENCE_TIMEOUT_SECONDS", "180"))

DEFAULT_MODEL       = os.environ.get("DEFAULT_MODEL", "gpt-4o-2024-08-06")
FINETUNE_BASE_MODEL = os.environ.get("FINETUNE_BASE_MODEL", "gpt-4o-2024-08-06")
SECTION_TEMPERATURE = 0.0
SECTION_MAX_TOKENS  = int(os.environ.get("SECTION_MAX_TOKENS", "4000"))

# ── Fine-tune lifecycle ───────────────────────────────────────────────────────
FINETUNE_BATCH_SIZE = int(os.environ.get("FINETUNE_BATCH_SIZE", "5"))
RATING_THRESHOLD    = float(os.environ.get("RATING_THRESHOLD", "9"))

# When set, the collector triggers the launcher by POSTing here instead of
# calling it in-process.
FINETUNE_TRIGGER_URL = os.environ.get("FINETUNE_TRIGGER_URL", "")

# 0 disables the in-process status poll loop.
FINETUNE_POLL_INTERVAL_SECONDS = float(os.environ.get("FINETUNE_POLL_INTERVAL_SECONDS", "0"))

# ── Weather ───────────────────────────────────────────────────────────────────
WEATHER_API_KEY         = os.environ.get("WEATHER_API_KEY", "")
WEATHER_API_URL         = os.environ.get("WEATHER_API_URL", "http://api.weatherapi.com/v1/history.json")
WEATHER_TIMEOUT_SECONDS = float(os.environ.get("WEATHER_TIMEOUT_SECONDS", "20"))

# ── Ensure runtime dirs exist ────────────────────────────────────────────────
for _d in (DATA_DIR, SCRATCH_DIR):
    try:
        _d.mkdir(parents=True, exist_ok=True)
    except OSError:
        # Some execution sandboxes cannot write outside the workspace.
        pass
