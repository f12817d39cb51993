"""ReportSmith HTTP service: app + lifespan only."""
from __future__ import annotations

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, UTC
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

import config
from api.deps import ErrorResponse, build_poller
from finetune.collector import drain_pending_triggers, pending_trigger_count
from finetune.poller import FinetunePollWorker
from inference.client import OpenAIInferenceClient
from runtime_stores import (
    get_inference_client,
    get_settings_store,
    set_inference_client,
    set_stores,
)
from stores import build_stores

VERSION = "1.0.0"


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
        }
        for key in ("path", "method", "status", "duration_ms"):
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        if record.exc_info and record.exc_info[1] is not None:
            import traceback
            entry["traceback"] = "".join(traceback.format_exception(*record.exc_info))
        return json.dumps(entry)


# Re-importing this module replaces the handler instead of stacking another.
for _old in [h for h in logging.root.handlers if getattr(h, "_reportsmith", False)]:
    logging.root.removeHandler(_old)
_handler = logging.StreamHandler()
_handler.setFormatter(_JsonFormatter())
_handler._reportsmith = True
logging.root.addHandler(_handler)
logging.root.setLevel(config.LOG_LEVEL)

log = logging.getLogger("reportsmith")

app = FastAPI(
    title="ReportSmith",
    description="Forensic report section generation with a self-tuning model loop",
    version=VERSION,
)

_CORS_HEADERS = {
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
}


def _cors_headers() -> dict[str, str]:
    return {"Access-Control-Allow-Origin": config.CORS_ALLOW_ORIGIN, **_CORS_HEADERS}


@app.middleware("http")
async def cors_and_timing_middleware(request: Request, call_next):
    # Every path answers preflight with 200, including unknown ones.
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=_cors_headers())

    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    response.headers.update(_cors_headers())
    response.headers["X-Process-Time-Ms"] = f"{duration_ms:.2f}"
    log.info("request", extra={
        "path": request.url.path,
        "method": request.method,
        "status": response.status_code,
        "duration_ms": round(duration_ms, 2),
    })
    return response


# Global worker state (used only by /health in this file).
_poll_worker: FinetunePollWorker | None = None
_poll_task: asyncio.Task | None = None


@asynccontextmanager
async def lifespan(_app: FastAPI):
    global _poll_worker, _poll_task

    backend = "memory" if config.TEST_MODE else config.STORE_BACKEND
    settings, samples = build_stores(backend)
    set_stores(settings, samples)
    set_inference_client(OpenAIInferenceClient())
    log.info("Starting ReportSmith (store_backend=%s, test_mode=%s)", backend, config.TEST_MODE)

    if config.FINETUNE_POLL_INTERVAL_SECONDS > 0 and not config.TEST_MODE:
        _poll_worker = FinetunePollWorker(build_poller(), config.FINETUNE_POLL_INTERVAL_SECONDS)
        _poll_task = asyncio.create_task(_poll_worker.start())

    log.info("ReportSmith ready on %s:%s", config.HOST, config.PORT)

    try:
        yield
    finally:
        log.info("Shutting down ReportSmith")
        if _poll_worker is not None:
            _poll_worker.stop()
        if _poll_task is not None:
            _poll_task.cancel()
            try:
                await _poll_task
            except asyncio.CancelledError:
                pass
        _poll_worker = None
        _poll_task = None
        await drain_pending_triggers()
        set_inference_client(None)
        set_stores(None, None)
        settings.close()
        samples.close()


app.router.lifespan_context = lifespan


def _error_body(error: str, code: str, details: str | None = None) -> dict[str, Any]:
    return ErrorResponse(error=error, details=details, code=code).model_dump(exclude_none=True)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=_error_body("Invalid request body.", "VALIDATION_ERROR", str(exc.errors())),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(_request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail), f"HTTP_{exc.status_code}"),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(_request: Request, exc: Exception):
    log.error("Unhandled exception", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal server error", "INTERNAL_ERROR", str(exc)),
        headers=_cors_headers(),
    )


@app.get("/health")
async def health() -> dict[str, Any]:
    poll_status = "disabled"
    if _poll_task is not None:
        poll_status = "degraded" if _poll_task.done() else "running"

    ready = get_settings_store() is not None and get_inference_client() is not None
    return {
        "status": "healthy" if ready and poll_status != "degraded" else "degraded",
        "version": VERSION,
        "store_backend": "memory" if config.TEST_MODE else config.STORE_BACKEND,
        "test_mode": config.TEST_MODE,
        "poll_worker": poll_status,
        "pending_finetune_triggers": pending_trigger_count(),
        "timestamp": datetime.now(UTC).isoformat(),
    }


# ── Include route modules ──────────────────────────────────────────────────────
from api import reports as _reports_module
from api import training as _training_module

app.include_router(_reports_module.router)
app.include_router(_training_module.router)


def run() -> None:
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()
