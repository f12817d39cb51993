"""OpenAI-compatible inference client: chat completions, dataset upload, tuning jobs."""
from __future__ import annotations

import logging
import time
from typing import Any, BinaryIO, Protocol

import httpx

import config
from errors import RemoteServiceError
from finetune.models import JobStatus

log = logging.getLogger(__name__)


class InferenceClient(Protocol):
    async def complete(
        self,
        model_id: str,
        messages: list[dict[str, str]],
        temperature: float,
        max_output_tokens: int,
    ) -> str: ...

    async def upload_dataset(self, content: bytes | BinaryIO, purpose: str, filename: str = ...) -> str: ...

    async def create_tuning_job(self, base_model_id: str, dataset_id: str) -> str: ...

    async def get_job_status(self, job_handle: str) -> JobStatus: ...


class OpenAIInferenceClient:
    """
    Talks to ``/chat/completions``, ``/files`` and ``/fine_tuning/jobs``.

    No retries: callers decide whether a failure is worth repeating. Every
    transport or HTTP error surfaces as ``RemoteServiceError`` carrying the
    provider's message.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or config.OPENAI_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else config.OPENAI_API_KEY
        self.timeout = timeout or config.INFERENCE_TIMEOUT_SECONDS
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers: dict[str, str] = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _send(self, operation: str, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        if not self.api_key:
            raise RemoteServiceError("OPENAI_API_KEY is not set")
        try:
            async with self._client() as client:
                resp = await client.request(method, path, **kwargs)
                if resp.status_code >= 400:
                    log.warning("%s HTTP %s: %s", operation, resp.status_code, resp.text[:500])
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise RemoteServiceError(f"{operation} failed: {_provider_message(exc.response)}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise RemoteServiceError(f"{operation} failed: {exc}") from exc
        if not isinstance(data, dict):
            raise RemoteServiceError(f"{operation} failed: unexpected response payload")
        return data

    async def complete(
        self,
        model_id: str,
        messages: list[dict[str, str]],
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        body = {
            "model": model_id,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_output_tokens,
        }
        started = time.monotonic()
        data = await self._send("chat completion", "POST", "/chat/completions", json=body)
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise RemoteServiceError("chat completion failed: response has no choices") from exc
        log.info(
            "completion model=%s latency_ms=%d",
            model_id, int((time.monotonic() - started) * 1000),
        )
        return str(content or "")

    async def upload_dataset(
        self,
        content: bytes | BinaryIO,
        purpose: str,
        filename: str = "training.jsonl",
    ) -> str:
        data = await self._send(
            "dataset upload",
            "POST",
            "/files",
            data={"purpose": purpose},
            files={"file": (filename, content, "application/jsonl")},
        )
        dataset_id = str(data.get("id") or "")
        if not dataset_id:
            raise RemoteServiceError("dataset upload failed: response has no file id")
        log.info("Uploaded training file id=%s", dataset_id)
        return dataset_id

    async def create_tuning_job(self, base_model_id: str, dataset_id: str) -> str:
        data = await self._send(
            "tuning job creation",
            "POST",
            "/fine_tuning/jobs",
            json={"model": base_model_id, "training_file": dataset_id},
        )
        job_id = str(data.get("id") or "")
        if not job_id:
            raise RemoteServiceError("tuning job creation failed: response has no job id")
        log.info("Fine-tune job created id=%s status=%s", job_id, data.get("status"))
        return job_id

    async def get_job_status(self, job_handle: str) -> JobStatus:
        data = await self._send("tuning job status", "GET", f"/fine_tuning/jobs/{job_handle}")
        status = str(data.get("status") or "").strip()
        if not status:
            raise RemoteServiceError("tuning job status failed: response has no status")
        model = data.get("fine_tuned_model")
        return JobStatus(status=status, resulting_model_id=str(model) if model else None)


def _provider_message(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}: {resp.text[:200]}"
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return f"HTTP {resp.status_code}: {error['message']}"
    return f"HTTP {resp.status_code}"
