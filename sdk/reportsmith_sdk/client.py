"""Thin Python SDK for the ReportSmith HTTP API."""
from __future__ import annotations

from typing import Any

import httpx


class ReportSmithClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8787",
        timeout: float = 120.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ReportSmithClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def health(self) -> dict[str, Any]:
        return self._client.get("/health").json()

    def generate_section(
        self,
        section: str,
        context: dict[str, Any] | None = None,
        custom_instructions: str | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"section": section, "context": context or {}}
        if custom_instructions:
            payload["customInstructions"] = custom_instructions
        resp = self._client.post("/reports/section", json=payload)
        resp.raise_for_status()
        return resp.json()

    def store_sample(
        self,
        final_report_text: str,
        ratings: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"finalReportText": final_report_text, "ratings": ratings}
        if metadata is not None:
            payload["metadata"] = metadata
        resp = self._client.post("/training/samples", json=payload)
        resp.raise_for_status()
        return resp.json()

    def launch_finetune(self, trigger: str | None = None) -> dict[str, Any]:
        resp = self._client.post("/training/finetune", json={"trigger": trigger} if trigger else {})
        resp.raise_for_status()
        return resp.json()

    def check_finetune_status(self) -> dict[str, Any]:
        resp = self._client.post("/training/finetune/status")
        resp.raise_for_status()
        return resp.json()

    def training_status(self) -> dict[str, Any]:
        resp = self._client.get("/training/status")
        resp.raise_for_status()
        return resp.json()
