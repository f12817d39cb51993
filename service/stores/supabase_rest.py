"""Thin PostgREST table client for Supabase-backed stores."""
from __future__ import annotations

import logging
from typing import Any

import httpx

import config

log = logging.getLogger(__name__)


class SupabaseTable:
    """One Supabase table addressed through ``/rest/v1/<table>``."""

    def __init__(
        self,
        table: str,
        *,
        url: str | None = None,
        service_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        base_url = (url or config.SUPABASE_URL).rstrip("/")
        key = service_key or config.SUPABASE_SERVICE_ROLE_KEY
        if not base_url or not key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must both be set")
        self.table = table
        self._client = httpx.Client(
            base_url=f"{base_url}/rest/v1",
            headers={
                "apikey": key,
                "Authorization": f"Bearer {key}",
                "Content-Type": "application/json",
            },
            timeout=timeout or config.SUPABASE_TIMEOUT_SECONDS,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, **kwargs: Any) -> httpx.Response:
        resp = self._client.request(method, f"/{self.table}", **kwargs)
        if resp.status_code >= 400:
            log.warning("supabase %s %s HTTP %s: %s", method, self.table, resp.status_code, resp.text[:500])
        resp.raise_for_status()
        return resp

    def select(self, params: dict[str, str], headers: dict[str, str] | None = None) -> list[dict[str, Any]]:
        resp = self._request("GET", params=params, headers=headers)
        rows = resp.json()
        return rows if isinstance(rows, list) else []

    def insert(self, rows: list[dict[str, Any]], params: dict[str, str] | None = None, prefer: str = "return=minimal") -> None:
        self._request("POST", params=params, json=rows, headers={"Prefer": prefer})

    def delete(self, params: dict[str, str]) -> None:
        self._request("DELETE", params=params)

    def count(self) -> int:
        resp = self._request("HEAD", params={"select": "*"}, headers={"Prefer": "count=exact"})
        # Content-Range: "0-4/5" or "*/0"
        content_range = resp.headers.get("content-range", "")
        _, _, total = content_range.partition("/")
        try:
            return int(total)
        except ValueError as exc:
            raise ValueError(f"unexpected Content-Range header: {content_range!r}") from exc
