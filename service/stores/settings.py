"""
Settings store - durable key/value map used as lifecycle coordination state.

Every operation is independently atomic and last-write-wins. There is no
versioning and no compare-and-swap; values are never cached in-process.
"""
from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, UTC
from pathlib import Path
from typing import Protocol

import httpx

import config as service_config
from errors import DependencyReadError, DependencyWriteError
from stores.supabase_rest import SupabaseTable

log = logging.getLogger(__name__)


class SettingsStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def upsert(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def close(self) -> None: ...


class InMemorySettingsStore:
    """Process-local settings map for development and tests."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._values: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def upsert(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = str(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._values)

    def close(self) -> None:
        pass


class SqliteSettingsStore:
    """
    ``app_settings`` table in a local SQLite file (WAL mode).

    Upsert uses ``INSERT ... ON CONFLICT(key) DO UPDATE`` so each write is a
    single atomic statement.
    """

    def __init__(self, db_path: str | Path | None = None):
        self.db_path = (
            Path(db_path).expanduser()
            if db_path is not None
            else service_config.SQLITE_DB_PATH
        )
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        with self._get_conn() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS app_settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    @contextmanager
    def _get_conn(self):
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def get(self, key: str) -> str | None:
        try:
            with self._get_conn() as conn:
                row = conn.execute(
                    "SELECT value FROM app_settings WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise DependencyReadError(f"Cannot read setting '{key}': {exc}") from exc
        return row["value"] if row else None

    def upsert(self, key: str, value: str) -> None:
        try:
            with self._get_conn() as conn:
                conn.execute("""
                    INSERT INTO app_settings (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """, (key, str(value), datetime.now(UTC).isoformat()))
                conn.commit()
        except sqlite3.Error as exc:
            raise DependencyWriteError(f"Cannot write setting '{key}': {exc}") from exc
        log.debug("setting %s upserted", key)

    def delete(self, key: str) -> None:
        try:
            with self._get_conn() as conn:
                conn.execute("DELETE FROM app_settings WHERE key = ?", (key,))
                conn.commit()
        except sqlite3.Error as exc:
            raise DependencyWriteError(f"Cannot delete setting '{key}': {exc}") from exc
        log.debug("setting %s deleted", key)

    def close(self) -> None:
        pass


class SupabaseSettingsStore:
    """``app_settings`` table behind Supabase's REST interface."""

    def __init__(self, table: SupabaseTable | None = None):
        self._table = table or SupabaseTable("app_settings")

    def get(self, key: str) -> str | None:
        try:
            rows = self._table.select({"select": "value", "key": f"eq.{key}", "limit": "1"})
        except (httpx.HTTPError, ValueError) as exc:
            raise DependencyReadError(f"Cannot read setting '{key}': {exc}") from exc
        if not rows:
            return None
        value = rows[0].get("value")
        return None if value is None else str(value)

    def upsert(self, key: str, value: str) -> None:
        try:
            self._table.insert(
                [{"key": key, "value": str(value)}],
                params={"on_conflict": "key"},
                prefer="resolution=merge-duplicates,return=minimal",
            )
        except httpx.HTTPError as exc:
            raise DependencyWriteError(f"Cannot write setting '{key}': {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._table.delete({"key": f"eq.{key}"})
        except httpx.HTTPError as exc:
            raise DependencyWriteError(f"Cannot delete setting '{key}': {exc}") from exc

    def close(self) -> None:
        self._table.close()
