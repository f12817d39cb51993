"""
Sample store - append-only record of highly-rated reports.

Records are never updated or deleted here; retention is an external concern.
"""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Protocol

import httpx

import config as service_config
from errors import DependencyReadError, DependencyWriteError
from finetune.models import Sample
from stores.supabase_rest import SupabaseTable

log = logging.getLogger(__name__)


class SampleStore(Protocol):
    def insert(self, sample: Sample) -> None: ...

    def count(self) -> int: ...

    def list_all(self) -> list[Sample]: ...

    def close(self) -> None: ...


def _parse_created_at(value: Any) -> datetime | None:
    text = str(value or "").strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


class InMemorySampleStore:
    def __init__(self):
        self._rows: list[Sample] = []
        self._lock = threading.Lock()

    def insert(self, sample: Sample) -> None:
        stamped = sample.model_copy(update={"created_at": datetime.now(UTC)})
        with self._lock:
            self._rows.append(stamped)

    def count(self) -> int:
        with self._lock:
            return len(self._rows)

    def list_all(self) -> list[Sample]:
        with self._lock:
            return list(self._rows)

    def close(self) -> None:
        pass


class SqliteSampleStore:
    """``training_data`` table in the local SQLite file."""

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
                CREATE TABLE IF NOT EXISTS training_data (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    text TEXT NOT NULL,
                    ratings_json TEXT NOT NULL,
                    metadata_json TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_training_data_created
                ON training_data(created_at, id)
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

    def insert(self, sample: Sample) -> None:
        try:
            with self._get_conn() as conn:
                conn.execute("""
                    INSERT INTO training_data (text, ratings_json, metadata_json, created_at)
                    VALUES (?, ?, ?, ?)
                """, (
                    sample.text,
                    json.dumps(sample.ratings, ensure_ascii=False),
                    json.dumps(sample.metadata, ensure_ascii=False, default=str),
                    datetime.now(UTC).isoformat(),
                ))
                conn.commit()
        except sqlite3.Error as exc:
            raise DependencyWriteError(f"Failed to insert training data: {exc}") from exc

    def count(self) -> int:
        try:
            with self._get_conn() as conn:
                row = conn.execute("SELECT COUNT(*) AS n FROM training_data").fetchone()
        except sqlite3.Error as exc:
            raise DependencyReadError(f"Failed to count training data rows: {exc}") from exc
        return int(row["n"])

    def list_all(self) -> list[Sample]:
        try:
            with self._get_conn() as conn:
                rows = conn.execute("""
                    SELECT text, ratings_json, metadata_json, created_at
                    FROM training_data ORDER BY created_at ASC, id ASC
                """).fetchall()
        except sqlite3.Error as exc:
            raise DependencyReadError(f"Could not retrieve training data: {exc}") from exc
        return [
            Sample(
                text=row["text"],
                ratings=json.loads(row["ratings_json"] or "{}"),
                metadata=json.loads(row["metadata_json"] or "{}"),
                created_at=_parse_created_at(row["created_at"]),
            )
            for row in rows
        ]

    def close(self) -> None:
        pass


class SupabaseSampleStore:
    """``training_data`` table behind Supabase; the record lives in ``report_json``."""

    def __init__(self, table: SupabaseTable | None = None):
        self._table = table or SupabaseTable("training_data")

    def insert(self, sample: Sample) -> None:
        payload = {
            "report_json": {
                "text": sample.text,
                "ratings": sample.ratings,
                "metadata": sample.metadata,
            }
        }
        try:
            self._table.insert([payload])
        except httpx.HTTPError as exc:
            raise DependencyWriteError(f"Failed to insert training data: {exc}") from exc

    def count(self) -> int:
        try:
            return self._table.count()
        except (httpx.HTTPError, ValueError) as exc:
            raise DependencyReadError(f"Failed to count training data rows: {exc}") from exc

    def list_all(self) -> list[Sample]:
        try:
            rows = self._table.select({"select": "report_json,created_at", "order": "created_at.asc"})
        except (httpx.HTTPError, ValueError) as exc:
            raise DependencyReadError(f"Could not retrieve training data: {exc}") from exc
        samples: list[Sample] = []
        for row in rows:
            report = row.get("report_json") or {}
            if not isinstance(report, dict):
                report = {}
            samples.append(
                Sample(
                    text=str(report.get("text") or ""),
                    ratings=report.get("ratings") or {},
                    metadata=report.get("metadata") or {},
                    created_at=_parse_created_at(row.get("created_at")),
                )
            )
        return samples

    def close(self) -> None:
        self._table.close()
