"""Run history persisted in SQLite.

Keeps one row per export run so the directory of the last successful run can
be looked up after the process exits.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

ISO_TIMESTAMP_SUFFIX = "Z"
SUCCESS_STATUSES = ("completed", "completed_with_skips")


def _utc_now() -> str:
    """Return a UTC timestamp string with second precision."""
    return datetime.utcnow().replace(microsecond=0).isoformat() + ISO_TIMESTAMP_SUFFIX


class RunStore:
    """High-level helper for the run history database."""

    DEFAULT_DB_PATH = Path("database/domeggook_export.db")

    def __init__(self, db_path: Optional[Union[str, Path]] = None, auto_initialize: bool = True) -> None:
        path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        if not path.is_absolute():
            path = Path.cwd() / path
        self.db_path = path
        if auto_initialize:
            self.initialize()

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------
    def initialize(self) -> None:
        """Initialise database directory and ensure schema exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS runs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    started_at TEXT NOT NULL,
                    completed_at TEXT,
                    status TEXT NOT NULL DEFAULT 'running',
                    run_directory TEXT NOT NULL,
                    total_urls INTEGER NOT NULL DEFAULT 0,
                    successful_urls INTEGER NOT NULL DEFAULT 0,
                    skipped_urls INTEGER NOT NULL DEFAULT 0,
                    metadata TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_runs_status ON runs(status);
                CREATE INDEX IF NOT EXISTS idx_runs_completed_at ON runs(completed_at);
                """
            )
            conn.commit()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    # ------------------------------------------------------------------
    # Run bookkeeping
    # ------------------------------------------------------------------
    def start_run(self, run_directory: Union[str, Path], total_urls: int = 0) -> int:
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO runs (started_at, run_directory, total_urls)
                VALUES (?, ?, ?)
                """,
                (_utc_now(), str(run_directory), total_urls),
            )
            run_id = cur.lastrowid
            conn.commit()
        return run_id

    def complete_run(
        self,
        run_id: int,
        *,
        status: str = "completed",
        successful_urls: int = 0,
        skipped_urls: int = 0,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE runs
                   SET status = ?,
                       completed_at = ?,
                       successful_urls = ?,
                       skipped_urls = ?,
                       metadata = COALESCE(?, metadata)
                 WHERE id = ?
                """,
                (
                    status,
                    _utc_now(),
                    successful_urls,
                    skipped_urls,
                    self._to_json(metadata),
                    run_id,
                ),
            )
            conn.commit()

    def last_successful_run_directory(self) -> Optional[str]:
        """Directory of the most recently finished successful run, if any."""
        placeholders = ",".join("?" for _ in SUCCESS_STATUSES)
        with self._connect() as conn:
            row = conn.execute(
                f"""
                SELECT run_directory FROM runs
                 WHERE status IN ({placeholders})
                 ORDER BY completed_at DESC, id DESC
                 LIMIT 1
                """,
                SUCCESS_STATUSES,
            ).fetchone()
        return row["run_directory"] if row else None

    def recent_runs(self, limit: int = 10) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM runs ORDER BY id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [self._row_to_dict(row) for row in rows]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _row_to_dict(self, row: sqlite3.Row) -> Dict[str, Any]:
        data = dict(row)
        data["metadata"] = self._from_json(data.get("metadata"), default={})
        return data

    @staticmethod
    def _to_json(value: Optional[Any]) -> Optional[str]:
        if value is None:
            return None
        return json.dumps(value, sort_keys=True, ensure_ascii=False)

    @staticmethod
    def _from_json(value: Optional[str], default: Any) -> Any:
        if not value:
            return default
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return default
