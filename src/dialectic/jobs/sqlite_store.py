"""SQLite-backed job storage.

SqliteJobStore implements the JobStore protocol using stdlib sqlite3. The
payload, results and error details are JSON columns; rows are decoded into
typed JobRow values on read. A row whose payload no longer fits its job type
is logged and skipped rather than handed to planning code.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Any

from dialectic.jobs.errors import DuplicateJobError, JobNotFoundError, JobQueryError
from dialectic.models.jobs import JobRow, JobStatus
from dialectic.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Collection
    from datetime import datetime

    from dialectic.models.recipe import JobType

log = get_logger(__name__)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS dialectic_generation_jobs (
    id                     TEXT PRIMARY KEY,
    parent_job_id          TEXT,
    prerequisite_job_id    TEXT,
    session_id             TEXT NOT NULL,
    user_id                TEXT,
    stage_slug             TEXT NOT NULL,
    iteration_number       INTEGER NOT NULL,
    job_type               TEXT NOT NULL,
    status                 TEXT NOT NULL,
    payload                JSON NOT NULL,
    attempt_count          INTEGER NOT NULL DEFAULT 0,
    max_retries            INTEGER NOT NULL DEFAULT 3,
    results                JSON,
    error_details          JSON,
    target_contribution_id TEXT,
    is_test_job            INTEGER NOT NULL DEFAULT 0,
    created_at             TEXT NOT NULL,
    started_at             TEXT,
    completed_at           TEXT
);
CREATE INDEX IF NOT EXISTS idx_jobs_scope
    ON dialectic_generation_jobs(session_id, stage_slug, iteration_number, job_type, status);
CREATE INDEX IF NOT EXISTS idx_jobs_parent ON dialectic_generation_jobs(parent_job_id);
"""

_COLUMNS = (
    "id",
    "parent_job_id",
    "prerequisite_job_id",
    "session_id",
    "user_id",
    "stage_slug",
    "iteration_number",
    "job_type",
    "status",
    "payload",
    "attempt_count",
    "max_retries",
    "results",
    "error_details",
    "target_contribution_id",
    "is_test_job",
    "created_at",
    "started_at",
    "completed_at",
)


def _dump_json(value: Any) -> str | None:
    return None if value is None else json.dumps(value)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class SqliteJobStore:
    """SQLite-backed job store."""

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        *,
        _conn: sqlite3.Connection | None = None,
    ) -> None:
        """Open or create a job database.

        Args:
            db_path: Path to ``.db`` file, or ``":memory:"`` for in-memory.
            _conn: Pre-existing connection (for testing). If provided,
                   *db_path* is ignored.
        """
        if _conn is not None:
            self._conn = _conn
            self._db_path = ":memory:"
        else:
            self._db_path = str(db_path) if isinstance(db_path, Path) else db_path
            self._conn = sqlite3.connect(self._db_path, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.executescript(_SCHEMA)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    @property
    def db_path(self) -> str:
        return self._db_path

    # -- Encoding --------------------------------------------------------------

    @staticmethod
    def _encode(job: JobRow) -> tuple[Any, ...]:
        return (
            job.id,
            job.parent_job_id,
            job.prerequisite_job_id,
            job.session_id,
            job.user_id,
            job.stage_slug,
            job.iteration_number,
            str(job.job_type),
            str(job.status),
            json.dumps(job.payload.to_json_dict()),
            job.attempt_count,
            job.max_retries,
            _dump_json(job.results),
            _dump_json(job.error_details),
            job.target_contribution_id,
            int(job.is_test_job),
            _iso(job.created_at),
            _iso(job.started_at),
            _iso(job.completed_at),
        )

    @staticmethod
    def _decode(row: sqlite3.Row) -> JobRow | None:
        data = {key: row[key] for key in row.keys()}
        data["is_test_job"] = bool(data["is_test_job"])
        try:
            return JobRow.model_validate(data)
        except ValueError as e:  # pydantic.ValidationError included
            log.warning("job_row_undecodable", job_id=data.get("id"), error=str(e))
            return None

    # -- JobStore protocol -----------------------------------------------------

    def insert_job(self, job: JobRow) -> None:
        placeholders = ", ".join("?" for _ in _COLUMNS)
        try:
            self._conn.execute(
                f"INSERT INTO dialectic_generation_jobs ({', '.join(_COLUMNS)}) "
                f"VALUES ({placeholders})",
                self._encode(job),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateJobError(job.id) from e
        except sqlite3.Error as e:
            raise JobQueryError("insert_job", str(e)) from e

    def get_job(self, job_id: str) -> JobRow | None:
        row = self._fetch_one("get_job", job_id)
        return self._decode(row) if row is not None else None

    def children_of(self, parent_job_id: str) -> list[JobRow]:
        rows = self._query(
            "children_of",
            "SELECT * FROM dialectic_generation_jobs WHERE parent_job_id = ? "
            "ORDER BY created_at, rowid",
            (parent_job_id,),
        )
        return [job for job in map(self._decode, rows) if job is not None]

    def find_jobs(
        self,
        *,
        session_id: str,
        stage_slug: str,
        iteration_number: int,
        job_type: JobType,
        statuses: Collection[JobStatus],
    ) -> list[JobRow]:
        status_values = [str(s) for s in statuses]
        if not status_values:
            return []
        placeholders = ", ".join("?" for _ in status_values)
        rows = self._query(
            "find_jobs",
            "SELECT * FROM dialectic_generation_jobs "
            "WHERE session_id = ? AND stage_slug = ? AND iteration_number = ? "
            f"AND job_type = ? AND status IN ({placeholders}) "
            "ORDER BY created_at, rowid",
            (session_id, stage_slug, iteration_number, str(job_type), *status_values),
        )
        return [job for job in map(self._decode, rows) if job is not None]

    def update_status(
        self,
        job_id: str,
        status: JobStatus,
        *,
        error_details: dict[str, Any] | None = None,
        results: dict[str, Any] | None = None,
    ) -> JobRow:
        current = self.get_job(job_id)
        if current is None:
            raise JobNotFoundError(job_id)
        updated = current.with_status(status)
        if error_details is not None or results is not None:
            updated = updated.model_copy(
                update={
                    "error_details": error_details
                    if error_details is not None
                    else updated.error_details,
                    "results": results if results is not None else updated.results,
                }
            )
        try:
            self._conn.execute(
                "UPDATE dialectic_generation_jobs SET status = ?, attempt_count = ?, "
                "results = ?, error_details = ?, started_at = ?, completed_at = ? "
                "WHERE id = ?",
                (
                    str(updated.status),
                    updated.attempt_count,
                    _dump_json(updated.results),
                    _dump_json(updated.error_details),
                    _iso(updated.started_at),
                    _iso(updated.completed_at),
                    job_id,
                ),
            )
        except sqlite3.Error as e:
            raise JobQueryError("update_status", str(e)) from e
        return updated

    # -- Helpers ---------------------------------------------------------------

    def _fetch_one(self, operation: str, job_id: str) -> sqlite3.Row | None:
        rows = self._query(
            operation, "SELECT * FROM dialectic_generation_jobs WHERE id = ?", (job_id,)
        )
        return rows[0] if rows else None

    def _query(self, operation: str, sql: str, params: tuple[Any, ...]) -> list[sqlite3.Row]:
        try:
            return list(self._conn.execute(sql, params).fetchall())
        except sqlite3.Error as e:
            raise JobQueryError(operation, str(e)) from e

    def __len__(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) FROM dialectic_generation_jobs").fetchone()
        return int(row[0])
