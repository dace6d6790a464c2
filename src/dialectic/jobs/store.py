"""Job storage protocol and dict-based implementation.

The planning core reads job state only through :class:`JobQuery`. Stores
return typed :class:`~dialectic.models.jobs.JobRow` values; payloads are
decoded when rows enter the store, never by the code consuming them.

InMemoryJobStore keeps rows in a dict and suits tests and single-process
schedulers. SqliteJobStore persists rows with stdlib sqlite3.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from dialectic.jobs.errors import DuplicateJobError, JobNotFoundError
from dialectic.models.jobs import INITIAL_STATUS, ExecuteJobPayload, JobRow, JobStatus
from dialectic.models.recipe import JobType

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable


@runtime_checkable
class JobQuery(Protocol):
    """Read-only job lookup injected into the blocker resolver."""

    def find_jobs(
        self,
        *,
        session_id: str,
        stage_slug: str,
        iteration_number: int,
        job_type: JobType,
        statuses: Collection[JobStatus],
    ) -> list[JobRow]:
        """Jobs in one session/stage/iteration of one type and status set.

        Results are ordered by creation time, oldest first.
        """
        ...


@runtime_checkable
class JobStore(JobQuery, Protocol):
    """Job storage used by schedulers that persist planner output."""

    def insert_job(self, job: JobRow) -> None:
        """Insert a new job. Raises DuplicateJobError if the id exists."""
        ...

    def get_job(self, job_id: str) -> JobRow | None:
        """Get a job by id, or None."""
        ...

    def children_of(self, parent_job_id: str) -> list[JobRow]:
        """Jobs whose ``parent_job_id`` is ``parent_job_id``."""
        ...

    def update_status(
        self,
        job_id: str,
        status: JobStatus,
        *,
        error_details: dict[str, Any] | None = None,
        results: dict[str, Any] | None = None,
    ) -> JobRow:
        """Move a job through the lifecycle and return the updated row.

        Raises:
            JobNotFoundError: If the job does not exist.
            InvalidTransitionError: If the lifecycle forbids the change.
        """
        ...


def child_job_row(
    parent: JobRow,
    payload: ExecuteJobPayload,
    job_id: str | None = None,
    *,
    default_max_retries: int | None = None,
) -> JobRow:
    """Wrap a planned payload in a new pending EXECUTE row under ``parent``.

    ``max_retries`` comes from the payload, else ``default_max_retries``, else
    the parent row.
    """
    max_retries = payload.max_retries
    if max_retries is None:
        max_retries = default_max_retries if default_max_retries is not None else parent.max_retries
    return JobRow(
        id=job_id or str(uuid.uuid4()),
        parent_job_id=parent.id,
        session_id=payload.session_id,
        user_id=parent.user_id,
        stage_slug=payload.stage_slug,
        iteration_number=payload.iteration_number,
        job_type=JobType.EXECUTE,
        status=INITIAL_STATUS,
        payload=payload,
        max_retries=max_retries,
        target_contribution_id=payload.target_contribution_id,
        is_test_job=bool(payload.is_test_job),
    )


def payload_identity(payload: ExecuteJobPayload) -> tuple[Any, ...]:
    """Key identifying what a planned job produces.

    Two payloads with the same identity describe the same work, so racing
    planners can be deduplicated on it.
    """
    return (
        payload.planner_metadata.recipe_step_id,
        payload.model_id,
        payload.source_group,
        payload.source_contribution_id,
        tuple(payload.inputs.document_ids),
    )


def insert_children(
    store: JobStore,
    parent: JobRow,
    payloads: Iterable[ExecuteJobPayload],
    *,
    default_max_retries: int | None = None,
) -> list[JobRow]:
    """Persist planned payloads under ``parent``, skipping work already planned.

    Returns:
        The rows that were inserted.
    """
    existing = {
        payload_identity(child.payload)
        for child in store.children_of(parent.id)
        if isinstance(child.payload, ExecuteJobPayload)
    }
    inserted: list[JobRow] = []
    for payload in payloads:
        identity = payload_identity(payload)
        if identity in existing:
            continue
        row = child_job_row(parent, payload, default_max_retries=default_max_retries)
        store.insert_job(row)
        existing.add(identity)
        inserted.append(row)
    return inserted


class InMemoryJobStore:
    """Dict-backed job store."""

    def __init__(self, jobs: Iterable[JobRow] = ()) -> None:
        self._jobs: dict[str, JobRow] = {}
        for job in jobs:
            self.insert_job(job)

    def insert_job(self, job: JobRow) -> None:
        if job.id in self._jobs:
            raise DuplicateJobError(job.id)
        self._jobs[job.id] = job

    def get_job(self, job_id: str) -> JobRow | None:
        return self._jobs.get(job_id)

    def children_of(self, parent_job_id: str) -> list[JobRow]:
        return [job for job in self._jobs.values() if job.parent_job_id == parent_job_id]

    def find_jobs(
        self,
        *,
        session_id: str,
        stage_slug: str,
        iteration_number: int,
        job_type: JobType,
        statuses: Collection[JobStatus],
    ) -> list[JobRow]:
        wanted = set(statuses)
        matches = [
            job
            for job in self._jobs.values()
            if job.session_id == session_id
            and job.stage_slug == stage_slug
            and job.iteration_number == iteration_number
            and job.job_type == job_type
            and job.status in wanted
        ]
        return sorted(matches, key=lambda job: job.created_at)

    def update_status(
        self,
        job_id: str,
        status: JobStatus,
        *,
        error_details: dict[str, Any] | None = None,
        results: dict[str, Any] | None = None,
    ) -> JobRow:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        updated = job.with_status(status)
        extra: dict[str, Any] = {}
        if error_details is not None:
            extra["error_details"] = error_details
        if results is not None:
            extra["results"] = results
        if extra:
            updated = updated.model_copy(update=extra)
        self._jobs[job_id] = updated
        return updated

    def __len__(self) -> int:
        return len(self._jobs)
