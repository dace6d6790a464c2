"""Blocker resolution: find the in-progress job that will produce an artifact.

Before planning work that depends on a document that does not exist yet, a
worker asks which job, if any, is already producing it, so it can wait on
that job instead of planning duplicate work.

Candidates are searched in order of proximity to completion: RENDER jobs,
then EXECUTE jobs, then skeleton PLAN jobs. The first match wins. A result is
a snapshot: the blocker may finish right after it is returned, so callers
re-check instead of treating it as a guarantee.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from dialectic.jobs.errors import JobQueryError
from dialectic.models.jobs import (
    IN_PROGRESS_STATUSES,
    ExecuteJobPayload,
    JobStatus,
    PlanJobPayload,
    RenderJobPayload,
)
from dialectic.models.recipe import JobType
from dialectic.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from dialectic.jobs.store import JobQuery
    from dialectic.models.jobs import JobRow
    from dialectic.models.recipe import RecipeStep

log = get_logger(__name__)


@dataclass(frozen=True)
class RequiredArtifactIdentity:
    """The artifact a caller needs, scoped to one session iteration and model."""

    project_id: str | None
    session_id: str | None
    stage_slug: str | None
    iteration_number: int | None
    model_id: str | None
    document_key: str | None

    @property
    def is_complete(self) -> bool:
        """Whether every scoping field is present and the key is non-blank."""
        if not self.document_key or not self.document_key.strip():
            return False
        scope = (self.project_id, self.session_id, self.stage_slug, self.model_id)
        return all(scope) and isinstance(self.iteration_number, int)


@dataclass(frozen=True)
class BlockerResult:
    """The job found producing the required artifact."""

    id: str
    job_type: JobType
    status: JobStatus


@dataclass(frozen=True)
class BlockerResolverDeps:
    """Collaborators injected into :func:`resolve_next_blocker`.

    Attributes:
        jobs: Read access to persisted job rows.
        get_recipe_step: Looks up a recipe step by id, or returns None.
    """

    jobs: JobQuery
    get_recipe_step: Callable[[str], RecipeStep | None]


def _render_produces(job: JobRow, document_key: str, deps: BlockerResolverDeps) -> bool:
    return isinstance(job.payload, RenderJobPayload) and job.payload.document_key == document_key


def _execute_produces(job: JobRow, document_key: str, deps: BlockerResolverDeps) -> bool:
    payload = job.payload
    if not isinstance(payload, ExecuteJobPayload):
        return False
    if payload.output_type == document_key:
        return True
    return payload.canonical_path_params.contribution_type == document_key


def _plan_produces(job: JobRow, document_key: str, deps: BlockerResolverDeps) -> bool:
    payload = job.payload
    if not isinstance(payload, PlanJobPayload) or payload.planner_metadata is None:
        return False
    step_id = payload.planner_metadata.recipe_step_id
    step = deps.get_recipe_step(step_id)
    if step is None:
        log.debug("skeleton_step_not_found", job_id=job.id, recipe_step_id=step_id)
        return False
    return step.output_type == document_key


_SEARCH_ORDER: tuple[tuple[JobType, Callable[[JobRow, str, BlockerResolverDeps], bool]], ...] = (
    (JobType.RENDER, _render_produces),
    (JobType.EXECUTE, _execute_produces),
    (JobType.PLAN, _plan_produces),
)


def _in_scope(job: JobRow, identity: RequiredArtifactIdentity) -> bool:
    """Same project, in progress, and provably working for the same model."""
    if job.status not in IN_PROGRESS_STATUSES:
        return False
    if job.payload.project_id != identity.project_id:
        return False
    # A job that does not expose its model cannot be proven to match it.
    model_id = job.model_id
    return model_id is not None and model_id == identity.model_id


def resolve_next_blocker(
    deps: BlockerResolverDeps, identity: RequiredArtifactIdentity
) -> BlockerResult | None:
    """Find the in-progress job producing ``identity.document_key``.

    Args:
        deps: Job query and recipe step accessor.
        identity: The required artifact and its scope.

    Returns:
        The first matching job, RENDER before EXECUTE before PLAN, or None.
        An incomplete identity also yields None.

    Raises:
        JobQueryError: If the injected job query fails.
    """
    if not identity.is_complete:
        log.debug("blocker_identity_incomplete", document_key=identity.document_key)
        return None

    # is_complete guarantees these are set
    assert identity.session_id is not None
    assert identity.stage_slug is not None
    assert identity.iteration_number is not None
    assert identity.document_key is not None

    for job_type, produces in _SEARCH_ORDER:
        try:
            candidates = deps.jobs.find_jobs(
                session_id=identity.session_id,
                stage_slug=identity.stage_slug,
                iteration_number=identity.iteration_number,
                job_type=job_type,
                statuses=IN_PROGRESS_STATUSES,
            )
        except JobQueryError as e:
            log.error(
                "blocker_query_failed",
                job_type=str(job_type),
                session_id=identity.session_id,
                error=str(e),
            )
            raise

        for job in candidates:
            if _in_scope(job, identity) and produces(job, identity.document_key, deps):
                log.debug(
                    "blocker_found",
                    job_id=job.id,
                    job_type=str(job_type),
                    document_key=identity.document_key,
                )
                return BlockerResult(id=job.id, job_type=job.job_type, status=job.status)

    return None
