"""Glue for workers that plan recipe steps and persist the results.

The planning core itself never writes. PlanningWorker is the thin layer a
scheduler uses to plan a step, store the children under their parent, and
look up blockers against the same store.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from dialectic.jobs.blockers import BlockerResolverDeps, resolve_next_blocker
from dialectic.jobs.store import insert_children
from dialectic.models.jobs import JobStatus, allowed_transitions
from dialectic.observability.logging import get_logger, planning_context
from dialectic.planning.dispatch import plan_step
from dialectic.planning.errors import PlanningError, StepConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dialectic.config import PlannerConfig
    from dialectic.jobs.blockers import BlockerResult, RequiredArtifactIdentity
    from dialectic.jobs.store import JobStore
    from dialectic.models.documents import SourceDocument
    from dialectic.models.jobs import JobRow
    from dialectic.models.recipe import Recipe

log = get_logger(__name__)


class PlanningWorker:
    """Plans steps of one recipe against one job store."""

    def __init__(
        self, recipe: Recipe, store: JobStore, config: PlannerConfig | None = None
    ) -> None:
        self.recipe = recipe
        self.store = store
        self._default_max_retries = config.default_max_retries if config else None

    @classmethod
    def from_config(cls, recipe: Recipe, config: PlannerConfig) -> PlanningWorker:
        """Open the configured store and apply the configured logging."""
        config.configure_logging()
        return cls(recipe, config.create_job_store(), config)

    def plan(
        self,
        parent_job: JobRow,
        step_id: str,
        source_docs: Sequence[SourceDocument],
        user_token: str | None = None,
    ) -> list[JobRow]:
        """Plan ``step_id`` for ``parent_job`` and insert the new children.

        The parent moves to ``waiting_for_children`` when children were
        planned and the parent is processing. A planning error fails the
        parent and is re-raised; nothing is inserted in that case.

        Returns:
            The inserted child rows.
        """
        step = self.recipe.get_step(step_id)
        if step is None:
            error = StepConfigurationError(step_id, f"not found in recipe {self.recipe.id}")
            self._fail(parent_job, error)
            raise error

        try:
            payloads = plan_step(source_docs, parent_job, step, user_token)
        except PlanningError as e:
            self._fail(parent_job, e)
            raise

        children = insert_children(
            self.store, parent_job, payloads, default_max_retries=self._default_max_retries
        )
        current = self.store.get_job(parent_job.id)
        if (
            children
            and current is not None
            and JobStatus.WAITING_FOR_CHILDREN in allowed_transitions(current.status)
        ):
            self.store.update_status(parent_job.id, JobStatus.WAITING_FOR_CHILDREN)
        return children

    def find_blocker(self, identity: RequiredArtifactIdentity) -> BlockerResult | None:
        """The in-progress job producing the required artifact, if any."""
        deps = BlockerResolverDeps(jobs=self.store, get_recipe_step=self.recipe.get_step)
        return resolve_next_blocker(deps, identity)

    def _fail(self, parent_job: JobRow, error: PlanningError) -> None:
        with planning_context(parent_job.id, error.step_id, model_id=parent_job.model_id):
            log.error("planning_failed", error_type=type(error).__name__, error=str(error))
        current = self.store.get_job(parent_job.id)
        if current is not None and not current.status.is_terminal:
            self.store.update_status(
                parent_job.id, JobStatus.FAILED, error_details=error.to_feedback()
            )
