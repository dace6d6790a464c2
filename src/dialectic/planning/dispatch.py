"""Single entry point choosing a planner by granularity strategy."""

from __future__ import annotations

from typing import TYPE_CHECKING

import dialectic.planning.strategies  # noqa: F401 - registers the planners
from dialectic.observability.logging import get_logger, planning_context
from dialectic.planning.errors import UnknownStrategyError
from dialectic.planning.registry import get_planner_registry

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dialectic.models.documents import SourceDocument
    from dialectic.models.jobs import ExecuteJobPayload, JobRow
    from dialectic.models.recipe import RecipeStep
    from dialectic.planning.registry import PlannerRegistry

log = get_logger(__name__)


def plan_step(
    source_docs: Sequence[SourceDocument],
    parent_job: JobRow,
    step: RecipeStep,
    user_token: str | None = None,
    *,
    registry: PlannerRegistry | None = None,
) -> list[ExecuteJobPayload]:
    """Expand ``step`` into child EXECUTE payloads.

    Args:
        source_docs: Documents resolved for the step's inputs.
        parent_job: The PLAN job being expanded.
        step: The recipe step to plan.
        user_token: Token used when the parent payload carries none.
        registry: Planner registry; defaults to the process-wide one.

    Returns:
        The child payloads, all built before any is returned.

    Raises:
        UnknownStrategyError: If no planner handles the step's strategy.
        PlanningError: If the step or its documents cannot be planned.
    """
    planners = registry if registry is not None else get_planner_registry()
    planner = planners.get(step.granularity_strategy)
    if planner is None:
        raise UnknownStrategyError(
            step.id, str(step.granularity_strategy), available=planners.strategies
        )

    with planning_context(
        parent_job.id,
        step.id,
        strategy=str(step.granularity_strategy),
        model_id=parent_job.model_id,
    ):
        payloads = planner(source_docs, parent_job, step, user_token)
        log.info(
            "planned_child_jobs",
            step_key=step.step_key,
            source_documents=len(source_docs),
            child_jobs=len(payloads),
        )
    return payloads
