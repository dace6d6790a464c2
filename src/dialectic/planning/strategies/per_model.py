"""Plan one consolidation job per model."""

from __future__ import annotations

from typing import TYPE_CHECKING

from dialectic.models.recipe import GranularityStrategy
from dialectic.planning.base import (
    build_execute_payload,
    build_inputs,
    require_plan_parent,
    resolve_header_context_id,
    split_header_contexts,
    validate_step,
)
from dialectic.planning.canonical import build_canonical_path_params
from dialectic.planning.errors import (
    EmptySourceDocumentsError,
    InvalidParentJobError,
    StepConfigurationError,
)
from dialectic.planning.registry import granularity_planner

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dialectic.models.documents import SourceDocument
    from dialectic.models.jobs import ExecuteJobPayload, JobRow
    from dialectic.models.recipe import RecipeStep


@granularity_planner(GranularityStrategy.PER_MODEL)
def plan_per_model(
    source_docs: Sequence[SourceDocument],
    parent_job: JobRow,
    step: RecipeStep,
    user_token: str | None,
) -> list[ExecuteJobPayload]:
    """Bundle the parent model's documents into exactly one job.

    The job starts a new lineage: its ``source_group`` is null until the
    producer stamps it with the new contribution's own id.
    """
    output_type, _ = validate_step(step)
    parent = require_plan_parent(parent_job, step)
    if not parent.model_id:
        raise InvalidParentJobError(step.id, parent_job.id, "has no model_id")
    if step.document_key() is None:
        raise StepConfigurationError(
            step.id, "per_model steps must declare an output document key or branch_key"
        )

    content, headers = split_header_contexts(source_docs)
    scoped = [doc for doc in content if doc.model_id in (None, parent.model_id)]
    if not scoped:
        raise EmptySourceDocumentsError(step.id, GranularityStrategy.PER_MODEL.value)

    header_context_id = resolve_header_context_id(step, headers, parent.model_id)
    payload = build_execute_payload(
        parent,
        step,
        canonical_path_params=build_canonical_path_params(
            scoped, output_type, None, parent.stage_slug
        ),
        inputs=build_inputs(scoped, header_context_id),
        source_group=None,
        source_contribution_id=None,
        user_token=user_token,
    )
    return [payload]
