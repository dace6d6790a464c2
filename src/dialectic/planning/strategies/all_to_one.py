"""Plan a single job that consumes every source document."""

from __future__ import annotations

from typing import TYPE_CHECKING

from dialectic.models.recipe import GranularityStrategy
from dialectic.planning.anchor import select_anchor_for_canonical_path_params
from dialectic.planning.base import (
    build_execute_payload,
    build_inputs,
    require_plan_parent,
    resolve_header_context_id,
    validate_step,
)
from dialectic.planning.canonical import build_canonical_path_params
from dialectic.planning.registry import granularity_planner

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dialectic.models.documents import SourceDocument
    from dialectic.models.jobs import ExecuteJobPayload, JobRow
    from dialectic.models.recipe import RecipeStep


@granularity_planner(GranularityStrategy.ALL_TO_ONE)
def plan_all_to_one(
    source_docs: Sequence[SourceDocument],
    parent_job: JobRow,
    step: RecipeStep,
    user_token: str | None,
) -> list[ExecuteJobPayload]:
    """One job over the whole input set, anchored to its most relevant document.

    The anchor may be absent: a step whose inputs match no document still
    plans its job, with no anchor fields in its path parameters.
    """
    output_type, _ = validate_step(step)
    parent = require_plan_parent(parent_job, step)

    anchor = select_anchor_for_canonical_path_params(step, source_docs)
    header_context_id = resolve_header_context_id(step, source_docs, parent.model_id)

    payload = build_execute_payload(
        parent,
        step,
        canonical_path_params=build_canonical_path_params(
            source_docs, output_type, anchor, parent.stage_slug
        ),
        inputs=build_inputs(source_docs, header_context_id),
        source_group=anchor.id if anchor is not None else None,
        source_contribution_id=anchor.id if anchor is not None else None,
        user_token=user_token,
    )
    return [payload]
