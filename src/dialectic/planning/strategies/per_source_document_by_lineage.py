"""Plan one job per lineage group.

A lineage group is a root document plus every document that names it as its
``source_group``. Only the immediate parent counts: a document descending
from a descendant joins its parent's group, not the chain's original root.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from dialectic.models.documents import find_document, group_by_lineage
from dialectic.models.recipe import GranularityStrategy
from dialectic.observability.logging import get_logger
from dialectic.planning.anchor import NoAnchorRequired, require_anchor, select_anchor
from dialectic.planning.base import (
    build_execute_payload,
    build_inputs,
    require_plan_parent,
    resolve_header_context_id,
    split_header_contexts,
    validate_step,
)
from dialectic.planning.canonical import build_canonical_path_params
from dialectic.planning.registry import granularity_planner

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dialectic.models.documents import SourceDocument
    from dialectic.models.jobs import ExecuteJobPayload, JobRow
    from dialectic.models.recipe import RecipeStep

log = get_logger(__name__)


def _lineage_anchor(
    step: RecipeStep,
    group_id: str,
    members: list[SourceDocument],
    source_docs: Sequence[SourceDocument],
) -> SourceDocument | None:
    """The lineage root when it was supplied, else the group's ranked anchor."""
    root = find_document(source_docs, group_id)
    if root is not None:
        return root
    return require_anchor(step, members)


@granularity_planner(GranularityStrategy.PER_SOURCE_DOCUMENT_BY_LINEAGE, groups_documents=True)
def plan_per_source_document_by_lineage(
    source_docs: Sequence[SourceDocument],
    parent_job: JobRow,
    step: RecipeStep,
    user_token: str | None,
) -> list[ExecuteJobPayload]:
    """One job per lineage group, anchored to the group's root document."""
    output_type, _ = validate_step(step)
    parent = require_plan_parent(parent_job, step)

    content, headers = split_header_contexts(source_docs)
    anchored = not isinstance(select_anchor(step, source_docs), NoAnchorRequired)

    payloads: list[ExecuteJobPayload] = []
    for group_id, members in group_by_lineage(content).items():
        anchor = _lineage_anchor(step, group_id, members, source_docs) if anchored else None
        model_id = anchor.model_id if anchor is not None else members[0].model_id
        header_context_id = resolve_header_context_id(
            step, headers, model_id or parent.model_id
        )
        payloads.append(
            build_execute_payload(
                parent,
                step,
                canonical_path_params=build_canonical_path_params(
                    members, output_type, anchor, parent.stage_slug
                ),
                inputs=build_inputs(members, header_context_id),
                source_group=group_id,
                source_contribution_id=group_id,
                user_token=user_token,
            )
        )

    log.debug("lineage_groups_planned", step_id=step.id, groups=len(payloads))
    return payloads
