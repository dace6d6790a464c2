"""Plan one job per source group."""

from __future__ import annotations

from typing import TYPE_CHECKING

from dialectic.models.documents import find_document, group_by_source_group
from dialectic.models.recipe import GranularityStrategy
from dialectic.observability.logging import get_logger
from dialectic.planning.base import (
    build_execute_payload,
    build_inputs,
    require_plan_parent,
    resolve_header_context_id,
    validate_step,
)
from dialectic.planning.canonical import build_canonical_path_params
from dialectic.planning.errors import MissingGroupAnchorError
from dialectic.planning.registry import granularity_planner

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dialectic.models.documents import SourceDocument
    from dialectic.models.jobs import ExecuteJobPayload, JobRow
    from dialectic.models.recipe import RecipeStep

log = get_logger(__name__)


@granularity_planner(GranularityStrategy.PER_SOURCE_GROUP, groups_documents=True)
def plan_per_source_group(
    source_docs: Sequence[SourceDocument],
    parent_job: JobRow,
    step: RecipeStep,
    user_token: str | None,
) -> list[ExecuteJobPayload]:
    """One job per distinct ``source_group``, anchored to the group's parent.

    The group key is the id of the document the group descends from; that
    document, not a group member, is the anchor. Documents without a group
    are ignored.

    Raises:
        MissingGroupAnchorError: If a group's anchor document was not supplied.
    """
    output_type, _ = validate_step(step)
    parent = require_plan_parent(parent_job, step)

    groups = group_by_source_group(source_docs)
    ungrouped = sum(1 for doc in source_docs if not doc.source_group)
    if ungrouped:
        log.debug("ungrouped_documents_ignored", step_id=step.id, count=ungrouped)

    # Resolve every anchor before building anything so a bad group fails the whole call.
    anchors: dict[str, SourceDocument] = {}
    for group_id in groups:
        anchor = find_document(source_docs, group_id)
        if anchor is None:
            raise MissingGroupAnchorError(step.id, group_id, [doc.id for doc in source_docs])
        anchors[group_id] = anchor

    payloads: list[ExecuteJobPayload] = []
    for group_id, members in groups.items():
        anchor = anchors[group_id]
        header_context_id = resolve_header_context_id(
            step, source_docs, anchor.model_id or parent.model_id
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
                source_contribution_id=anchor.id,
                user_token=user_token,
            )
        )
    return payloads
