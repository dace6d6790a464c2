"""Plan one job per source document."""

from __future__ import annotations

from typing import TYPE_CHECKING

from dialectic.models.recipe import GranularityStrategy
from dialectic.observability.logging import get_logger
from dialectic.planning.anchor import DeriveFromHeaderContext, select_anchor
from dialectic.planning.base import (
    build_execute_payload,
    build_inputs,
    is_header_context,
    require_plan_parent,
    resolve_header_context_id,
    split_header_contexts,
    validate_step,
)
from dialectic.planning.canonical import build_canonical_path_params
from dialectic.planning.errors import EmptySourceDocumentsError
from dialectic.planning.registry import granularity_planner

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dialectic.models.documents import SourceDocument
    from dialectic.models.jobs import ExecuteJobPayload, JobRow
    from dialectic.models.recipe import RecipeStep

log = get_logger(__name__)


@granularity_planner(GranularityStrategy.PER_SOURCE_DOCUMENT, groups_documents=True)
def plan_per_source_document(
    source_docs: Sequence[SourceDocument],
    parent_job: JobRow,
    step: RecipeStep,
    user_token: str | None,
) -> list[ExecuteJobPayload]:
    """One job per document of the parent's model, anchored to that document.

    Header contexts travel with the documents they describe as
    ``inputs.header_context_id``. They get jobs of their own only when the
    step consumes nothing but header contexts, or when no other documents
    were supplied. Documents from other models are skipped; when none are
    left the step plans nothing for this model.
    """
    output_type, _ = validate_step(step)
    parent = require_plan_parent(parent_job, step)
    if not source_docs:
        raise EmptySourceDocumentsError(step.id, GranularityStrategy.PER_SOURCE_DOCUMENT.value)

    targets, headers = split_header_contexts(source_docs)
    if isinstance(select_anchor(step, source_docs), DeriveFromHeaderContext) or not targets:
        targets, headers = list(source_docs), []

    targets = [doc for doc in targets if doc.model_id == parent.model_id]
    if not targets:
        log.debug(
            "per_source_document_no_model_documents",
            step_id=step.id,
            model_id=parent.model_id,
        )
        return []

    payloads: list[ExecuteJobPayload] = []
    for doc in targets:
        if is_header_context(doc):
            header_context_id: str | None = doc.id
        else:
            header_context_id = resolve_header_context_id(step, headers, parent.model_id)
        payloads.append(
            build_execute_payload(
                parent,
                step,
                canonical_path_params=build_canonical_path_params(
                    [doc], output_type, doc, parent.stage_slug
                ),
                inputs=build_inputs([doc], header_context_id, plural=False),
                source_group=doc.id,
                source_contribution_id=doc.source_group,
                user_token=user_token,
            )
        )

    log.debug(
        "per_source_document_planned",
        step_id=step.id,
        documents=len(targets),
        header_contexts=len(headers),
    )
    return payloads
