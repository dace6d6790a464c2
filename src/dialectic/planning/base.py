"""Building blocks shared by every granularity planner.

All planners validate the step and the parent job the same way and build
their EXECUTE payloads through :func:`build_execute_payload`, so the parent
context, planner metadata and intermediate flag are filled in one place.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from dialectic.models.documents import DocumentRelationships
from dialectic.models.jobs import ExecuteJobPayload, JobInputs, PlannerMetadata, PlanJobPayload
from dialectic.models.recipe import HEADER_CONTEXT_OUTPUT, InputType, JobType
from dialectic.planning.anchor import check_relevance
from dialectic.planning.errors import (
    InvalidParentJobError,
    MissingHeaderContextError,
    StepConfigurationError,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dialectic.models.documents import SourceDocument
    from dialectic.models.jobs import CanonicalPathParams, JobRow
    from dialectic.models.recipe import RecipeStep


def validate_step(step: RecipeStep) -> tuple[str, str]:
    """Check the fields every planner needs.

    Returns:
        The step's ``(output_type, prompt_template_id)``.

    Raises:
        StepConfigurationError: If either field is missing.
        MissingRelevanceError: If document inputs cannot be ranked.
    """
    if not step.output_type:
        raise StepConfigurationError(step.id, "output_type is required")
    if not step.prompt_template_id:
        raise StepConfigurationError(step.id, "prompt_template_id is required")
    check_relevance(step)
    return step.output_type, step.prompt_template_id


def require_plan_parent(parent_job: JobRow, step: RecipeStep) -> PlanJobPayload:
    """The parent's PLAN payload.

    Raises:
        InvalidParentJobError: If the parent is not a PLAN job.
    """
    if parent_job.job_type != JobType.PLAN or not isinstance(parent_job.payload, PlanJobPayload):
        raise InvalidParentJobError(step.id, parent_job.id, "is not a PLAN job")
    return parent_job.payload


def is_header_context(doc: SourceDocument) -> bool:
    """Whether ``doc`` is a header context artifact."""
    return HEADER_CONTEXT_OUTPUT in (doc.contribution_type, doc.effective_document_key)


def split_header_contexts(
    documents: Sequence[SourceDocument],
) -> tuple[list[SourceDocument], list[SourceDocument]]:
    """Split ``documents`` into ``(content documents, header contexts)``."""
    content: list[SourceDocument] = []
    headers: list[SourceDocument] = []
    for doc in documents:
        (headers if is_header_context(doc) else content).append(doc)
    return content, headers


def resolve_header_context_id(
    step: RecipeStep,
    documents: Sequence[SourceDocument],
    model_id: str | None,
) -> str | None:
    """Id of the header context a job of ``step`` reads, if it reads one.

    A header context produced by ``model_id`` is preferred. When none carries
    a model, a single unscoped header context is accepted.

    Raises:
        MissingHeaderContextError: If a required header context input has no
            matching document.
    """
    rules = [r for r in step.inputs_required if r.type == InputType.HEADER_CONTEXT]
    if not rules:
        return None

    headers = [doc for doc in documents if is_header_context(doc)]
    for doc in headers:
        if model_id is not None and doc.model_id == model_id:
            return doc.id
    unscoped = [doc for doc in headers if doc.model_id is None]
    if unscoped:
        return unscoped[0].id
    if model_id is None and headers:
        return headers[0].id

    if any(r.required for r in rules):
        raise MissingHeaderContextError(step.id, model_id)
    return None


def typed_input_ids(documents: Sequence[SourceDocument], *, plural: bool = True) -> dict[str, Any]:
    """Input references keyed by contribution type.

    With ``plural`` the keys are ``{type}_ids`` holding lists; otherwise
    ``{type}_id`` holding the first id of each type.
    """
    grouped: dict[str, list[str]] = {}
    for doc in documents:
        if doc.contribution_type:
            grouped.setdefault(doc.contribution_type, []).append(doc.id)
    if plural:
        keyed: dict[str, Any] = {f"{kind}_ids": ids for kind, ids in grouped.items()}
    else:
        keyed = {f"{kind}_id": ids[0] for kind, ids in grouped.items()}
    # document_ids and header_context_id are reserved JobInputs fields
    return {key: value for key, value in keyed.items() if key not in JobInputs.model_fields}


def build_inputs(
    documents: Sequence[SourceDocument],
    header_context_id: str | None = None,
    *,
    plural: bool = True,
) -> JobInputs:
    """Input references for a job consuming ``documents``."""
    return JobInputs(
        document_ids=[doc.id for doc in documents],
        header_context_id=header_context_id,
        **typed_input_ids(documents, plural=plural),
    )


def build_execute_payload(
    parent: PlanJobPayload,
    step: RecipeStep,
    *,
    canonical_path_params: CanonicalPathParams,
    inputs: JobInputs,
    source_group: str | None,
    source_contribution_id: str | None,
    user_token: str | None,
) -> ExecuteJobPayload:
    """Assemble one child EXECUTE payload from the parent PLAN context.

    Context fields are copied from the parent verbatim. ``user_jwt`` is the
    parent's token when it has one, else ``user_token``.
    """
    output_type, prompt_template_id = validate_step(step)
    context = parent.context_fields()
    context["user_jwt"] = parent.user_jwt or user_token
    return ExecuteJobPayload(
        **context,
        prompt_template_id=prompt_template_id,
        output_type=output_type,
        canonical_path_params=canonical_path_params,
        document_relationships=DocumentRelationships(source_group=source_group),
        inputs=inputs,
        source_contribution_id=source_contribution_id,
        planner_metadata=PlannerMetadata(recipe_step_id=step.id),
        is_intermediate=step.is_intermediate,
        document_key=step.document_key(),
    )
