"""Factory functions for planning and blocker-resolution tests.

Conventions:
- Project ``proj-1``, session ``sess-1``, iteration 1.
- Parent PLAN jobs work for ``model-a`` unless told otherwise.
- Documents are named ``{model}_{attempt}_{document_key}.md``.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from dialectic.models.documents import SourceDocument
from dialectic.models.jobs import JobRow, JobStatus
from dialectic.models.recipe import RecipeStep

PROJECT_ID = "proj-1"
SESSION_ID = "sess-1"
ITERATION = 1

_BASE_TIME = datetime(2026, 1, 1, tzinfo=UTC)


def make_step(**overrides: Any) -> RecipeStep:
    """Build an EXECUTE step over thesis business cases.

    The default step reads one ``business_case`` document from the thesis
    stage with relevance 1.0 and produces ``antithesis`` critiques.
    """
    data: dict[str, Any] = {
        "id": "step-1",
        "step_key": "antithesis_critique",
        "step_slug": "antithesis-critique",
        "step_name": "Critique business case",
        "job_type": "EXECUTE",
        "prompt_type": "Turn",
        "prompt_template_id": "tmpl-1",
        "granularity_strategy": "per_source_document",
        "output_type": "business_case_critique",
        "inputs_required": [
            {"type": "document", "slug": "thesis", "document_key": "business_case"},
        ],
        "inputs_relevance": [{"document_key": "business_case", "relevance": 1.0}],
        "outputs_required": {
            "documents": [{"document_key": "business_case_critique", "file_type": "markdown"}],
        },
    }
    data.update(overrides)
    return RecipeStep.model_validate(data)


def make_doc(
    doc_id: str,
    *,
    stage: str = "thesis",
    document_key: str | None = "business_case",
    contribution_type: str | None = None,
    model_id: str | None = "model-a",
    model_name: str | None = None,
    file_name: str | None = None,
    source_group: str | None = None,
    attempt_count: int | None = 0,
) -> SourceDocument:
    """Build a source document; the file name defaults to the naming convention."""
    slug = model_name or model_id
    if file_name is None and slug and document_key:
        file_name = f"{slug}_{attempt_count or 0}_{document_key}.md"
    relationships = {"source_group": source_group} if source_group is not None else None
    return SourceDocument(
        id=doc_id,
        content=f"content of {doc_id}",
        stage=stage,
        document_key=document_key,
        contribution_type=contribution_type or stage,
        model_id=model_id,
        model_name=model_name or model_id,
        file_name=file_name,
        attempt_count=attempt_count,
        session_id=SESSION_ID,
        iteration_number=ITERATION,
        document_relationships=relationships,
    )


def make_seed_prompt(doc_id: str = "seed-1") -> SourceDocument:
    """The stage's seed prompt: no model, no file name."""
    return SourceDocument(
        id=doc_id,
        content="seed prompt",
        stage="thesis",
        document_key="seed_prompt",
        contribution_type="seed_prompt",
    )


def make_header_context(doc_id: str, model_id: str | None = "model-a") -> SourceDocument:
    """A header context produced by the planning step for ``model_id``."""
    return make_doc(
        doc_id,
        document_key="header_context",
        contribution_type="header_context",
        model_id=model_id,
    )


def context_payload(**overrides: Any) -> dict[str, Any]:
    """Persisted-form parent context (camelCase keys)."""
    payload: dict[str, Any] = {
        "projectId": PROJECT_ID,
        "sessionId": SESSION_ID,
        "stageSlug": "antithesis",
        "iterationNumber": ITERATION,
        "model_id": "model-a",
        "walletId": "wallet-1",
        "user_jwt": "jwt-parent",
    }
    payload.update(overrides)
    return payload


def make_plan_job(job_id: str = "plan-1", **payload_overrides: Any) -> JobRow:
    """A processing PLAN job that planners expand."""
    return JobRow.model_validate(
        {
            "id": job_id,
            "session_id": SESSION_ID,
            "user_id": "user-1",
            "stage_slug": payload_overrides.get("stageSlug", "antithesis"),
            "iteration_number": ITERATION,
            "job_type": "PLAN",
            "status": "processing",
            "payload": context_payload(**payload_overrides),
            "created_at": _BASE_TIME,
        }
    )


def _row(
    job_id: str,
    job_type: str,
    payload: dict[str, Any],
    status: JobStatus | str,
    order: int,
    stage_slug: str,
) -> JobRow:
    return JobRow.model_validate(
        {
            "id": job_id,
            "session_id": SESSION_ID,
            "stage_slug": stage_slug,
            "iteration_number": ITERATION,
            "job_type": job_type,
            "status": str(status),
            "payload": payload,
            "created_at": _BASE_TIME + timedelta(seconds=order),
        }
    )


def make_render_job(
    job_id: str,
    document_key: str,
    *,
    model_id: str | None = "model-a",
    status: JobStatus | str = JobStatus.PENDING,
    project_id: str = PROJECT_ID,
    stage_slug: str = "antithesis",
    order: int = 0,
) -> JobRow:
    payload = context_payload(projectId=project_id, stageSlug=stage_slug, model_id=model_id)
    payload["documentKey"] = document_key
    return _row(job_id, "RENDER", payload, status, order, stage_slug)


def make_execute_job(
    job_id: str,
    output_type: str,
    *,
    model_id: str | None = "model-a",
    anchor_model: str | None = None,
    contribution_type: str | None = None,
    status: JobStatus | str = JobStatus.PROCESSING,
    project_id: str = PROJECT_ID,
    stage_slug: str = "antithesis",
    order: int = 0,
) -> JobRow:
    payload = context_payload(projectId=project_id, stageSlug=stage_slug, model_id=model_id)
    payload.update(
        {
            "job_type": "execute",
            "prompt_template_id": "tmpl-1",
            "output_type": output_type,
            "canonicalPathParams": {
                "contributionType": contribution_type or output_type,
                "stageSlug": stage_slug,
                "sourceAnchorModel": anchor_model,
            },
            "planner_metadata": {"recipe_step_id": "step-x"},
            "inputs": {"document_ids": []},
        }
    )
    return _row(job_id, "EXECUTE", payload, status, order, stage_slug)


def make_skeleton_plan_job(
    job_id: str,
    recipe_step_id: str | None,
    *,
    model_id: str | None = "model-a",
    status: JobStatus | str = JobStatus.PENDING,
    project_id: str = PROJECT_ID,
    stage_slug: str = "antithesis",
    order: int = 0,
) -> JobRow:
    payload = context_payload(projectId=project_id, stageSlug=stage_slug, model_id=model_id)
    if recipe_step_id is not None:
        payload["planner_metadata"] = {"recipe_step_id": recipe_step_id}
    return _row(job_id, "PLAN", payload, status, order, stage_slug)
