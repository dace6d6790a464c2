"""Pydantic models for recipes, source documents and jobs.

These types are validated at the data-access boundary. Planning code receives
them already decoded and never re-inspects raw persisted JSON.
"""

from dialectic.models.documents import (
    DocumentRelationships,
    SourceDocument,
    find_document,
    find_related_documents,
    group_by_lineage,
    group_by_source_group,
    group_documents_by_type,
)
from dialectic.models.jobs import (
    IN_PROGRESS_STATUSES,
    INITIAL_STATUS,
    TERMINAL_STATUSES,
    CanonicalPathParams,
    ExecuteJobPayload,
    InvalidTransitionError,
    JobInputs,
    JobPayload,
    JobRow,
    JobStatus,
    PlanJobPayload,
    PlannerMetadata,
    RenderJobPayload,
    allowed_transitions,
    decode_payload,
    transition,
)
from dialectic.models.recipe import (
    FileToGenerate,
    GranularityStrategy,
    HeaderContextArtifact,
    InputRule,
    InputType,
    JobType,
    OutputDocument,
    OutputRule,
    PromptType,
    Recipe,
    RecipeStep,
    RelevanceRule,
    Stage,
)

__all__ = [
    "INITIAL_STATUS",
    "IN_PROGRESS_STATUSES",
    "TERMINAL_STATUSES",
    "CanonicalPathParams",
    "DocumentRelationships",
    "ExecuteJobPayload",
    "FileToGenerate",
    "GranularityStrategy",
    "HeaderContextArtifact",
    "InputRule",
    "InputType",
    "InvalidTransitionError",
    "JobInputs",
    "JobPayload",
    "JobRow",
    "JobStatus",
    "JobType",
    "OutputDocument",
    "OutputRule",
    "PlanJobPayload",
    "PlannerMetadata",
    "PromptType",
    "Recipe",
    "RecipeStep",
    "RelevanceRule",
    "RenderJobPayload",
    "SourceDocument",
    "Stage",
    "allowed_transitions",
    "decode_payload",
    "find_document",
    "find_related_documents",
    "group_by_lineage",
    "group_by_source_group",
    "group_documents_by_type",
    "transition",
]
