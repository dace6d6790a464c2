"""Job rows, job payloads and the job status lifecycle.

Payloads are persisted as JSON using camelCase keys for context fields
(``projectId``, ``sessionId``...) and snake_case keys for the rest. Python
code uses snake_case attributes throughout; aliases map between the two.

The payload shape depends on the row's ``job_type``. Rows are decoded once,
at the persistence boundary, by :func:`decode_payload`, so planning code
receives a typed payload and never inspects raw JSON.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from dialectic.models.documents import DocumentRelationships
from dialectic.models.recipe import JobType, normalize_job_type


class JobStatus(StrEnum):
    """Lifecycle status of a job row."""

    PENDING = "pending"
    PROCESSING = "processing"
    RETRYING = "retrying"
    WAITING_FOR_CHILDREN = "waiting_for_children"
    WAITING_FOR_PREREQUISITE = "waiting_for_prerequisite"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


IN_PROGRESS_STATUSES: frozenset[JobStatus] = frozenset(
    {
        JobStatus.PENDING,
        JobStatus.PROCESSING,
        JobStatus.RETRYING,
        JobStatus.WAITING_FOR_CHILDREN,
        JobStatus.WAITING_FOR_PREREQUISITE,
    }
)
TERMINAL_STATUSES: frozenset[JobStatus] = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

INITIAL_STATUS = JobStatus.PENDING

_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset(
        {JobStatus.PROCESSING, JobStatus.WAITING_FOR_PREREQUISITE, JobStatus.FAILED}
    ),
    JobStatus.WAITING_FOR_PREREQUISITE: frozenset(
        {JobStatus.PENDING, JobStatus.PROCESSING, JobStatus.FAILED}
    ),
    JobStatus.PROCESSING: frozenset(
        {
            JobStatus.COMPLETED,
            JobStatus.FAILED,
            JobStatus.RETRYING,
            JobStatus.WAITING_FOR_CHILDREN,
            JobStatus.WAITING_FOR_PREREQUISITE,
        }
    ),
    JobStatus.RETRYING: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.WAITING_FOR_CHILDREN: frozenset(
        {JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.FAILED}
    ),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class InvalidTransitionError(ValueError):
    """Raised when a job status change is not allowed by the lifecycle."""

    def __init__(self, current: JobStatus, target: JobStatus) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid job status transition {current} -> {target}")


def allowed_transitions(current: JobStatus) -> frozenset[JobStatus]:
    """Statuses a job in ``current`` may move to."""
    return _TRANSITIONS[current]


def transition(current: JobStatus, target: JobStatus) -> JobStatus:
    """Validate a status change and return the new status.

    Raises:
        InvalidTransitionError: If ``target`` is not reachable from ``current``.
    """
    if target not in _TRANSITIONS[current]:
        raise InvalidTransitionError(current, target)
    return target


# ---------------------------------------------------------------------------
# Payload components
# ---------------------------------------------------------------------------


class PlannerMetadata(BaseModel):
    """Links a planned job back to the recipe step that produced it."""

    model_config = ConfigDict(frozen=True, extra="allow")

    recipe_step_id: str = Field(min_length=1)
    recipe_template_id: str | None = None


class CanonicalPathParams(BaseModel):
    """Storage-path and lineage parameters computed from resolved documents."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    contribution_type: str = Field(alias="contributionType")
    stage_slug: str | None = Field(default=None, alias="stageSlug")
    source_anchor_type: str | None = Field(default=None, alias="sourceAnchorType")
    source_anchor_model_slug: str | None = Field(default=None, alias="sourceAnchorModelSlug")
    source_anchor_model: str | None = Field(default=None, alias="sourceAnchorModel")
    source_model_slugs: list[str] = Field(default_factory=list, alias="sourceModelSlugs")
    source_attempt_count: int | None = Field(default=None, alias="sourceAttemptCount")


class JobInputs(BaseModel):
    """Document id references a job consumes.

    Besides ``document_ids``, planners add per-type keys such as
    ``thesis_ids`` (a list) or ``thesis_id`` (a single id) as extra fields.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    document_ids: list[str] = Field(default_factory=list)
    header_context_id: str | None = None

    def typed_ids(self) -> dict[str, Any]:
        """The per-type id keys, without ``document_ids``/``header_context_id``."""
        return dict(self.model_extra or {})


class _JobContext(BaseModel):
    """Fields every payload inherits from the PLAN job that created it."""

    model_config = ConfigDict(
        frozen=True, populate_by_name=True, extra="ignore", protected_namespaces=()
    )

    project_id: str = Field(min_length=1, alias="projectId")
    session_id: str = Field(min_length=1, alias="sessionId")
    stage_slug: str = Field(min_length=1, alias="stageSlug")
    iteration_number: int = Field(ge=0, alias="iterationNumber")
    model_id: str | None = None
    wallet_id: str | None = Field(default=None, alias="walletId")
    user_jwt: str | None = None
    model_slug: str | None = None
    continue_until_complete: bool | None = Field(default=None, alias="continueUntilComplete")
    max_retries: int | None = Field(default=None, alias="maxRetries")
    continuation_count: int | None = None
    target_contribution_id: str | None = None
    is_test_job: bool | None = None

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize using the persisted key names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def context_fields(self) -> dict[str, Any]:
        """Parent context to copy into a child payload, by field name."""
        return {name: getattr(self, name) for name in _JobContext.model_fields}


class PlanJobPayload(_JobContext):
    """Payload of a PLAN job.

    A payload carrying ``planner_metadata.recipe_step_id`` is a skeleton: a
    placeholder PLAN job for one recipe step that has not yet expanded into
    its EXECUTE children.
    """

    planner_metadata: PlannerMetadata | None = None

    @property
    def is_skeleton(self) -> bool:
        return self.planner_metadata is not None


class ExecuteJobPayload(_JobContext):
    """Payload of an EXECUTE job, as built by the granularity planners."""

    job_type: Literal["execute"] = "execute"
    prompt_template_id: str = Field(min_length=1)
    output_type: str = Field(min_length=1)
    canonical_path_params: CanonicalPathParams = Field(alias="canonicalPathParams")
    document_relationships: DocumentRelationships | None = None
    inputs: JobInputs = Field(default_factory=JobInputs)
    source_contribution_id: str | None = Field(default=None, alias="sourceContributionId")
    planner_metadata: PlannerMetadata
    is_intermediate: bool = Field(default=True, alias="isIntermediate")
    document_key: str | None = None

    @field_validator("job_type", mode="before")
    @classmethod
    def _lower_job_type(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize, keeping an explicit null ``source_group``.

        A null group marks a new lineage root and must survive the trip to
        storage, where the producer later stamps the new contribution's id.
        """
        data = super().to_json_dict()
        if self.document_relationships is not None:
            relationships = data.setdefault("document_relationships", {})
            relationships.setdefault("source_group", self.document_relationships.source_group)
        return data

    @property
    def source_group(self) -> str | None:
        if self.document_relationships is None:
            return None
        return self.document_relationships.source_group

    @property
    def effective_model_id(self) -> str | None:
        """``model_id``, else the anchor model recorded in the path params."""
        return self.model_id or self.canonical_path_params.source_anchor_model


class RenderJobPayload(_JobContext):
    """Payload of a RENDER job."""

    document_key: str = Field(min_length=1, alias="documentKey")
    source_contribution_id: str | None = Field(default=None, alias="sourceContributionId")
    document_identity: str | None = Field(default=None, alias="documentIdentity")
    template_filename: str | None = None


JobPayload = PlanJobPayload | ExecuteJobPayload | RenderJobPayload

_PAYLOAD_TYPES: dict[JobType, type[PlanJobPayload | ExecuteJobPayload | RenderJobPayload]] = {
    JobType.PLAN: PlanJobPayload,
    JobType.EXECUTE: ExecuteJobPayload,
    JobType.RENDER: RenderJobPayload,
}


def decode_payload(job_type: JobType | str, raw: Any) -> JobPayload:
    """Decode a persisted payload into the variant selected by ``job_type``.

    Args:
        job_type: The row's job type.
        raw: A mapping, a JSON string, or an already-decoded payload.

    Raises:
        pydantic.ValidationError: If the payload does not fit its variant.
        ValueError: If ``job_type`` is unknown or the JSON is malformed.
    """
    payload_cls = _PAYLOAD_TYPES[JobType(normalize_job_type(job_type))]
    if isinstance(raw, payload_cls):
        return raw
    if isinstance(raw, str):
        raw = json.loads(raw)
    if isinstance(raw, BaseModel):
        raw = raw.model_dump(by_alias=True)
    return payload_cls.model_validate(raw)


# ---------------------------------------------------------------------------
# Job row
# ---------------------------------------------------------------------------


class JobRow(BaseModel):
    """A persisted job, with its payload decoded by job type."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    parent_job_id: str | None = None
    prerequisite_job_id: str | None = None
    session_id: str = Field(min_length=1)
    user_id: str | None = None
    stage_slug: str = Field(min_length=1)
    iteration_number: int = Field(ge=0)
    job_type: JobType
    status: JobStatus = INITIAL_STATUS
    payload: JobPayload
    attempt_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=3, ge=0)
    results: dict[str, Any] | None = None
    error_details: dict[str, Any] | None = None
    target_contribution_id: str | None = None
    is_test_job: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def decode_row(cls, data: Any) -> Any:
        """Decode the payload by job type; decode JSON text columns."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("results", "error_details"):
            if isinstance(data.get(key), str):
                data[key] = json.loads(data[key])
        if "payload" in data and "job_type" in data:
            data["payload"] = decode_payload(data["job_type"], data["payload"])
        return data

    @field_validator("job_type", mode="before")
    @classmethod
    def _normalize_job_type(cls, v: Any) -> Any:
        return normalize_job_type(v)

    @property
    def model_id(self) -> str | None:
        """Model the job works for, as exposed by its payload."""
        if isinstance(self.payload, ExecuteJobPayload):
            return self.payload.effective_model_id
        return self.payload.model_id

    @property
    def is_in_progress(self) -> bool:
        return self.status in IN_PROGRESS_STATUSES

    def with_status(self, status: JobStatus, *, now: datetime | None = None) -> JobRow:
        """Return a copy moved to ``status``, stamping lifecycle timestamps.

        Raises:
            InvalidTransitionError: If the lifecycle forbids the change.
        """
        transition(self.status, status)
        stamp = now or datetime.now(UTC)
        updates: dict[str, Any] = {"status": status}
        if status == JobStatus.PROCESSING and self.started_at is None:
            updates["started_at"] = stamp
        if status == JobStatus.RETRYING:
            updates["attempt_count"] = self.attempt_count + 1
        if status.is_terminal:
            updates["completed_at"] = stamp
        return self.model_copy(update=updates)
