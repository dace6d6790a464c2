"""Planning error types.

These errors signal configuration or data-integrity problems in a recipe
step or its source documents. They are fatal to the parent PLAN job: retrying
the same step against the same documents would fail the same way.

"No match" outcomes (no anchor, no blocker) are never raised; they are
returned as values.

Each error formats itself as feedback suitable for the job's
``error_details`` column via :meth:`PlanningError.to_feedback`.
"""

from __future__ import annotations

from dataclasses import dataclass, field


class PlanningError(Exception):
    """Base class for planning failures.

    Subclasses carry the recipe step identity so the scheduler can record
    which step failed without parsing the message.
    """

    step_id: str

    def to_feedback(self) -> dict[str, str]:
        """Structured form of the error for persisting on the failed job."""
        return {
            "type": type(self).__name__,
            "step_id": self.step_id,
            "message": str(self),
        }


@dataclass
class StepConfigurationError(PlanningError):
    """Raised when a recipe step lacks a field its strategy requires.

    Attributes:
        step_id: Recipe step id.
        reason: What is missing or malformed.
    """

    step_id: str
    reason: str

    def __post_init__(self) -> None:
        super().__init__(f"Recipe step {self.step_id!r}: {self.reason}")


@dataclass
class MissingRelevanceError(PlanningError):
    """Raised when a document input has no relevance rule to rank it.

    Attributes:
        step_id: Recipe step id.
        document_key: The input's document key lacking a relevance score.
    """

    step_id: str
    document_key: str

    def __post_init__(self) -> None:
        super().__init__(
            f"Missing relevance score for required document input {self.document_key} "
            f"in recipe step {self.step_id!r}"
        )


@dataclass
class MissingGroupAnchorError(PlanningError):
    """Raised when a source group's anchor document is not among the sources.

    The group key of a ``per_source_group`` step names the document the group
    descends from. Planning a job for it without that document would leave a
    dangling lineage reference.

    Attributes:
        step_id: Recipe step id.
        group_id: The ``source_group`` value whose anchor is absent.
        available: Ids of the source documents that were supplied.
    """

    step_id: str
    group_id: str
    available: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        super().__init__(
            f"Recipe step {self.step_id!r}: missing anchor SourceDocument "
            f"for group {self.group_id}"
        )


@dataclass
class AnchorNotFoundError(PlanningError):
    """Raised when a step needs an anchor but no document matches its rules.

    Attributes:
        step_id: Recipe step id.
        target_slug: Stage slug of the highest-relevance input rule.
        target_document_key: Document key of that rule.
    """

    step_id: str
    target_slug: str
    target_document_key: str

    def __post_init__(self) -> None:
        super().__init__(
            f"Recipe step {self.step_id!r}: no source document matches anchor "
            f"{self.target_slug}/{self.target_document_key}"
        )


@dataclass
class MissingHeaderContextError(PlanningError):
    """Raised when a step requires a header context that was not supplied.

    Attributes:
        step_id: Recipe step id.
        model_id: Model whose header context was looked up, if scoped.
    """

    step_id: str
    model_id: str | None = None

    def __post_init__(self) -> None:
        msg = f"Recipe step {self.step_id!r} requires a header_context input"
        if self.model_id:
            msg += f" for model {self.model_id}"
        super().__init__(msg + ", but none was found")


@dataclass
class EmptySourceDocumentsError(PlanningError):
    """Raised when a strategy that must emit a job received no documents."""

    step_id: str
    strategy: str

    def __post_init__(self) -> None:
        super().__init__(
            f"Recipe step {self.step_id!r}: {self.strategy} requires at least "
            "one source document"
        )


@dataclass
class InvalidParentJobError(PlanningError):
    """Raised when the parent job is not a PLAN job with a plan payload."""

    step_id: str
    job_id: str
    reason: str

    def __post_init__(self) -> None:
        super().__init__(
            f"Recipe step {self.step_id!r}: parent job {self.job_id} {self.reason}"
        )


@dataclass
class UnknownStrategyError(PlanningError):
    """Raised when no planner is registered for a step's strategy."""

    step_id: str
    strategy: str
    available: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        msg = f"Recipe step {self.step_id!r}: no planner for strategy {self.strategy!r}"
        if self.available:
            msg += f" (available: {', '.join(self.available)})"
        super().__init__(msg)
