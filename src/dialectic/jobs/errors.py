"""Job persistence error types."""

from __future__ import annotations

from dataclasses import dataclass


class JobStoreError(Exception):
    """Base class for job store failures."""


@dataclass
class JobQueryError(JobStoreError):
    """Raised when the underlying job query fails.

    Infrastructure failures are transient: callers may retry.

    Attributes:
        operation: What was being attempted.
        reason: The underlying error message.
    """

    operation: str
    reason: str

    def __post_init__(self) -> None:
        super().__init__(f"Job query failed during {self.operation}: {self.reason}")


@dataclass
class JobNotFoundError(JobStoreError):
    """Raised when updating a job id the store does not hold."""

    job_id: str

    def __post_init__(self) -> None:
        super().__init__(f"Job '{self.job_id}' not found")


@dataclass
class DuplicateJobError(JobStoreError):
    """Raised when inserting a job id that already exists."""

    job_id: str

    def __post_init__(self) -> None:
        super().__init__(f"Job '{self.job_id}' already exists")
