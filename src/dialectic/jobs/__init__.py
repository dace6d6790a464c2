"""Job persistence and blocker resolution."""

from dialectic.jobs.blockers import (
    BlockerResolverDeps,
    BlockerResult,
    RequiredArtifactIdentity,
    resolve_next_blocker,
)
from dialectic.jobs.errors import (
    DuplicateJobError,
    JobNotFoundError,
    JobQueryError,
    JobStoreError,
)
from dialectic.jobs.sqlite_store import SqliteJobStore
from dialectic.jobs.store import (
    InMemoryJobStore,
    JobQuery,
    JobStore,
    child_job_row,
    insert_children,
    payload_identity,
)

__all__ = [
    "BlockerResolverDeps",
    "BlockerResult",
    "DuplicateJobError",
    "InMemoryJobStore",
    "JobNotFoundError",
    "JobQuery",
    "JobQueryError",
    "JobStore",
    "JobStoreError",
    "RequiredArtifactIdentity",
    "SqliteJobStore",
    "child_job_row",
    "insert_children",
    "payload_identity",
    "resolve_next_blocker",
]
