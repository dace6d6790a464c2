"""Tests for the JobStore protocol, run against both backends."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from dialectic.jobs.errors import DuplicateJobError, JobNotFoundError
from dialectic.jobs.sqlite_store import SqliteJobStore
from dialectic.jobs.store import (
    InMemoryJobStore,
    JobQuery,
    JobStore,
    child_job_row,
    insert_children,
    payload_identity,
)
from dialectic.models.jobs import IN_PROGRESS_STATUSES, InvalidTransitionError, JobStatus
from dialectic.models.recipe import JobType
from dialectic.planning.dispatch import plan_step
from tests.fixtures.planning_fixtures import (
    make_doc,
    make_execute_job,
    make_plan_job,
    make_render_job,
    make_step,
)

if TYPE_CHECKING:
    from dialectic.models.jobs import ExecuteJobPayload


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest) -> JobStore:
    if request.param == "memory":
        return InMemoryJobStore()
    return SqliteJobStore()


def _children_payloads() -> list[ExecuteJobPayload]:
    docs = [make_doc("a"), make_doc("b")]
    return plan_step(docs, make_plan_job(), make_step())


class TestProtocol:
    def test_runtime_checkable(self, store: JobStore) -> None:
        assert isinstance(store, JobStore)
        assert isinstance(store, JobQuery)


class TestInsertAndGet:
    def test_round_trip(self, store: JobStore) -> None:
        parent = make_plan_job()
        store.insert_job(parent)
        child = child_job_row(parent, _children_payloads()[0], "child-1")
        store.insert_job(child)

        loaded = store.get_job("child-1")
        assert loaded is not None
        assert loaded.payload == child.payload
        assert loaded.parent_job_id == "plan-1"
        assert loaded.job_type == JobType.EXECUTE
        assert loaded.status == JobStatus.PENDING
        assert loaded.created_at == child.created_at

    def test_missing_job(self, store: JobStore) -> None:
        assert store.get_job("nope") is None

    def test_duplicate_rejected(self, store: JobStore) -> None:
        store.insert_job(make_plan_job())
        with pytest.raises(DuplicateJobError, match="plan-1"):
            store.insert_job(make_plan_job())


class TestFindJobs:
    def test_filters_and_orders_by_creation(self, store: JobStore) -> None:
        for job in (
            make_render_job("late", "synopsis", order=3),
            make_render_job("early", "synopsis", order=1),
            make_render_job("done", "synopsis", status=JobStatus.COMPLETED, order=2),
            make_render_job("elsewhere", "synopsis", stage_slug="synthesis", order=0),
            make_execute_job("exec", "synopsis"),
        ):
            store.insert_job(job)

        found = store.find_jobs(
            session_id="sess-1",
            stage_slug="antithesis",
            iteration_number=1,
            job_type=JobType.RENDER,
            statuses=IN_PROGRESS_STATUSES,
        )
        assert [job.id for job in found] == ["early", "late"]

    def test_empty_status_set(self, store: JobStore) -> None:
        store.insert_job(make_render_job("r", "synopsis"))
        found = store.find_jobs(
            session_id="sess-1",
            stage_slug="antithesis",
            iteration_number=1,
            job_type=JobType.RENDER,
            statuses=[],
        )
        assert found == []


class TestUpdateStatus:
    def test_lifecycle(self, store: JobStore) -> None:
        store.insert_job(make_render_job("r", "synopsis"))
        processing = store.update_status("r", JobStatus.PROCESSING)
        assert processing.started_at is not None

        done = store.update_status("r", JobStatus.COMPLETED, results={"contribution_id": "c1"})
        loaded = store.get_job("r")
        assert loaded is not None
        assert loaded.status == JobStatus.COMPLETED
        assert loaded.results == {"contribution_id": "c1"}
        assert loaded.completed_at == done.completed_at

    def test_error_details_recorded(self, store: JobStore) -> None:
        store.insert_job(make_render_job("r", "synopsis"))
        store.update_status("r", JobStatus.FAILED, error_details={"message": "boom"})
        loaded = store.get_job("r")
        assert loaded is not None
        assert loaded.error_details == {"message": "boom"}

    def test_invalid_transition(self, store: JobStore) -> None:
        store.insert_job(make_render_job("r", "synopsis"))
        with pytest.raises(InvalidTransitionError):
            store.update_status("r", JobStatus.COMPLETED)
        loaded = store.get_job("r")
        assert loaded is not None
        assert loaded.status == JobStatus.PENDING

    def test_unknown_job(self, store: JobStore) -> None:
        with pytest.raises(JobNotFoundError):
            store.update_status("nope", JobStatus.PROCESSING)


class TestInsertChildren:
    def test_children_inserted_once(self, store: JobStore) -> None:
        parent = make_plan_job()
        store.insert_job(parent)
        payloads = _children_payloads()

        first = insert_children(store, parent, payloads)
        second = insert_children(store, parent, payloads)

        assert len(first) == 2
        assert second == []
        assert len(store.children_of("plan-1")) == 2
        assert all(child.status == JobStatus.PENDING for child in first)

    def test_identity_distinguishes_documents(self) -> None:
        payloads = _children_payloads()
        assert payload_identity(payloads[0]) != payload_identity(payloads[1])
        assert payload_identity(payloads[0])[0] == "step-1"


class TestChildJobRow:
    def test_max_retries_resolution(self) -> None:
        parent = make_plan_job()
        payload = _children_payloads()[0]
        assert child_job_row(parent, payload).max_retries == parent.max_retries
        assert child_job_row(parent, payload, default_max_retries=7).max_retries == 7

        explicit = payload.model_copy(update={"max_retries": 1})
        assert child_job_row(parent, explicit, default_max_retries=7).max_retries == 1

    def test_inherits_scope_from_payload(self) -> None:
        parent = make_plan_job()
        child = child_job_row(parent, _children_payloads()[0])
        assert child.session_id == "sess-1"
        assert child.stage_slug == "antithesis"
        assert child.user_id == "user-1"
        assert child.id
