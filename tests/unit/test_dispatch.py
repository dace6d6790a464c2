"""Tests for planner dispatch."""

from __future__ import annotations

import pytest

from dialectic.models.recipe import GranularityStrategy
from dialectic.planning.dispatch import plan_step
from dialectic.planning.errors import UnknownStrategyError
from dialectic.planning.registry import PlannerRegistry, granularity_planner
from tests.fixtures.planning_fixtures import make_doc, make_plan_job, make_step


class TestPlanStep:
    def test_routes_by_strategy(self) -> None:
        docs = [make_doc("a"), make_doc("b"), make_doc("c", model_id="model-b")]
        per_document = plan_step(docs, make_plan_job(), make_step())
        per_model = plan_step(
            docs, make_plan_job(), make_step(granularity_strategy="per_model")
        )

        assert len(per_document) == 2
        assert len(per_model) == 1
        assert per_model[0].inputs.document_ids == ["a", "b"]

    def test_unknown_strategy_lists_available(self) -> None:
        registry = PlannerRegistry()
        granularity_planner(GranularityStrategy.ALL_TO_ONE, registry=registry)(
            lambda source_docs, parent_job, step, user_token: []
        )
        with pytest.raises(UnknownStrategyError, match=r"available: all_to_one") as exc_info:
            plan_step([make_doc("a")], make_plan_job(), make_step(), registry=registry)
        assert exc_info.value.to_feedback()["type"] == "UnknownStrategyError"

    def test_custom_registry_used(self) -> None:
        registry = PlannerRegistry()
        calls: list[str] = []

        def planner(source_docs, parent_job, step, user_token):  # type: ignore[no-untyped-def]
            calls.append(user_token)
            return []

        granularity_planner(GranularityStrategy.PER_SOURCE_DOCUMENT, registry=registry)(planner)
        assert plan_step([], make_plan_job(), make_step(), "tok", registry=registry) == []
        assert calls == ["tok"]
