"""Tests for the five granularity planners."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from dialectic.models.jobs import ExecuteJobPayload
from dialectic.planning.errors import (
    AnchorNotFoundError,
    EmptySourceDocumentsError,
    InvalidParentJobError,
    MissingGroupAnchorError,
    MissingHeaderContextError,
    MissingRelevanceError,
    StepConfigurationError,
)
from dialectic.planning.strategies import (
    plan_all_to_one,
    plan_per_model,
    plan_per_source_document,
    plan_per_source_document_by_lineage,
    plan_per_source_group,
)
from tests.fixtures.planning_fixtures import (
    make_doc,
    make_header_context,
    make_plan_job,
    make_render_job,
    make_seed_prompt,
    make_step,
)

if TYPE_CHECKING:
    from dialectic.models.documents import SourceDocument
    from dialectic.models.recipe import RecipeStep

HEADER_RULE = {"type": "header_context", "slug": "thesis", "document_key": "header_context"}
DOCUMENT_RULE = {"type": "document", "slug": "thesis", "document_key": "business_case"}
CRITIQUE_RULE = {"type": "document", "slug": "antithesis", "document_key": "business_case_critique"}


def _critique(doc_id: str, group: str | None, model_id: str = "model-b") -> SourceDocument:
    return make_doc(
        doc_id,
        stage="antithesis",
        document_key="business_case_critique",
        model_id=model_id,
        source_group=group,
    )


class TestPlanAllToOne:
    def test_single_job_over_every_document(self) -> None:
        step = make_step(granularity_strategy="all_to_one")
        docs = [make_seed_prompt(), make_doc("bc"), make_doc("fs", document_key="feature_spec")]

        payloads = plan_all_to_one(docs, make_plan_job(), step, None)

        assert len(payloads) == 1
        job = payloads[0]
        assert isinstance(job, ExecuteJobPayload)
        assert job.inputs.document_ids == ["seed-1", "bc", "fs"]
        assert job.source_group == "bc"
        assert job.source_contribution_id == "bc"
        assert job.canonical_path_params.source_anchor_model == "model-a"
        assert job.planner_metadata.recipe_step_id == "step-1"
        assert job.prompt_template_id == "tmpl-1"
        assert job.document_key == "business_case_critique"
        assert job.is_intermediate

    def test_parent_context_copied(self) -> None:
        payload = plan_all_to_one([make_doc("bc")], make_plan_job(), make_step(), None)[0]
        assert payload.project_id == "proj-1"
        assert payload.session_id == "sess-1"
        assert payload.stage_slug == "antithesis"
        assert payload.iteration_number == 1
        assert payload.model_id == "model-a"
        assert payload.wallet_id == "wallet-1"
        assert payload.user_jwt == "jwt-parent"
        assert payload.canonical_path_params.stage_slug == "antithesis"

    def test_parent_token_wins_over_call_token(self) -> None:
        with_token = plan_all_to_one([make_doc("bc")], make_plan_job(), make_step(), "jwt-call")
        assert with_token[0].user_jwt == "jwt-parent"
        without = plan_all_to_one(
            [make_doc("bc")], make_plan_job(user_jwt=None), make_step(), "jwt-call"
        )
        assert without[0].user_jwt == "jwt-call"

    def test_missing_anchor_still_plans(self) -> None:
        payloads = plan_all_to_one(
            [make_doc("x", document_key="x")], make_plan_job(), make_step(), None
        )
        assert len(payloads) == 1
        assert payloads[0].source_group is None
        assert payloads[0].canonical_path_params.source_anchor_type is None

    def test_final_output_not_intermediate(self) -> None:
        step = make_step(output_type="synthesis")
        assert not plan_all_to_one([make_doc("bc")], make_plan_job(), step, None)[0].is_intermediate

    def test_header_context_attached(self) -> None:
        step = make_step(inputs_required=[DOCUMENT_RULE, HEADER_RULE])
        docs = [make_doc("bc"), make_header_context("hc-a")]
        payload = plan_all_to_one(docs, make_plan_job(), step, None)[0]
        assert payload.inputs.header_context_id == "hc-a"

    def test_required_header_context_missing(self) -> None:
        step = make_step(inputs_required=[DOCUMENT_RULE, HEADER_RULE])
        with pytest.raises(MissingHeaderContextError):
            plan_all_to_one([make_doc("bc")], make_plan_job(), step, None)

    def test_step_without_output_type(self) -> None:
        with pytest.raises(StepConfigurationError, match="output_type"):
            plan_all_to_one([make_doc("bc")], make_plan_job(), make_step(output_type=None), None)

    def test_parent_must_be_plan(self) -> None:
        with pytest.raises(InvalidParentJobError):
            plan_all_to_one([make_doc("bc")], make_render_job("r1", "x"), make_step(), None)

    def test_missing_relevance(self) -> None:
        with pytest.raises(MissingRelevanceError, match="business_case"):
            plan_all_to_one([make_doc("bc")], make_plan_job(), make_step(inputs_relevance=[]), None)


class TestPlanPerSourceDocument:
    def test_one_job_per_document(self) -> None:
        docs = [make_doc("bc-1"), make_doc("bc-2")]
        payloads = plan_per_source_document(docs, make_plan_job(), make_step(), None)

        assert [p.inputs.document_ids for p in payloads] == [["bc-1"], ["bc-2"]]
        assert [p.source_group for p in payloads] == ["bc-1", "bc-2"]
        assert all(p.canonical_path_params.source_anchor_model == "model-a" for p in payloads)
        assert payloads[0].inputs.typed_ids() == {"thesis_id": "bc-1"}

    def test_other_models_documents_skipped(self) -> None:
        docs = [make_doc("bc-a"), make_doc("bc-b", model_id="model-b")]
        payloads = plan_per_source_document(docs, make_plan_job(), make_step(), None)

        assert [p.inputs.document_ids for p in payloads] == [["bc-a"]]
        assert payloads[0].model_id == "model-a"

    def test_no_documents_for_parent_model(self) -> None:
        docs = [make_doc("bc-b", model_id="model-b")]
        assert plan_per_source_document(docs, make_plan_job(), make_step(), None) == []

    def test_source_contribution_follows_lineage(self) -> None:
        doc = make_doc("bc-2", source_group="bc-1")
        payload = plan_per_source_document([doc], make_plan_job(), make_step(), None)[0]
        assert payload.source_group == "bc-2"
        assert payload.source_contribution_id == "bc-1"

    def test_net_new_document_has_no_source_contribution(self) -> None:
        docs = [make_doc("new")]
        payload = plan_per_source_document(docs, make_plan_job(), make_step(), None)[0]
        assert payload.source_group == "new"
        assert payload.source_contribution_id is None

    def test_header_context_of_parent_model_attached(self) -> None:
        step = make_step(inputs_required=[DOCUMENT_RULE, HEADER_RULE])
        docs = [
            make_doc("bc-a"),
            make_doc("bc-b", model_id="model-b"),
            make_header_context("hc-a"),
            make_header_context("hc-b", "model-b"),
        ]
        payloads = plan_per_source_document(docs, make_plan_job(), step, None)

        assert len(payloads) == 1
        assert payloads[0].inputs.header_context_id == "hc-a"

    def test_header_only_step_plans_each_header(self) -> None:
        step = make_step(inputs_required=[HEADER_RULE], inputs_relevance=[])
        payloads = plan_per_source_document(
            [make_header_context("hc-a")], make_plan_job(), step, None
        )
        assert len(payloads) == 1
        assert payloads[0].inputs.header_context_id == "hc-a"
        assert payloads[0].inputs.document_ids == ["hc-a"]

    def test_no_documents(self) -> None:
        with pytest.raises(EmptySourceDocumentsError, match="per_source_document"):
            plan_per_source_document([], make_plan_job(), make_step(), None)


class TestPlanPerSourceDocumentByLineage:
    def _step(self, **overrides: object) -> RecipeStep:
        return make_step(granularity_strategy="per_source_document_by_lineage", **overrides)

    def test_one_job_per_lineage(self) -> None:
        docs = [
            make_doc("root"),
            make_doc("child", source_group="root"),
            make_doc("other", model_id="model-b"),
        ]
        payloads = plan_per_source_document_by_lineage(docs, make_plan_job(), self._step(), None)

        assert [p.source_group for p in payloads] == ["root", "other"]
        assert [p.source_contribution_id for p in payloads] == ["root", "other"]
        assert [p.inputs.document_ids for p in payloads] == [["root", "child"], ["other"]]
        assert payloads[0].inputs.typed_ids() == {"thesis_ids": ["root", "child"]}
        assert payloads[1].canonical_path_params.source_anchor_model == "model-b"

    def test_absent_root_anchors_to_ranked_member(self) -> None:
        docs = [
            make_doc("c1", document_key="notes", source_group="gone"),
            make_doc("c2", model_id="model-b", source_group="gone"),
        ]
        payloads = plan_per_source_document_by_lineage(docs, make_plan_job(), self._step(), None)

        assert len(payloads) == 1
        assert payloads[0].source_group == "gone"
        assert payloads[0].canonical_path_params.source_anchor_model == "model-b"

    def test_absent_root_without_match_raises(self) -> None:
        docs = [make_doc("c1", document_key="notes", source_group="gone")]
        with pytest.raises(AnchorNotFoundError):
            plan_per_source_document_by_lineage(docs, make_plan_job(), self._step(), None)

    def test_unanchored_step(self) -> None:
        step = self._step(output_type="header_context")
        payloads = plan_per_source_document_by_lineage([make_doc("r")], make_plan_job(), step, None)
        assert payloads[0].source_group == "r"
        assert payloads[0].canonical_path_params.source_anchor_model is None

    def test_no_documents_plans_nothing(self) -> None:
        assert plan_per_source_document_by_lineage([], make_plan_job(), self._step(), None) == []


class TestPlanPerSourceGroup:
    def _step(self, **overrides: object) -> RecipeStep:
        return make_step(
            granularity_strategy="per_source_group",
            output_type="synthesis",
            inputs_required=[CRITIQUE_RULE],
            inputs_relevance=[{"document_key": "business_case_critique", "relevance": 1.0}],
            **overrides,
        )

    def test_one_job_per_group(self) -> None:
        docs = [
            make_doc("g1"),
            make_doc("g2", model_id="model-c"),
            _critique("a1", "g1"),
            _critique("a2", "g1"),
            _critique("a3", "g1"),
            _critique("b1", "g2"),
            _critique("b2", "g2"),
            _critique("loose", None),
        ]
        payloads = plan_per_source_group(docs, make_plan_job(), self._step(), None)

        assert len(payloads) == 2
        assert [p.inputs.document_ids for p in payloads] == [["a1", "a2", "a3"], ["b1", "b2"]]
        assert [p.source_group for p in payloads] == ["g1", "g2"]
        assert [p.source_contribution_id for p in payloads] == ["g1", "g2"]
        assert payloads[1].canonical_path_params.source_anchor_model == "model-c"
        assert payloads[0].inputs.typed_ids() == {"antithesis_ids": ["a1", "a2", "a3"]}
        assert not payloads[0].is_intermediate

    def test_missing_anchor_fails_whole_call(self) -> None:
        docs = [make_doc("g1"), _critique("a1", "g1"), _critique("b1", "g9")]
        expected = "missing anchor SourceDocument for group g9"
        with pytest.raises(MissingGroupAnchorError, match=expected):
            plan_per_source_group(docs, make_plan_job(), self._step(), None)

    def test_ungrouped_only_plans_nothing(self) -> None:
        assert plan_per_source_group([make_doc("g1")], make_plan_job(), self._step(), None) == []


class TestPlanPerModel:
    def _step(self, **overrides: object) -> RecipeStep:
        return make_step(granularity_strategy="per_model", output_type="synthesis", **overrides)

    def test_single_job_scoped_to_parent_model(self) -> None:
        docs = [
            make_doc("a1"),
            make_doc("b1", model_id="model-b"),
            make_doc("a2"),
            make_doc("shared", model_id=None),
        ]
        payloads = plan_per_model(docs, make_plan_job(), self._step(), None)

        assert len(payloads) == 1
        job = payloads[0]
        assert job.inputs.document_ids == ["a1", "a2", "shared"]
        assert job.source_group is None
        assert job.source_contribution_id is None
        assert job.canonical_path_params.source_anchor_model is None
        assert job.canonical_path_params.source_model_slugs == ["model-a"]
        assert job.to_json_dict()["document_relationships"] == {"source_group": None}

    def test_parent_without_model(self) -> None:
        with pytest.raises(InvalidParentJobError, match="has no model_id"):
            plan_per_model([make_doc("a1")], make_plan_job(model_id=None), self._step(), None)

    def test_step_without_document_key(self) -> None:
        step = self._step(outputs_required=None)
        with pytest.raises(StepConfigurationError, match="output document key"):
            plan_per_model([make_doc("a1")], make_plan_job(), step, None)

    def test_branch_key_is_enough(self) -> None:
        step = self._step(outputs_required=None, branch_key="synthesis_branch")
        payload = plan_per_model([make_doc("a1")], make_plan_job(), step, None)[0]
        assert payload.document_key == "synthesis_branch"

    def test_no_documents_for_model(self) -> None:
        with pytest.raises(EmptySourceDocumentsError, match="per_model"):
            plan_per_model(
                [make_doc("b1", model_id="model-b")], make_plan_job(), self._step(), None
            )
