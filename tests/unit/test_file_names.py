"""Tests for contribution file name parsing."""

from __future__ import annotations

import pytest

from dialectic.file_names import parse_file_name


class TestSimpleFileNames:
    """Names of the form {model}_{attempt}_{document_key}..."""

    def test_model_attempt_and_key(self) -> None:
        parsed = parse_file_name("gpt-4-turbo_0_business_case.md")
        assert parsed is not None
        assert parsed.model_slug == "gpt-4-turbo"
        assert parsed.attempt_count == 0
        assert parsed.document_key == "business_case"
        assert parsed.extension == "md"
        assert parsed.critiqued_model_slug is None

    def test_fragment_is_split_from_key(self) -> None:
        parsed = parse_file_name("claude-3-opus_2_feature_spec_a1b2c3d4.json")
        assert parsed is not None
        assert parsed.document_key == "feature_spec"
        assert parsed.fragment == "a1b2c3d4"
        assert parsed.attempt_count == 2

    def test_continuation_and_suffix(self) -> None:
        parsed = parse_file_name("gpt-4_1_business_case_continuation_3_raw.json")
        assert parsed is not None
        assert parsed.document_key == "business_case"
        assert parsed.turn_index == 3
        assert parsed.is_continuation
        assert parsed.suffix == "raw"

    def test_storage_path_uses_last_segment(self) -> None:
        parsed = parse_file_name("proj/session/iteration_1/thesis/gpt-4_0_header_context.json")
        assert parsed is not None
        assert parsed.model_slug == "gpt-4"
        assert parsed.document_key == "header_context"

    def test_anchor_model_is_author_for_plain_documents(self) -> None:
        parsed = parse_file_name("gpt-4_0_business_case.md")
        assert parsed is not None
        assert parsed.anchor_model_slug == "gpt-4"


class TestCritiqueFileNames:
    """Names of the form {model}_critiquing_{source}..."""

    def test_critique_anchors_to_critiqued_model(self) -> None:
        parsed = parse_file_name(
            "gpt-4-turbo_critiquing_gpt-4_00000001_0_business_case_critique.md"
        )
        assert parsed is not None
        assert parsed.model_slug == "gpt-4-turbo"
        assert parsed.critiqued_model_slug == "gpt-4"
        assert parsed.anchor_model_slug == "gpt-4"
        assert parsed.fragment == "00000001"
        assert parsed.document_key == "business_case_critique"

    def test_critique_without_fragment(self) -> None:
        parsed = parse_file_name("claude-3-opus_critiquing_gpt-4_1_business_case_critique.md")
        assert parsed is not None
        assert parsed.attempt_count == 1
        assert parsed.critiqued_model_slug == "gpt-4"


class TestUnparseable:
    @pytest.mark.parametrize(
        "name",
        [None, "", "seed_prompt.md", "gpt-4_business_case.md", "gpt-4_0_business_case.txt"],
    )
    def test_returns_none(self, name: str | None) -> None:
        assert parse_file_name(name) is None
