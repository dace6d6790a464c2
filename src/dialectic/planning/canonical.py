"""Canonical path parameters for planned jobs.

The parameters are pure metadata derived from documents that are already
resolved; building them never touches storage.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from dialectic.models.jobs import CanonicalPathParams

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dialectic.models.documents import SourceDocument


def source_model_slugs(documents: Sequence[SourceDocument]) -> list[str]:
    """Sorted, de-duplicated slugs of the models that produced ``documents``."""
    slugs = {doc.model_name or doc.model_slug for doc in documents if not doc.is_seed_prompt}
    return sorted(slug for slug in slugs if slug)


def build_canonical_path_params(
    documents: Sequence[SourceDocument],
    output_type: str,
    anchor: SourceDocument | None,
    stage_slug: str | None = None,
) -> CanonicalPathParams:
    """Derive storage-path parameters for a job producing ``output_type``.

    Args:
        documents: Every source document the job consumes.
        output_type: The job's contribution type.
        anchor: The anchor document, or None when the job has no anchor.
        stage_slug: Stage the job runs in.
    """
    params: dict[str, object] = {
        "contribution_type": output_type,
        "stage_slug": stage_slug,
        "source_model_slugs": source_model_slugs(documents),
    }
    if anchor is not None:
        parsed = anchor.parsed_file_name
        attempt = anchor.attempt_count
        if attempt is None and parsed is not None:
            attempt = parsed.attempt_count
        params.update(
            source_anchor_type=anchor.contribution_type or anchor.stage,
            source_anchor_model_slug=anchor.anchor_model_slug,
            source_anchor_model=anchor.model_id,
            source_attempt_count=attempt,
        )
    return CanonicalPathParams.model_validate(params)
