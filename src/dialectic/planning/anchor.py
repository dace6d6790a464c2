"""Anchor selection: pick the source document that grounds a job's lineage.

The anchor is the single upstream document whose identity (stage, model,
attempt) is written into a new job's canonical path parameters. Selection is
pure and deterministic: the same step and documents always give the same
result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from dialectic.models.recipe import HEADER_CONTEXT_OUTPUT, GranularityStrategy, InputType, JobType
from dialectic.planning.errors import AnchorNotFoundError, MissingRelevanceError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dialectic.models.documents import SourceDocument
    from dialectic.models.recipe import InputRule, RecipeStep


@dataclass(frozen=True)
class AnchorFound:
    """A document was selected as the anchor."""

    document: SourceDocument
    relevance: float
    status: Literal["anchor_found"] = "anchor_found"


@dataclass(frozen=True)
class DeriveFromHeaderContext:
    """The anchor is recorded in a header context and resolved at render time."""

    status: Literal["derive_from_header_context"] = "derive_from_header_context"


@dataclass(frozen=True)
class NoAnchorRequired:
    """The step has no single upstream lineage root."""

    status: Literal["no_anchor_required"] = "no_anchor_required"


@dataclass(frozen=True)
class AnchorNotFound:
    """The step ranks document inputs, but none of the sources match them."""

    target_slug: str
    target_document_key: str
    status: Literal["anchor_not_found"] = "anchor_not_found"


AnchorResult = AnchorFound | DeriveFromHeaderContext | NoAnchorRequired | AnchorNotFound


def check_relevance(step: RecipeStep) -> list[tuple[InputRule, float]]:
    """Pair each rankable input rule with its relevance, in rule order.

    Required ``document`` inputs must carry a relevance score. Feedback and
    optional inputs without one are not rankable and are left out.

    Raises:
        MissingRelevanceError: If the step declares document inputs but no
            relevance rules, or a required document input has no score.
    """
    document_rules = [r for r in step.inputs_required if r.type == InputType.DOCUMENT]
    if document_rules and not step.inputs_relevance:
        raise MissingRelevanceError(step.id, document_rules[0].document_key or "")

    ranked: list[tuple[InputRule, float]] = []
    for rule in step.anchorable_inputs:
        relevance = _relevance_for(step, rule)
        if relevance is None:
            if rule.type == InputType.DOCUMENT and rule.required:
                raise MissingRelevanceError(step.id, rule.document_key or "")
            continue
        ranked.append((rule, relevance))
    return ranked


def _relevance_for(step: RecipeStep, rule: InputRule) -> float | None:
    for weight in step.inputs_relevance:
        if weight.applies_to(rule):
            return weight.relevance
    return None


def document_matches_rule(doc: SourceDocument, rule: InputRule) -> bool:
    """Whether ``doc`` is an artifact of the class ``rule`` declares.

    The stage must equal the rule's slug, and the rule's key must equal the
    document's key (stored or parsed from its file name) or its contribution
    type.
    """
    if doc.stage != rule.slug:
        return False
    return rule.document_key in (doc.effective_document_key, doc.contribution_type)


def select_anchor(step: RecipeStep, documents: Sequence[SourceDocument]) -> AnchorResult:
    """Choose the anchor document for jobs planned from ``step``.

    Args:
        step: The recipe step being planned.
        documents: Candidate source documents.

    Returns:
        The selected document, or a value describing why there is none.

    Raises:
        MissingRelevanceError: If document inputs cannot be ranked.
    """
    if not step.anchorable_inputs:
        if step.requires_header_context:
            return DeriveFromHeaderContext()
        return NoAnchorRequired()

    # Header contexts and cross-model consolidations start a new lineage.
    if step.job_type == JobType.EXECUTE and step.output_type == HEADER_CONTEXT_OUTPUT:
        return NoAnchorRequired()
    if step.granularity_strategy == GranularityStrategy.PER_MODEL:
        return NoAnchorRequired()

    ranked = check_relevance(step)
    best: AnchorFound | None = None
    for rule, relevance in ranked:
        for doc in documents:
            if doc.is_seed_prompt or not document_matches_rule(doc, rule):
                continue
            # Strictly greater: earlier rules and earlier documents win ties.
            if best is None or relevance > best.relevance:
                best = AnchorFound(document=doc, relevance=relevance)

    if best is not None:
        return best

    if ranked:
        target, _ = max(ranked, key=lambda pair: pair[1])
    else:
        target = step.anchorable_inputs[0]
    return AnchorNotFound(target_slug=target.slug, target_document_key=target.document_key or "")


def select_anchor_for_canonical_path_params(
    step: RecipeStep, documents: Sequence[SourceDocument]
) -> SourceDocument | None:
    """Lenient selection: the anchor document, or None when there is none.

    Only the missing-relevance configuration error is raised.
    """
    result = select_anchor(step, documents)
    if isinstance(result, AnchorFound):
        return result.document
    return None


def require_anchor(step: RecipeStep, documents: Sequence[SourceDocument]) -> SourceDocument | None:
    """Strict selection used when a step ranks inputs that must be present.

    Returns None for steps that need no anchor.

    Raises:
        AnchorNotFoundError: If ranked inputs exist but no document matches.
        MissingRelevanceError: If document inputs cannot be ranked.
    """
    result = select_anchor(step, documents)
    if isinstance(result, AnchorNotFound):
        raise AnchorNotFoundError(step.id, result.target_slug, result.target_document_key)
    if isinstance(result, AnchorFound):
        return result.document
    return None
