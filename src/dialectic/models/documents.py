"""Source documents and lineage lookups.

A source document is a materialized prior artifact: produced by an earlier
job, immutable once written, and read by planners. Lineage between documents
is a non-owning pointer: ``document_relationships.source_group`` holds the id
of the document a derived artifact descends from. The lookup functions here
resolve that pointer explicitly; documents never embed their ancestors.
"""

from __future__ import annotations

import json
from datetime import datetime  # noqa: TC003 - pydantic resolves annotations at runtime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from dialectic.file_names import ParsedFileName, parse_file_name

if TYPE_CHECKING:
    from collections.abc import Iterable


class DocumentRelationships(BaseModel):
    """Lineage metadata attached to a document or a planned job.

    Besides the fields below, stage-keyed entries (``{"thesis": "<id>"}``) are
    kept as extra keys.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    source_group: str | None = None
    is_continuation: bool | None = Field(default=None, alias="isContinuation")
    turn_index: int | None = Field(default=None, alias="turnIndex")


class SourceDocument(BaseModel):
    """A prior artifact available as planning input."""

    model_config = ConfigDict(frozen=True, extra="ignore", protected_namespaces=())

    id: str = Field(min_length=1)
    content: str = ""
    document_key: str | None = None
    contribution_type: str | None = None
    stage: str = Field(min_length=1)
    model_id: str | None = None
    model_name: str | None = None
    file_name: str | None = None
    storage_path: str | None = None
    session_id: str | None = None
    iteration_number: int | None = None
    attempt_count: int | None = None
    document_relationships: DocumentRelationships | None = None
    created_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def decode_relationships(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("document_relationships"), str):
            data = dict(data)
            raw = data["document_relationships"]
            data["document_relationships"] = json.loads(raw) if raw.strip() else None
        return data

    @property
    def source_group(self) -> str | None:
        """Id of the document this one descends from, if any."""
        if self.document_relationships is None:
            return None
        return self.document_relationships.source_group or None

    @property
    def parsed_file_name(self) -> ParsedFileName | None:
        return parse_file_name(self.file_name)

    @property
    def effective_document_key(self) -> str | None:
        """Stored document key, else the key encoded in the file name."""
        if self.document_key:
            return self.document_key
        parsed = self.parsed_file_name
        return parsed.document_key if parsed else None

    @property
    def model_slug(self) -> str | None:
        """Slug of the producing model, from the file name or model name."""
        parsed = self.parsed_file_name
        if parsed is not None:
            return parsed.model_slug
        return self.model_name

    @property
    def anchor_model_slug(self) -> str | None:
        """Model slug used when this document anchors a storage path."""
        parsed = self.parsed_file_name
        if parsed is not None:
            return parsed.anchor_model_slug
        return self.model_name

    @property
    def is_seed_prompt(self) -> bool:
        return self.contribution_type == "seed_prompt" or self.document_key == "seed_prompt"


def find_document(documents: Iterable[SourceDocument], doc_id: str) -> SourceDocument | None:
    """Resolve a lineage pointer to the document it names."""
    for doc in documents:
        if doc.id == doc_id:
            return doc
    return None


def find_related_documents(
    documents: Iterable[SourceDocument], source_group: str | None
) -> list[SourceDocument]:
    """Documents whose ``source_group`` equals ``source_group``.

    Passing None returns the documents that have no lineage pointer.
    """
    return [doc for doc in documents if doc.source_group == source_group]


def group_by_source_group(documents: Iterable[SourceDocument]) -> dict[str, list[SourceDocument]]:
    """Group documents by non-null ``source_group``, preserving first-seen order.

    Documents without a group are left out.
    """
    groups: dict[str, list[SourceDocument]] = {}
    for doc in documents:
        group = doc.source_group
        if group:
            groups.setdefault(group, []).append(doc)
    return groups


def group_by_lineage(documents: Iterable[SourceDocument]) -> dict[str, list[SourceDocument]]:
    """Group documents by their immediate lineage root.

    A document with a ``source_group`` joins that group. A document without
    one is a lineage root and keys its own group, which its descendants join.
    """
    groups: dict[str, list[SourceDocument]] = {}
    for doc in documents:
        groups.setdefault(doc.source_group or doc.id, []).append(doc)
    return groups


def group_documents_by_type(
    documents: Iterable[SourceDocument],
) -> dict[str, list[SourceDocument]]:
    """Group documents by contribution type, skipping untyped documents."""
    groups: dict[str, list[SourceDocument]] = {}
    for doc in documents:
        if doc.contribution_type:
            groups.setdefault(doc.contribution_type, []).append(doc)
    return groups
