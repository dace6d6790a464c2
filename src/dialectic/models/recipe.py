"""Recipe models: stages, steps and their input/output rules.

A stage is driven by a recipe, an ordered list of steps. Each step either
plans work (PLAN), executes a generation call (EXECUTE), or renders a document
(RENDER), and declares how many child jobs it expands into via its
granularity strategy.

Persistence stores ``inputs_required``, ``inputs_relevance`` and
``outputs_required`` as JSON-encoded text. Those fields are decoded once, when
a step is validated; planning code only ever sees structured values.
"""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Output types that end a stage; every other output is an intermediate artifact.
FINAL_OUTPUT_TYPES = frozenset({"synthesis"})

HEADER_CONTEXT_OUTPUT = "header_context"


class JobType(StrEnum):
    """Kind of work a recipe step (and the job planned for it) performs."""

    PLAN = "PLAN"
    EXECUTE = "EXECUTE"
    RENDER = "RENDER"


class PromptType(StrEnum):
    """Prompt family a step uses."""

    PLANNER = "Planner"
    TURN = "Turn"


class GranularityStrategy(StrEnum):
    """Rule for how many child jobs a step produces from its documents."""

    ALL_TO_ONE = "all_to_one"
    PER_SOURCE_DOCUMENT = "per_source_document"
    PER_SOURCE_DOCUMENT_BY_LINEAGE = "per_source_document_by_lineage"
    PER_SOURCE_GROUP = "per_source_group"
    PER_MODEL = "per_model"


class InputType(StrEnum):
    """Artifact class an input rule consumes."""

    DOCUMENT = "document"
    FEEDBACK = "feedback"
    HEADER_CONTEXT = "header_context"
    SEED_PROMPT = "seed_prompt"


# Inputs that can anchor a job's lineage.
ANCHORABLE_INPUT_TYPES = frozenset({InputType.DOCUMENT, InputType.FEEDBACK})


def normalize_job_type(value: Any) -> Any:
    """Accept job types in any case (payloads store ``"execute"``)."""
    if isinstance(value, str):
        return value.upper()
    return value


class InputRule(BaseModel):
    """Declares one upstream artifact class a step consumes."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: InputType
    slug: str = Field(min_length=1, description="Stage that produced the artifact")
    document_key: str | None = None
    required: bool = True
    multiple: bool = False

    @property
    def is_anchorable(self) -> bool:
        return self.type in ANCHORABLE_INPUT_TYPES


class RelevanceRule(BaseModel):
    """Relevance weight used to rank candidate anchor documents."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    document_key: str = Field(min_length=1)
    slug: str | None = None
    type: InputType | None = None
    relevance: float = Field(ge=0.0, le=1.0)

    def applies_to(self, rule: InputRule) -> bool:
        """Whether this weight ranks documents matched by ``rule``.

        The document key must match. ``slug`` and ``type`` narrow the match
        only when set.
        """
        if self.document_key != rule.document_key:
            return False
        if self.slug is not None and self.slug != rule.slug:
            return False
        return self.type is None or self.type == rule.type


class OutputDocument(BaseModel):
    """A document a step is expected to produce."""

    model_config = ConfigDict(frozen=True, extra="allow")

    document_key: str = Field(min_length=1)
    artifact_class: str | None = None
    file_type: str | None = None
    template_filename: str | None = None
    content_to_include: Any = None


class HeaderContextArtifact(BaseModel):
    """Shape of the header context a PLAN step emits."""

    model_config = ConfigDict(frozen=True, extra="allow")

    type: str = HEADER_CONTEXT_OUTPUT
    document_key: str = Field(min_length=1)
    artifact_class: str | None = None
    file_type: str | None = None


class ContextForDocument(BaseModel):
    """Per-document instructions carried inside a header context."""

    model_config = ConfigDict(frozen=True, extra="allow")

    document_key: str = Field(min_length=1)
    content_to_include: Any = None


class FileToGenerate(BaseModel):
    """A rendered file derived from one produced document."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    from_document_key: str = Field(min_length=1)
    template_filename: str = Field(min_length=1)


class OutputRule(BaseModel):
    """Expected outputs of a step."""

    model_config = ConfigDict(frozen=True, extra="allow")

    documents: list[OutputDocument] = Field(default_factory=list)
    header_context_artifact: HeaderContextArtifact | None = None
    context_for_documents: list[ContextForDocument] = Field(default_factory=list)
    files_to_generate: list[FileToGenerate] = Field(default_factory=list)

    def primary_document_key(self) -> str | None:
        """Key of the document this step's job produces, if declared."""
        if self.documents:
            return self.documents[0].document_key
        if self.header_context_artifact is not None:
            return self.header_context_artifact.document_key
        return None


class RecipeStep(BaseModel):
    """One step of a stage recipe.

    ``output_type`` and ``prompt_template_id`` are nullable here because
    planners, not the model, report their absence with a step-identifying
    error.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    step_key: str = Field(min_length=1)
    step_slug: str = ""
    step_name: str = ""
    job_type: JobType
    prompt_type: PromptType = PromptType.TURN
    prompt_template_id: str | None = None
    granularity_strategy: GranularityStrategy
    output_type: str | None = None
    execution_order: int = 0
    parallel_group: int | None = None
    branch_key: str | None = None
    inputs_required: list[InputRule] = Field(default_factory=list)
    inputs_relevance: list[RelevanceRule] = Field(default_factory=list)
    outputs_required: OutputRule | None = None

    @model_validator(mode="before")
    @classmethod
    def decode_encoded_fields(cls, data: Any) -> Any:
        """Decode JSON-encoded rule fields and treat null lists as empty."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("inputs_required", "inputs_relevance", "outputs_required"):
            value = data.get(key)
            if isinstance(value, str):
                data[key] = json.loads(value) if value.strip() else None
        for key in ("inputs_required", "inputs_relevance"):
            if data.get(key) is None:
                data.pop(key, None)
        return data

    @field_validator("job_type", mode="before")
    @classmethod
    def _normalize_job_type(cls, v: Any) -> Any:
        return normalize_job_type(v)

    @property
    def anchorable_inputs(self) -> list[InputRule]:
        """Document and feedback inputs, in declaration order."""
        return [rule for rule in self.inputs_required if rule.is_anchorable]

    def has_input(self, input_type: InputType) -> bool:
        return any(rule.type == input_type for rule in self.inputs_required)

    @property
    def requires_header_context(self) -> bool:
        return self.has_input(InputType.HEADER_CONTEXT)

    @property
    def is_intermediate(self) -> bool:
        """False only for steps producing a stage's final output."""
        return self.output_type not in FINAL_OUTPUT_TYPES

    def document_key(self) -> str | None:
        """Key of the document this step's jobs produce.

        Declared outputs win; ``branch_key`` is the fallback for steps that
        only name their branch.
        """
        if self.outputs_required is not None:
            key = self.outputs_required.primary_document_key()
            if key:
                return key
        return self.branch_key

    def uncovered_relevance_keys(self) -> list[str]:
        """Relevance keys that no document-like input rule declares.

        Planners trust recipes to keep this empty; recipe validators call it.
        """
        declared = {
            rule.document_key
            for rule in self.inputs_required
            if rule.type != InputType.SEED_PROMPT
        }
        return [r.document_key for r in self.inputs_relevance if r.document_key not in declared]


class Stage(BaseModel):
    """A named pipeline phase and the recipe that drives it."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    slug: str = Field(min_length=1)
    display_name: str = ""
    description: str | None = None
    active_recipe_instance_id: str | None = None
    recipe_template_id: str | None = None

    @property
    def recipe_id(self) -> str | None:
        """Active instance, or the template before the recipe is cloned."""
        return self.active_recipe_instance_id or self.recipe_template_id


class Recipe(BaseModel):
    """An ordered set of steps for one stage."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    stage_slug: str = Field(min_length=1)
    steps: list[RecipeStep] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_step_ids(self) -> Recipe:
        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                raise ValueError(f"Duplicate recipe step id {step.id!r}")
            seen.add(step.id)
        return self

    def get_step(self, step_id: str) -> RecipeStep | None:
        """Step lookup usable as a blocker resolver's step accessor."""
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def ordered_steps(self) -> list[RecipeStep]:
        """Steps sorted by ``execution_order``, stable for equal orders."""
        return sorted(self.steps, key=lambda s: s.execution_order)
