"""Granularity planner implementations.

Importing this package registers every planner with the process-wide
:class:`~dialectic.planning.registry.PlannerRegistry`.
"""

from dialectic.planning.strategies.all_to_one import plan_all_to_one
from dialectic.planning.strategies.per_model import plan_per_model
from dialectic.planning.strategies.per_source_document import plan_per_source_document
from dialectic.planning.strategies.per_source_document_by_lineage import (
    plan_per_source_document_by_lineage,
)
from dialectic.planning.strategies.per_source_group import plan_per_source_group

__all__ = [
    "plan_all_to_one",
    "plan_per_model",
    "plan_per_source_document",
    "plan_per_source_document_by_lineage",
    "plan_per_source_group",
]
