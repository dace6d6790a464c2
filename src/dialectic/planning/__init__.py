"""Job planning: anchor selection and granularity planners."""

from dialectic.planning.anchor import (
    AnchorFound,
    AnchorNotFound,
    AnchorResult,
    DeriveFromHeaderContext,
    NoAnchorRequired,
    require_anchor,
    select_anchor,
    select_anchor_for_canonical_path_params,
)
from dialectic.planning.canonical import build_canonical_path_params
from dialectic.planning.dispatch import plan_step
from dialectic.planning.errors import (
    AnchorNotFoundError,
    EmptySourceDocumentsError,
    InvalidParentJobError,
    MissingGroupAnchorError,
    MissingHeaderContextError,
    MissingRelevanceError,
    PlanningError,
    StepConfigurationError,
    UnknownStrategyError,
)
from dialectic.planning.registry import (
    Planner,
    PlannerMeta,
    PlannerRegistry,
    get_planner_registry,
    granularity_planner,
)

__all__ = [
    "AnchorFound",
    "AnchorNotFound",
    "AnchorNotFoundError",
    "AnchorResult",
    "DeriveFromHeaderContext",
    "EmptySourceDocumentsError",
    "InvalidParentJobError",
    "MissingGroupAnchorError",
    "MissingHeaderContextError",
    "MissingRelevanceError",
    "NoAnchorRequired",
    "Planner",
    "PlannerMeta",
    "PlannerRegistry",
    "PlanningError",
    "StepConfigurationError",
    "UnknownStrategyError",
    "build_canonical_path_params",
    "get_planner_registry",
    "granularity_planner",
    "plan_step",
    "require_anchor",
    "select_anchor",
    "select_anchor_for_canonical_path_params",
]
