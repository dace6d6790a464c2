"""Registry of granularity planners.

Each strategy module registers its planner at import time::

    @granularity_planner(GranularityStrategy.PER_MODEL)
    def plan_per_model(source_docs, parent_job, step, user_token): ...

:func:`dialectic.planning.dispatch.plan_step` is the only place that picks a
planner for a step.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from dialectic.models.recipe import GranularityStrategy

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from dialectic.models.documents import SourceDocument
    from dialectic.models.jobs import ExecuteJobPayload, JobRow
    from dialectic.models.recipe import RecipeStep


class Planner(Protocol):
    """Expands one recipe step into child EXECUTE payloads.

    Planners are pure: they read their arguments and return new payloads,
    raising before returning anything if any payload cannot be built.
    """

    def __call__(
        self,
        source_docs: Sequence[SourceDocument],
        parent_job: JobRow,
        step: RecipeStep,
        user_token: str | None,
    ) -> list[ExecuteJobPayload]: ...


@dataclass(frozen=True)
class PlannerMeta:
    """Metadata attached to a registered planner function."""

    strategy: GranularityStrategy
    description: str
    groups_documents: bool


PLANNER_META_ATTR = "_planner_meta"


class PlannerRegistry:
    """Maps each granularity strategy to exactly one planner."""

    def __init__(self) -> None:
        self._meta: dict[GranularityStrategy, PlannerMeta] = {}
        self._planners: dict[GranularityStrategy, Planner] = {}

    def register(self, fn: Planner, meta: PlannerMeta) -> None:
        """Register a planner for its strategy.

        Raises:
            ValueError: If the strategy already has a planner.
        """
        if meta.strategy in self._planners:
            existing = getattr(self._planners[meta.strategy], "__qualname__", "?")
            msg = (
                f"Duplicate planner for strategy {meta.strategy!r}: "
                f"already registered by {existing}"
            )
            raise ValueError(msg)
        self._meta[meta.strategy] = meta
        self._planners[meta.strategy] = fn

    def get(self, strategy: GranularityStrategy | str) -> Planner | None:
        """Planner for ``strategy``, or None."""
        try:
            return self._planners.get(GranularityStrategy(strategy))
        except ValueError:
            return None

    def get_meta(self, strategy: GranularityStrategy | str) -> PlannerMeta | None:
        try:
            return self._meta.get(GranularityStrategy(strategy))
        except ValueError:
            return None

    def missing(self) -> list[GranularityStrategy]:
        """Strategies of the closed set that have no planner yet."""
        return [s for s in GranularityStrategy if s not in self._planners]

    @property
    def strategies(self) -> list[str]:
        """Registered strategy names (registration order)."""
        return [str(s) for s in self._planners]

    def __len__(self) -> int:
        return len(self._planners)

    def __contains__(self, strategy: object) -> bool:
        return strategy in self._planners

    def strategy_table(self) -> str:
        """Markdown table of registered planners."""
        lines = ["| Strategy | Groups | Description |", "|----------|--------|-------------|"]
        for strategy, meta in self._meta.items():
            groups = "yes" if meta.groups_documents else "no"
            lines.append(f"| {strategy} | {groups} | {meta.description} |")
        return "\n".join(lines)


_registry = PlannerRegistry()


def _first_line(text: str | None) -> str:
    lines = (text or "").strip().splitlines()
    return lines[0] if lines else ""


def get_planner_registry() -> PlannerRegistry:
    """The process-wide registry populated by the strategy modules."""
    return _registry


def granularity_planner(
    strategy: GranularityStrategy,
    *,
    description: str = "",
    groups_documents: bool = False,
    registry: PlannerRegistry | None = None,
) -> Callable[[Planner], Planner]:
    """Decorator registering a planner function for ``strategy``.

    Args:
        strategy: The granularity strategy the planner implements.
        description: One-line summary for :meth:`PlannerRegistry.strategy_table`.
        groups_documents: Whether the planner emits one job per document group.
        registry: Target registry; defaults to the process-wide one.
    """
    target = registry if registry is not None else _registry

    def decorator(fn: Planner) -> Planner:
        meta = PlannerMeta(
            strategy=strategy,
            description=description or _first_line(fn.__doc__),
            groups_documents=groups_documents,
        )
        target.register(fn, meta)
        setattr(fn, PLANNER_META_ATTR, meta)
        return fn

    return decorator
