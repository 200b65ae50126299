from __future__ import annotations

from ._core_base import *  # noqa: F401,F403
from ._core_rings import *  # noqa: F401,F403
from ._core_treadles import *  # noqa: F401,F403


def select_treadle(current: Ring, previous: Ring, registry: list[Treadle], graph: RingGraph) -> Treadle | None:
    """Return the first registered treadle matching ``(current, previous)``.

    A failing ``validate`` raises instead of falling through to later
    treadles. ``None`` means no generator applies to this pair.
    """
    for treadle in registry:
        if not treadle.matches_pair(current, previous):
            continue
        if treadle.validate is not None:
            treadle.validate(graph, current, previous)
        return treadle
    return None


@dataclass(frozen=True)
class WeavingTask:
    index: int
    spiral: Spiral
    current: Ring
    previous: Ring
    treadle: Treadle

    def label(self) -> str:
        return f"[{self.spiral.management.name}] {self.treadle.name}"

    def as_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "management": self.spiral.management.name,
            "current": self.current.name,
            "previous": self.previous.name,
            "treadle": self.treadle.name,
        }


@dataclass(frozen=True)
class WeavingPlan:
    graph: RingGraph
    spirals: tuple[Spiral, ...]
    tasks: tuple[WeavingTask, ...]
    skipped: tuple[tuple[str, str, str], ...]

    def as_dict(self) -> dict[str, Any]:
        return {
            "graph": self.graph.as_dict(),
            "spirals": [spiral.as_dict() for spiral in self.spirals],
            "tasks": [task.as_dict() for task in self.tasks],
            "skipped": [
                {"management": management, "current": current, "previous": previous}
                for management, current, previous in self.skipped
            ],
        }


def build_plan(graph: RingGraph, spirals: list[Spiral], registry: list[Treadle]) -> WeavingPlan:
    tasks: list[WeavingTask] = []
    skipped: list[tuple[str, str, str]] = []
    for spiral, current, previous in iter_pairs(graph, spirals):
        try:
            # Holds for every pair, whether or not a treadle claims it.
            require_wrapped_core_language(graph, current, previous)
            treadle = select_treadle(current, previous, registry, graph)
        except ValidationError as exc:
            raise ValidationError(f"management '{spiral.management.name}': {exc}") from exc
        if treadle is None:
            skipped.append((spiral.management.name, current.name, previous.name))
            continue
        tasks.append(WeavingTask(len(tasks), spiral, current, previous, treadle))
    return WeavingPlan(graph=graph, spirals=tuple(spirals), tasks=tuple(tasks), skipped=tuple(skipped))
