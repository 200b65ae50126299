from __future__ import annotations

from ._core_base import *  # noqa: F401,F403
from ._core_collect import *  # noqa: F401,F403


@dataclass(frozen=True)
class RingKind:
    name: str
    language: str
    is_core: bool
    scope: str
    wraps_language: str | None = None
    spiralers: tuple[tuple[str, str], ...] = ()

    @property
    def role(self) -> str:
        return self.name

    def admits(self, reach: str) -> bool:
        return reach in visible_reach_levels(self.scope)


RING_KINDS: dict[str, RingKind] = {
    item.name: item
    for item in (
        RingKind(
            name="RustCore",
            language="rust",
            is_core=True,
            scope="core",
            spiralers=(
                ("front", "FrontDomainSpiraler"),
                ("android", "MobileBindingSpiraler"),
                ("native", "NativeBindingSpiraler"),
                ("desktop", "DesktopSpiraler"),
            ),
        ),
        RingKind(
            name="TypeScriptCore",
            language="typescript",
            is_core=True,
            scope="core",
            spiralers=(("front", "FrontDomainSpiraler"),),
        ),
        RingKind(
            name="FrontDomainSpiraler",
            language="typescript",
            is_core=False,
            scope="front",
            spiralers=(("android", "MobileBindingSpiraler"),),
        ),
        RingKind(
            name="MobileBindingSpiraler",
            language="kotlin",
            is_core=False,
            scope="platform",
            wraps_language="rust",
            spiralers=(
                ("ipc", "IpcDescriptorSpiraler"),
                ("native", "NativeBindingSpiraler"),
            ),
        ),
        RingKind(
            name="NativeBindingSpiraler",
            language="jni",
            is_core=False,
            scope="platform",
            wraps_language="rust",
        ),
        RingKind(
            name="IpcDescriptorSpiraler",
            language="aidl",
            is_core=False,
            scope="platform",
            wraps_language="rust",
        ),
        RingKind(
            name="DesktopSpiraler",
            language="rust",
            is_core=False,
            scope="platform",
            wraps_language="rust",
        ),
    )
}


def resolve_ring_kind(name: str) -> RingKind:
    kind = RING_KINDS.get(name)
    if kind is None:
        known = ", ".join(RING_KINDS)
        raise LoomError(f"Unknown ring kind '{name}'. Known kinds: {known}")
    return kind


@dataclass(frozen=True)
class Ring:
    ring_id: int
    name: str
    kind: str
    language: str
    is_core: bool
    package_name: str
    package_path: str
    wraps: int | None = None
    wraps_language: str | None = None
    options: tuple[tuple[str, Any], ...] = ()

    @property
    def role(self) -> str:
        return self.kind

    def option(self, key: str, default: Any = None) -> Any:
        for name, value in self.options:
            if name == key:
                return value
        return default

    def as_dict(self) -> dict[str, Any]:
        return {
            "ring_id": self.ring_id,
            "name": self.name,
            "kind": self.kind,
            "language": self.language,
            "is_core": self.is_core,
            "package_name": self.package_name,
            "package_path": self.package_path,
            "wraps": self.wraps,
            "wraps_language": self.wraps_language,
            "options": dict(self.options),
        }


class RingGraph:
    """Arena of rings; a spiraler points at the ring it wraps by index."""

    def __init__(self) -> None:
        self._rings: list[Ring] = []
        self._names: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._rings)

    def _add(self, ring_kind: RingKind, name: str, package_name: str, package_path: str,
             wraps: int | None, options: dict[str, Any] | None) -> int:
        if name in self._names:
            raise LoomError(f"Duplicate ring name '{name}'")
        ring_id = len(self._rings)
        self._rings.append(
            Ring(
                ring_id=ring_id,
                name=name,
                kind=ring_kind.name,
                language=ring_kind.language,
                is_core=ring_kind.is_core,
                package_name=package_name or name,
                package_path=package_path or ".",
                wraps=wraps,
                wraps_language=ring_kind.wraps_language,
                options=tuple(sorted((options or {}).items())),
            )
        )
        self._names[name] = ring_id
        return ring_id

    def add_core(
        self,
        name: str,
        kind: str,
        package_name: str = "",
        package_path: str = ".",
        options: dict[str, Any] | None = None,
    ) -> int:
        ring_kind = resolve_ring_kind(kind)
        if not ring_kind.is_core:
            raise LoomError(f"Ring '{name}': kind '{kind}' is not a core kind")
        return self._add(ring_kind, name, package_name, package_path, None, options)

    def wrap(
        self,
        parent_id: int,
        spiraler: str,
        name: str | None = None,
        package_name: str = "",
        package_path: str = ".",
        options: dict[str, Any] | None = None,
    ) -> int:
        parent = self.ring(parent_id)
        offered = self.get_spiralers(parent_id)
        kind_name = offered.get(spiraler, spiraler)
        ring_kind = resolve_ring_kind(kind_name)
        if ring_kind.is_core:
            raise LoomError(f"Ring '{parent.name}' cannot be wrapped by core kind '{kind_name}'")
        return self._add(ring_kind, name or f"{parent.name}.{spiraler}", package_name, package_path, parent_id, options)

    def ring(self, ring_id: int) -> Ring:
        if ring_id < 0 or ring_id >= len(self._rings):
            raise LoomError(f"Unknown ring id {ring_id}")
        return self._rings[ring_id]

    def rings(self) -> list[Ring]:
        return list(self._rings)

    def find(self, name: str) -> Ring:
        ring_id = self._names.get(name)
        if ring_id is None:
            known = ", ".join(self._names) or "<none>"
            raise LoomError(f"Unknown ring '{name}'. Known rings: {known}")
        return self._rings[ring_id]

    def get_spiralers(self, ring_id: int) -> dict[str, str]:
        ring = self.ring(ring_id)
        return dict(resolve_ring_kind(ring.kind).spiralers)

    def chain(self, ring_id: int) -> list[Ring]:
        out: list[Ring] = []
        current: int | None = ring_id
        while current is not None:
            ring = self.ring(current)
            out.append(ring)
            current = ring.wraps
        out.reverse()
        return out

    def core_of(self, ring_id: int) -> Ring:
        return self.chain(ring_id)[0]

    def children(self, ring_id: int) -> list[Ring]:
        return [ring for ring in self._rings if ring.wraps == ring_id]

    def leaves(self) -> list[Ring]:
        wrapped = {ring.wraps for ring in self._rings if ring.wraps is not None}
        return [ring for ring in self._rings if ring.ring_id not in wrapped]

    def as_dict(self) -> dict[str, Any]:
        return {"rings": [ring.as_dict() for ring in self._rings]}


def build_graph(config: dict[str, Any]) -> RingGraph:
    rings_cfg = config.get("rings")
    if not isinstance(rings_cfg, dict) or not rings_cfg:
        raise LoomError("Config is missing required non-empty object: 'rings'.")

    graph = RingGraph()
    for name, entry in rings_cfg.items():
        if not isinstance(entry, dict):
            raise LoomError(f"ring '{name}' must be an object")
        package_name = entry.get("package_name", name)
        package_path = entry.get("package_path", ".")
        options = entry.get("options", {})
        if not isinstance(package_name, str) or not package_name:
            raise LoomError(f"ring '{name}'.package_name must be a non-empty string")
        if not isinstance(package_path, str) or not package_path:
            raise LoomError(f"ring '{name}'.package_path must be a non-empty string")
        if not isinstance(options, dict):
            raise LoomError(f"ring '{name}'.options must be an object when specified")

        wraps = entry.get("wraps")
        if wraps is None:
            kind = entry.get("kind")
            if not isinstance(kind, str) or not kind:
                raise LoomError(f"ring '{name}' has no 'wraps' and must declare a core 'kind'")
            graph.add_core(name, kind, package_name, package_path, options)
            continue

        if not isinstance(wraps, str) or not wraps:
            raise LoomError(f"ring '{name}'.wraps must be a ring name")
        if wraps not in rings_cfg or list(rings_cfg).index(wraps) >= list(rings_cfg).index(name):
            raise LoomError(f"ring '{name}' wraps '{wraps}', which must be declared before it")
        spiraler = entry.get("spiraler", entry.get("kind"))
        if not isinstance(spiraler, str) or not spiraler:
            raise LoomError(f"ring '{name}' must declare 'spiraler' or 'kind'")
        graph.wrap(graph.find(wraps).ring_id, spiraler, name, package_name, package_path, options)
    return graph


def require_wrapped_core_language(graph: RingGraph, current: Ring, previous: Ring) -> None:
    if current.wraps_language is None:
        return
    core = graph.core_of(current.ring_id)
    if core.language != current.wraps_language:
        raise ValidationError(
            f"Ring '{current.name}' ({current.kind}) must wrap a '{current.wraps_language}' core, "
            f"but its chain starts at '{core.name}' ({core.kind}, language '{core.language}')"
        )


@dataclass(frozen=True)
class Spiral:
    management: ManagementSpec
    ring_ids: tuple[int, ...]

    def as_dict(self) -> dict[str, Any]:
        return {"management": self.management.name, "reach": self.management.reach, "ring_ids": list(self.ring_ids)}


def build_spirals(graph: RingGraph, specs: list[ManagementSpec]) -> list[Spiral]:
    spirals: list[Spiral] = []
    for spec in specs:
        seen: set[tuple[int, ...]] = set()
        for leaf in graph.leaves():
            ring_ids: list[int] = []
            for ring in graph.chain(leaf.ring_id):
                if not resolve_ring_kind(ring.kind).admits(spec.reach):
                    break
                ring_ids.append(ring.ring_id)
            key = tuple(ring_ids)
            if not key or key in seen:
                continue
            seen.add(key)
            spirals.append(Spiral(management=spec, ring_ids=key))
    return spirals


def iter_pairs(graph: RingGraph, spirals: list[Spiral]):
    """Yield ``(spiral, current, previous)`` once per management and pair."""
    emitted: set[tuple[str, str, int, int]] = set()
    for spiral in spirals:
        for previous_id, current_id in zip(spiral.ring_ids, spiral.ring_ids[1:]):
            key = (spiral.management.reach, spiral.management.name, current_id, previous_id)
            if key in emitted:
                continue
            emitted.add(key)
            yield spiral, graph.ring(current_id), graph.ring(previous_id)
