from __future__ import annotations

from ._core_base import *  # noqa: F401,F403
from ._core_collect import *  # noqa: F401,F403

CRUD_INTERFACES = {
    "create": "Creatable",
    "read": "Readable",
    "update": "Updatable",
    "delete": "Deletable",
    "list": "Listable",
}


@dataclass(frozen=True)
class BoundMethod:
    id: str
    management_name: str
    name: str
    params: tuple[ParamSpec, ...]
    return_type: str
    crud: str
    tags: tuple[str, ...] = ()
    collection: bool = False
    soft: bool = False
    description: str = ""

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def with_tag(self, tag: str) -> "BoundMethod":
        if tag in self.tags:
            return self
        return replace(self, tags=self.tags + (tag,))


MethodFilter = Callable[[BoundMethod], bool]
PipelineStep = Callable[[list[BoundMethod]], list[BoundMethod]]


def bind_methods(spec: ManagementSpec) -> list[BoundMethod]:
    return [
        BoundMethod(
            id=f"{spec.name}.{method.name}",
            management_name=spec.name,
            name=method.name,
            params=method.params,
            return_type=method.return_type,
            crud=method.crud,
            tags=method.tags,
            collection=method.collection,
            soft=method.soft,
            description=method.description,
        )
        for method in spec.methods
    ]


def all_methods(method: BoundMethod) -> bool:
    return True


def tag_filter(tags: list[str] | tuple[str, ...], filter_out: bool = False) -> MethodFilter:
    wanted = tuple(tags)

    def predicate(method: BoundMethod) -> bool:
        hit = any(method.has_tag(tag) for tag in wanted)
        return not hit if filter_out else hit

    return predicate


def crud_operation_filter(operations: list[str] | tuple[str, ...]) -> MethodFilter:
    unknown = [item for item in operations if item not in CRUD_TAGS]
    if unknown:
        raise LoomError(f"Unknown crud operation(s) in filter: {', '.join(unknown)}")
    wanted = set(operations)
    return lambda method: method.crud in wanted


def apply_method_filter(methods: list[BoundMethod], method_filter: MethodFilter) -> list[BoundMethod]:
    return [method for method in methods if method_filter(method)]


def add_management_prefix(methods: list[BoundMethod]) -> list[BoundMethod]:
    out: list[BoundMethod] = []
    for method in methods:
        prefix = entity_name(method.management_name)
        out.append(replace(method, name=camel_case(f"{prefix}_{method.name}")))
    return out


def rename(mapping: dict[str, str]) -> PipelineStep:
    def step(methods: list[BoundMethod]) -> list[BoundMethod]:
        return [replace(method, name=mapping.get(method.name, method.name)) for method in methods]

    return step


def inject_default_param(
    name: str,
    abstract_type: str,
    operations: list[str] | tuple[str, ...] | None = None,
) -> PipelineStep:
    def step(methods: list[BoundMethod]) -> list[BoundMethod]:
        out: list[BoundMethod] = []
        for method in methods:
            applies = operations is None or method.crud in operations
            if applies and all(param.name != name for param in method.params):
                method = replace(method, params=method.params + (ParamSpec(name, abstract_type, True),))
            out.append(method)
        return out

    return step


def tag_crud_intent(methods: list[BoundMethod]) -> list[BoundMethod]:
    out: list[BoundMethod] = []
    for method in methods:
        if method.crud in READ_OPERATIONS:
            method = method.with_tag("intent:read")
        elif method.crud in WRITE_OPERATIONS:
            method = method.with_tag("intent:write")
        interface = CRUD_INTERFACES.get(method.crud)
        if interface:
            method = method.with_tag(f"interface:{interface}")
        out.append(method)
    return out


def apply_pipeline(methods: list[BoundMethod], steps: tuple[PipelineStep, ...], context: str) -> list[BoundMethod]:
    current = list(methods)
    for index, step in enumerate(steps):
        before = [method.id for method in current]
        current = list(step(current))
        after = [method.id for method in current]
        if after != before:
            step_name = getattr(step, "__name__", f"step[{index}]")
            raise ValidationError(
                f"{context}: pipeline step '{step_name}' must keep every method in order "
                f"(before={before}, after={after})"
            )
    return current
