from __future__ import annotations

from ._core_base import *  # noqa: F401,F403
from ._core_types import *  # noqa: F401,F403
from ._core_collect import *  # noqa: F401,F403
from ._core_rings import *  # noqa: F401,F403
from ._core_methods import *  # noqa: F401,F403
from ._core_templates import *  # noqa: F401,F403
from ._core_emit import *  # noqa: F401,F403
from ._core_hookups import *  # noqa: F401,F403

# Languages whose generated parameters use snake_case names.
NATIVE_NAMING = ("rust", "jni")


@dataclass(frozen=True)
class TreadleContext:
    workspace_root: Path
    graph: RingGraph
    spiral: Spiral
    current: Ring
    previous: Ring
    types: TypeTable
    managements: tuple[ManagementSpec, ...] = ()

    @property
    def management(self) -> ManagementSpec:
        return self.spiral.management

    def record_owner(self, record_name: str) -> ManagementSpec | None:
        for spec in (self.management, *self.managements):
            if any(record.name == record_name for record in spec.records):
                return spec
        return None

    @property
    def core(self) -> Ring:
        return self.graph.core_of(self.current.ring_id)

    def package_root(self, ring: Ring | None = None) -> Path:
        return ensure_relative_path(self.workspace_root, (ring or self.current).package_path)

    def describe(self) -> str:
        return f"{self.management.name} [{self.current.name} <- {self.previous.name}]"


@dataclass(frozen=True)
class OutputSpec:
    template: str
    path: str
    language: str
    condition: Callable[[dict[str, Any]], bool] | None = None


DataShaper = Callable[[TreadleContext, Ring, Ring], dict[str, Any]]
Validator = Callable[[RingGraph, Ring, Ring], None]
HookupBuilder = Callable[[TreadleContext, dict[str, Any]], HookupSpec]


@dataclass(frozen=True)
class Treadle:
    name: str
    matches: tuple[tuple[str, str], ...]
    outputs: tuple[OutputSpec, ...]
    method_filter: MethodFilter = all_methods
    pipeline: tuple[PipelineStep, ...] = ()
    data_shaper: DataShaper | None = None
    validate: Validator | None = None
    hookups: tuple[HookupBuilder, ...] = ()

    def matches_pair(self, current: Ring, previous: Ring) -> bool:
        return (current.role, previous.role) in self.matches


@dataclass(frozen=True)
class TreadleResult:
    artifacts: tuple[GeneratedArtifact, ...]
    hookups: tuple[HookupSpec, ...]


def define_treadle(
    name: str,
    *,
    matches: list[tuple[str, str]] | tuple[tuple[str, str], ...],
    outputs: list[OutputSpec] | tuple[OutputSpec, ...],
    method_filter: MethodFilter = all_methods,
    pipeline: list[PipelineStep] | tuple[PipelineStep, ...] = (),
    data_shaper: DataShaper | None = None,
    validate: Validator | None = None,
    hookups: list[HookupBuilder] | tuple[HookupBuilder, ...] = (),
) -> Treadle:
    if not isinstance(name, str) or not re.match(r"^[a-z][a-z0-9\-]*$", name):
        raise LoomError(f"Treadle name '{name}' must be lower-kebab-case")
    if not matches:
        raise LoomError(f"Treadle '{name}' must declare at least one match pair")
    for pair in matches:
        if len(pair) != 2:
            raise LoomError(f"Treadle '{name}': match entries must be (current, previous) pairs")
        for role in pair:
            resolve_ring_kind(role)
    if not outputs:
        raise LoomError(f"Treadle '{name}' must declare at least one output")
    for output in outputs:
        resolve_template(output.template)
        if output.language not in TARGET_LANGUAGES:
            raise LoomError(f"Treadle '{name}': unknown output language '{output.language}'")
        if not output.path:
            raise LoomError(f"Treadle '{name}': output '{output.template}' has an empty path")
    return Treadle(
        name=name,
        matches=tuple(tuple(pair) for pair in matches),
        outputs=tuple(outputs),
        method_filter=method_filter,
        pipeline=tuple(pipeline),
        data_shaper=data_shaper,
        validate=validate,
        hookups=tuple(hookups),
    )


def base_data(treadle: Treadle, context: TreadleContext) -> dict[str, Any]:
    spec = context.management
    entity = spec.entity
    return {
        "treadle": treadle.name,
        "management": spec.name,
        "reach": spec.reach,
        "source_file": spec.source_file,
        "entity": pascal_case(entity),
        "entity_camel": camel_case(entity),
        "entity_snake": snake_case(entity),
        "entity_kebab": kebab_case(entity),
        "package_name": context.current.package_name,
        "previous_package_name": context.previous.package_name,
        "core_package_name": context.core.package_name,
        "constants": dict(spec.constants),
    }


def resolve_method(types: TypeTable, method: BoundMethod, source_name: str, language: str, context: str) -> dict[str, Any]:
    where = f"{context} method '{method.id}'"
    params: list[dict[str, Any]] = []
    for param in method.params:
        try:
            entry = types.resolve(param.abstract_type, language)
        except UnmappedTypeError as exc:
            raise UnmappedTypeError(exc.abstract_type, language, f"{where} parameter '{param.name}'") from exc
        params.append(
            {
                "name": snake_case(param.name) if language in NATIVE_NAMING else camel_case(param.name),
                "abstract_type": param.abstract_type,
                "type": entry.target_type,
                "optional": param.optional,
                "strategy": entry.strategy,
            }
        )
    try:
        returned = types.resolve(method.return_type, language)
    except UnmappedTypeError as exc:
        raise UnmappedTypeError(exc.abstract_type, language, f"{where} return") from exc
    return {
        "id": method.id,
        "name": method.name,
        "source_name": source_name,
        "crud": method.crud,
        "description": method.description,
        "tags": list(method.tags),
        "collection": method.collection,
        "soft": method.soft,
        "params": params,
        "return_abstract": method.return_type,
        "return_type": returned.target_type,
        "return_strategy": returned.strategy,
        "return_sentinel": returned.error_sentinel,
    }


def resolve_records(types: TypeTable, spec: ManagementSpec, language: str, context: str) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for record in spec.records:
        fields: list[dict[str, Any]] = []
        for item in record.fields:
            try:
                entry = types.resolve(item.abstract_type, language)
            except UnmappedTypeError as exc:
                raise UnmappedTypeError(
                    exc.abstract_type, language, f"{context} record '{record.name}.{item.name}'"
                ) from exc
            fields.append({"name": item.name, "type": entry.target_type, "optional": item.optional})
        out.append({"name": record.name, "fields": fields})
    return out


def format_output_path(template: str, data: dict[str, Any], context: str) -> str:
    try:
        return template.format(**data)
    except (KeyError, IndexError) as exc:
        raise LoomError(f"{context}: output path '{template}' references unknown placeholder {exc}") from exc


def execute_treadle(treadle: Treadle, context: TreadleContext) -> TreadleResult:
    """Filter, shape and render one (current, previous) pair in memory.

    Nothing is written here; the emitter writes after the whole run rendered.
    """
    where = f"{treadle.name}: {context.describe()}"
    bound = bind_methods(context.management)
    source_names = {method.id: method.name for method in bound}
    methods = apply_method_filter(bound, treadle.method_filter)
    methods = apply_pipeline(methods, treadle.pipeline, where)

    data = base_data(treadle, context)
    if treadle.data_shaper is not None:
        shaped = treadle.data_shaper(context, context.current, context.previous)
        if not isinstance(shaped, dict):
            raise LoomError(f"{where}: data shaper must return a dict")
        data.update(shaped)

    package_root = context.package_root()
    artifacts: list[GeneratedArtifact] = []
    for output in treadle.outputs:
        if output.condition is not None and not output.condition(data):
            continue
        render_context = dict(data)
        render_context["language"] = output.language
        render_context["types"] = context.types
        render_context["methods"] = [
            resolve_method(context.types, method, source_names[method.id], output.language, where)
            for method in methods
        ]
        render_context["records"] = resolve_records(context.types, context.management, output.language, where)
        content = resolve_template(output.template)(render_context)
        relative = format_output_path(output.path, data, where)
        path = package_root / relative
        artifacts.append(
            GeneratedArtifact(
                path=path,
                relative_path=to_root_relative(path, context.workspace_root),
                content=content,
                language=output.language,
                treadle=treadle.name,
                management=context.management.name,
            )
        )

    hookups = tuple(builder(context, data) for builder in treadle.hookups)
    return TreadleResult(artifacts=tuple(artifacts), hookups=hookups)
