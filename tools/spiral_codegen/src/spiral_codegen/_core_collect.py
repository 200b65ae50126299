from __future__ import annotations

from ._core_base import *  # noqa: F401,F403
from ._core_types import *  # noqa: F401,F403

VISIBILITY_SCOPES = {
    "core": ("Private", "Internal", "Public"),
    "platform": ("Internal", "Public"),
    "front": ("Public",),
}


@dataclass(frozen=True)
class ParamSpec:
    name: str
    abstract_type: str
    optional: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.abstract_type, "optional": self.optional}


@dataclass(frozen=True)
class RecordSpec:
    name: str
    fields: tuple[ParamSpec, ...]

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "fields": [item.as_dict() for item in self.fields]}


@dataclass(frozen=True)
class MethodSpec:
    name: str
    params: tuple[ParamSpec, ...]
    return_type: str
    crud: str
    description: str = ""
    tags: tuple[str, ...] = ()
    collection: bool = False
    soft: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "params": [item.as_dict() for item in self.params],
            "returns": self.return_type,
            "crud": self.crud,
            "description": self.description,
            "tags": list(self.tags),
            "collection": self.collection,
            "soft": self.soft,
        }


@dataclass(frozen=True)
class ManagementSpec:
    name: str
    reach: str
    methods: tuple[MethodSpec, ...]
    records: tuple[RecordSpec, ...] = ()
    constants: tuple[tuple[str, Any], ...] = ()
    source_file: str = ""

    @property
    def entity(self) -> str:
        return entity_name(self.name)

    def method_names(self) -> list[str]:
        return [method.name for method in self.methods]

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "reach": self.reach,
            "methods": [item.as_dict() for item in self.methods],
            "records": [item.as_dict() for item in self.records],
            "constants": dict(self.constants),
            "source_file": self.source_file,
        }


def parse_param(value: Any, context: str) -> ParamSpec:
    if not isinstance(value, dict):
        raise DiscoveryError(f"{context} must be an object")
    name = value.get("name")
    abstract_type = value.get("type")
    if not isinstance(name, str) or not name:
        raise DiscoveryError(f"{context}.name must be a non-empty string")
    if not isinstance(abstract_type, str) or not abstract_type:
        raise DiscoveryError(f"{context}.type must be a non-empty string")
    optional = value.get("optional", False)
    if not isinstance(optional, bool):
        raise DiscoveryError(f"{context}.optional must be a boolean when specified")
    return ParamSpec(name=name, abstract_type=abstract_type.strip(), optional=optional)


def parse_method(value: Any, context: str) -> MethodSpec:
    if not isinstance(value, dict):
        raise DiscoveryError(f"{context} must be an object")
    name = value.get("name")
    if not isinstance(name, str) or not name:
        raise DiscoveryError(f"{context}.name must be a non-empty string")
    context = f"{context} '{name}'"

    crud = value.get("crud", "none")
    if crud not in CRUD_TAGS:
        known = ", ".join(CRUD_TAGS)
        raise DiscoveryError(f"{context}: unknown crud tag '{crud}' (expected one of {known})")

    params_raw = value.get("params", [])
    if not isinstance(params_raw, list):
        raise DiscoveryError(f"{context}.params must be an array")
    params = tuple(parse_param(item, f"{context}.params[{idx}]") for idx, item in enumerate(params_raw))
    seen_params: set[str] = set()
    for param in params:
        if param.name in seen_params:
            raise DiscoveryError(f"{context}: duplicate parameter '{param.name}'")
        seen_params.add(param.name)

    return_type = value.get("returns", "void")
    if not isinstance(return_type, str) or not return_type:
        raise DiscoveryError(f"{context}.returns must be a non-empty string")
    return_type = return_type.strip()

    description = value.get("description", "")
    if not isinstance(description, str):
        raise DiscoveryError(f"{context}.description must be a string")
    soft = value.get("soft", False)
    if not isinstance(soft, bool):
        raise DiscoveryError(f"{context}.soft must be a boolean when specified")
    try:
        extra_tags = normalize_string_list(value.get("tags"), f"{context}.tags")
    except LoomError as exc:
        raise DiscoveryError(str(exc)) from exc

    tags = [f"crud:{crud}"]
    tags.extend(tag for tag in extra_tags if tag not in tags)
    return MethodSpec(
        name=name,
        params=params,
        return_type=return_type,
        crud=crud,
        description=normalize_ws(description),
        tags=tuple(tags),
        collection=return_type.endswith("[]") or crud == "list",
        soft=soft,
    )


def parse_records(value: Any, context: str) -> tuple[RecordSpec, ...]:
    if value is None:
        return ()
    if not isinstance(value, dict):
        raise DiscoveryError(f"{context}.types must be an object")
    out: list[RecordSpec] = []
    for name, payload in value.items():
        if not isinstance(name, str) or not re.match(r"^[A-Z][A-Za-z0-9_]*$", name):
            raise DiscoveryError(f"{context}.types: record name '{name}' must be a PascalCase identifier")
        if not isinstance(payload, dict):
            raise DiscoveryError(f"{context}.types['{name}'] must be an object")
        fields_raw = payload.get("fields", [])
        if not isinstance(fields_raw, list):
            raise DiscoveryError(f"{context}.types['{name}'].fields must be an array")
        fields = tuple(
            parse_param(item, f"{context}.types['{name}'].fields[{idx}]") for idx, item in enumerate(fields_raw)
        )
        out.append(RecordSpec(name=name, fields=fields))
    return tuple(out)


def parse_management(payload: dict[str, Any], source_file: str) -> ManagementSpec:
    name = payload.get("management", payload.get("name"))
    if not isinstance(name, str) or not re.match(r"^[A-Za-z_][A-Za-z0-9_]*$", name):
        raise DiscoveryError(f"{source_file}: 'management' must be an identifier string")
    context = f"{source_file}: management '{name}'"
    reach = normalize_reach(payload.get("reach", "Private"), context)

    methods_raw = payload.get("methods")
    if not isinstance(methods_raw, list):
        raise DiscoveryError(f"{context}: 'methods' must be an array")
    methods = tuple(parse_method(item, f"{context} methods[{idx}]") for idx, item in enumerate(methods_raw))
    seen: set[str] = set()
    for method in methods:
        if method.name in seen:
            raise DiscoveryError(f"{context}: duplicate method '{method.name}'")
        seen.add(method.name)

    constants = payload.get("constants", {})
    if not isinstance(constants, dict):
        raise DiscoveryError(f"{context}: 'constants' must be an object")

    return ManagementSpec(
        name=name,
        reach=reach,
        methods=methods,
        records=parse_records(payload.get("types"), context),
        constants=tuple(sorted(constants.items())),
        source_file=source_file,
    )


def referenced_types(spec: ManagementSpec) -> list[tuple[str, str]]:
    out: list[tuple[str, str]] = []
    for method in spec.methods:
        for param in method.params:
            out.append((param.abstract_type, f"{spec.name}.{method.name}({param.name})"))
        out.append((method.return_type, f"{spec.name}.{method.name} return"))
    for record in spec.records:
        for item in record.fields:
            out.append((item.abstract_type, f"{spec.name} record {record.name}.{item.name}"))
    return out


def collect(
    workspace_root: Path,
    loom_dir: str = DEFAULT_LOOM_DIR,
    type_table: TypeTable | None = None,
) -> list[ManagementSpec]:
    """Read every management declaration under ``loom_dir``.

    Declared record types are registered into ``type_table`` as struct
    entries, so the caller should pass the table the run will render with.
    """
    table = type_table if type_table is not None else default_type_table()
    source_dir = ensure_relative_path(workspace_root, loom_dir)
    if not source_dir.is_dir():
        raise DiscoveryError(f"Management directory '{source_dir}' does not exist")

    specs: list[ManagementSpec] = []
    scopes: dict[tuple[str, str], str] = {}
    for path in sorted(source_dir.glob("*.json")):
        source_file = to_root_relative(path, workspace_root)
        try:
            payload = load_json(path)
        except LoomError as exc:
            raise DiscoveryError(str(exc)) from exc
        spec = parse_management(payload, source_file)
        key = (spec.reach, spec.name)
        if key in scopes:
            raise DiscoveryError(
                f"Duplicate management '{spec.name}' in reach '{spec.reach}' "
                f"('{scopes[key]}' and '{source_file}')"
            )
        scopes[key] = source_file
        specs.append(spec)

    for spec in specs:
        for record in spec.records:
            if table.knows(record.name) and table.get_serialization_strategy(record.name) != "struct":
                raise DiscoveryError(f"{spec.source_file}: record '{record.name}' shadows built-in type")
            table.register_struct(record.name)

    for spec in specs:
        for abstract_type, context in referenced_types(spec):
            if not table.knows(abstract_type):
                raise DiscoveryError(f"{spec.source_file}: {context} references undeclared type '{abstract_type}'")
    return specs


def filter_by_reach(specs: list[ManagementSpec], level: str) -> list[ManagementSpec]:
    reach = normalize_reach(level, "filter_by_reach")
    return [spec for spec in specs if spec.reach == reach]


def visible_reach_levels(scope: str) -> tuple[str, ...]:
    levels = VISIBILITY_SCOPES.get(scope)
    if levels is None:
        known = ", ".join(VISIBILITY_SCOPES)
        raise LoomError(f"Unknown visibility scope '{scope}' (expected one of {known})")
    return levels


def filter_visible(specs: list[ManagementSpec], scope: str) -> list[ManagementSpec]:
    levels = visible_reach_levels(scope)
    return [spec for spec in specs if spec.reach in levels]


def filter_by_crud(spec: ManagementSpec, tag: str) -> list[MethodSpec]:
    if tag not in CRUD_TAGS:
        known = ", ".join(CRUD_TAGS)
        raise LoomError(f"Unknown crud tag '{tag}' (expected one of {known})")
    return [method for method in spec.methods if method.crud == tag]


def group_by_reach(specs: list[ManagementSpec]) -> dict[str, list[ManagementSpec]]:
    out: dict[str, list[ManagementSpec]] = {level: [] for level in REACH_LEVELS}
    for spec in specs:
        out[spec.reach].append(spec)
    return out
