from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from ._core_base import *  # noqa: F401,F403
from ._core_types import *  # noqa: F401,F403
from ._core_collect import *  # noqa: F401,F403
from ._core_rings import *  # noqa: F401,F403
from ._core_emit import *  # noqa: F401,F403
from ._core_hookups import *  # noqa: F401,F403
from ._core_treadles import *  # noqa: F401,F403
from ._core_builtin import *  # noqa: F401,F403
from ._core_heddles import *  # noqa: F401,F403

DRIFT_STATUSES = {"drift", "would_write"}


def validate_config_payload(config: dict[str, Any]) -> None:
    loom_dir = config.get("loom_dir", DEFAULT_LOOM_DIR)
    if not isinstance(loom_dir, str) or not loom_dir:
        raise LoomError("Config field 'loom_dir' must be a non-empty string when specified.")
    rings = config.get("rings")
    if not isinstance(rings, dict) or not rings:
        raise LoomError("Config is missing required non-empty object: 'rings'.")
    types = config.get("types")
    if types is not None:
        if not isinstance(types, list):
            raise LoomError("Config field 'types' must be an array when specified.")
        for idx, item in enumerate(types):
            if not isinstance(item, dict):
                raise LoomError(f"types[{idx}] must be an object")
            for key in ("abstract_type", "language", "target_type", "strategy"):
                value = item.get(key)
                if not isinstance(value, str) or not value:
                    raise LoomError(f"types[{idx}].{key} must be a non-empty string")
            sentinel = item.get("error_sentinel", "")
            if not isinstance(sentinel, str):
                raise LoomError(f"types[{idx}].error_sentinel must be a string when specified")


def load_config(path: Path) -> dict[str, Any]:
    config = load_json(path)
    validate_config_payload(config)
    return config


def resolve_config_path(workspace_root: Path, config_arg: str | None) -> Path:
    if config_arg:
        return ensure_relative_path(workspace_root, config_arg).resolve()
    return (workspace_root / DEFAULT_CONFIG_NAME).resolve()


def build_type_table(config: dict[str, Any]) -> TypeTable:
    table = default_type_table()
    for item in config.get("types") or []:
        table.register(
            TypeMappingEntry(
                abstract_type=item["abstract_type"],
                language=item["language"],
                target_type=item["target_type"],
                strategy=item["strategy"],
                error_sentinel=item.get("error_sentinel", ""),
                is_primitive=item["strategy"] == "primitive",
            )
        )
    return table


@dataclass(frozen=True)
class Workspace:
    root: Path
    config: dict[str, Any]
    types: TypeTable
    specs: tuple[ManagementSpec, ...]
    graph: RingGraph
    spirals: tuple[Spiral, ...]


def load_workspace(workspace_root: Path, config: dict[str, Any]) -> Workspace:
    types = build_type_table(config)
    specs = collect(workspace_root, config.get("loom_dir", DEFAULT_LOOM_DIR), types)
    graph = build_graph(config)
    spirals = build_spirals(graph, specs)
    return Workspace(
        root=workspace_root,
        config=config,
        types=types,
        specs=tuple(specs),
        graph=graph,
        spirals=tuple(spirals),
    )


def render_tasks(workspace: Workspace, plan: WeavingPlan, jobs: int = 1) -> list[TreadleResult]:
    """Render every task; results and the first failure follow task order."""
    contexts = [
        TreadleContext(
            workspace_root=workspace.root,
            graph=workspace.graph,
            spiral=task.spiral,
            current=task.current,
            previous=task.previous,
            types=workspace.types,
            managements=workspace.specs,
        )
        for task in plan.tasks
    ]
    if jobs <= 1 or len(contexts) <= 1:
        return [execute_treadle(task.treadle, context) for task, context in zip(plan.tasks, contexts)]
    with ThreadPoolExecutor(max_workers=jobs) as executor:
        futures = [
            executor.submit(execute_treadle, task.treadle, context)
            for task, context in zip(plan.tasks, contexts)
        ]
        return [future.result() for future in futures]


def run_generation(
    *,
    workspace_root: Path,
    config: dict[str, Any],
    dry_run: bool,
    check: bool,
    print_diff: bool = False,
    jobs: int = 1,
    registry: list[Treadle] | None = None,
) -> dict[str, Any]:
    if jobs < 1:
        raise LoomError("--jobs must be at least 1")
    workspace = load_workspace(workspace_root, config)
    plan = build_plan(workspace.graph, list(workspace.spirals), registry if registry is not None else default_registry())
    results = render_tasks(workspace, plan, jobs)

    artifacts = [artifact for result in results for artifact in result.artifacts]
    check_output_collisions(artifacts)
    # Conflicting markers must surface before any artifact reaches disk.
    folded = fold_hookups([hookup for result in results for hookup in result.hookups])
    artifact_results = emit_artifacts(artifacts, dry_run=dry_run, check=check)
    hookup_results = write_hookups(folded, dry_run=dry_run, check=check)

    if print_diff:
        for item in artifact_results + hookup_results:
            if item.get("diff"):
                print(item["diff"])

    statuses = [item["status"] for item in artifact_results + hookup_results]
    return {
        "tasks": [task.as_dict() for task in plan.tasks],
        "skipped": plan.as_dict()["skipped"],
        "artifacts": artifact_results,
        "hookups": hookup_results,
        "has_drift": any(status in DRIFT_STATUSES for status in statuses),
    }


def print_generation_summary(result: dict[str, Any]) -> None:
    for item in result["artifacts"]:
        print(f"[{item['management']}] {item['treadle']}: {item['path']} {item['status']}")
    for item in result["hookups"]:
        if item.get("marker"):
            print(f"[hookup] {item['path']} {item['marker']}: {item['status']}")
        else:
            print(f"[hookup] {item['path']}: {item['status']}")
    if result["skipped"]:
        print(f"skipped pairs without a treadle: {len(result['skipped'])}")
