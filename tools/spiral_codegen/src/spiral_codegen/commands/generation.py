from __future__ import annotations

import argparse

from ..core import *  # noqa: F401,F403
from .common import resolve_workspace, strip_diffs

def command_generate(args: argparse.Namespace) -> int:
    workspace_root, config = resolve_workspace(args)
    result = run_generation(
        workspace_root=workspace_root,
        config=config,
        dry_run=bool(args.dry_run),
        check=bool(args.check),
        print_diff=bool(args.print_diff),
        jobs=int(args.jobs or 1),
    )
    print_generation_summary(result)

    if args.report_json:
        write_json(
            Path(args.report_json).resolve(),
            {
                "tool": TOOL_NAME,
                "tool_version": TOOL_VERSION,
                "workspace": workspace_root.as_posix(),
                "tasks": result["tasks"],
                "skipped": result["skipped"],
                "artifacts": strip_diffs(result["artifacts"]),
                "hookups": strip_diffs(result["hookups"]),
                "has_drift": result["has_drift"],
            },
        )

    if args.check and result["has_drift"]:
        print("generated files are out of date; run without --check to update them")
        return 1
    return 0


def command_plan(args: argparse.Namespace) -> int:
    workspace_root, config = resolve_workspace(args)
    workspace = load_workspace(workspace_root, config)
    plan = build_plan(workspace.graph, list(workspace.spirals), default_registry())
    payload = plan.as_dict()

    if args.output:
        write_json(Path(args.output).resolve(), payload)
    for ring in workspace.graph.rings():
        wraps = workspace.graph.ring(ring.wraps).name if ring.wraps is not None else "-"
        print(f"ring {ring.ring_id}: {ring.name} kind={ring.kind} language={ring.language} wraps={wraps}")
    for task in plan.tasks:
        print(f"{task.label()}: {task.current.name} <- {task.previous.name}")
    for management, current, previous in plan.skipped:
        print(f"[{management}] skip: {current} <- {previous}")
    return 0
