from __future__ import annotations

import argparse

from ..core import *  # noqa: F401,F403
from .common import resolve_workspace

def command_list_managements(args: argparse.Namespace) -> int:
    workspace_root, config = resolve_workspace(args)
    specs = collect(workspace_root, config.get("loom_dir", DEFAULT_LOOM_DIR), build_type_table(config))
    if args.reach:
        specs = filter_by_reach(specs, args.reach)

    for reach, group in group_by_reach(specs).items():
        for spec in group:
            methods = filter_by_crud(spec, args.crud) if args.crud else list(spec.methods)
            names = ", ".join(method.name for method in methods) or "<none>"
            print(f"{spec.name} reach={reach} methods={len(methods)}: {names}")
    return 0


def command_types(args: argparse.Namespace) -> int:
    table = default_type_table()
    if args.language and args.language not in TARGET_LANGUAGES:
        known = ", ".join(TARGET_LANGUAGES)
        raise LoomError(f"Unknown language '{args.language}'. Known languages: {known}")
    for entry in table.entries(args.language):
        sentinel = entry.error_sentinel or "-"
        print(f"{entry.abstract_type:<8} {entry.language:<10} {entry.target_type:<12} {entry.strategy:<10} {sentinel}")
    return 0
