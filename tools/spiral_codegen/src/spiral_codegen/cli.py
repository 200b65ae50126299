from __future__ import annotations

import argparse
import sys

from .core import REACH_LEVELS, CRUD_TAGS, TARGET_LANGUAGES, TOOL_NAME, LoomError
from .commands import (
    command_generate,
    command_list_managements,
    command_plan,
    command_types,
)

def add_workspace_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--workspace",
        default=".",
        help="Workspace root holding loom.json and the management declarations (default: current directory).",
    )
    parser.add_argument("--config", help="Path to workspace config JSON (default: <workspace>/loom.json).")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=TOOL_NAME,
        description="Generate front, mobile, native and IPC bindings from management declarations.",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    generate = sub.add_parser("generate", help="Render every matched ring pair and write the outputs.")
    add_workspace_arguments(generate)
    generate.add_argument("--check", action="store_true", help="Fail with exit code 1 if any output would change.")
    generate.add_argument("--dry-run", action="store_true", help="Render and diff without writing files.")
    generate.add_argument("--print-diff", action="store_true", help="Print unified diffs of changed outputs.")
    generate.add_argument("--jobs", type=int, default=1, help="Render tasks on N worker threads (default: 1).")
    generate.add_argument("--report-json", help="Write generation report JSON to path.")
    generate.set_defaults(func=command_generate)

    plan = sub.add_parser("plan", help="Print the ring graph and the treadle selected for every pair.")
    add_workspace_arguments(plan)
    plan.add_argument("--output", help="Write plan JSON to path.")
    plan.set_defaults(func=command_plan)

    list_managements = sub.add_parser("list-managements", help="List collected management declarations.")
    add_workspace_arguments(list_managements)
    list_managements.add_argument("--reach", choices=list(REACH_LEVELS), help="Only list managements with this reach.")
    list_managements.add_argument("--crud", choices=list(CRUD_TAGS), help="Only list methods with this crud tag.")
    list_managements.set_defaults(func=command_list_managements)

    types = sub.add_parser("types", help="Print the built-in type-mapping table.")
    types.add_argument("--language", choices=list(TARGET_LANGUAGES), help="Only print mappings for one language.")
    types.set_defaults(func=command_types)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        return int(args.func(args))
    except LoomError as exc:
        print(f"{TOOL_NAME} error: {exc}", file=sys.stderr)
        return 2



if __name__ == "__main__":
    raise SystemExit(main())
