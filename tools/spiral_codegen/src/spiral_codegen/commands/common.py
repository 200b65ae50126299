from __future__ import annotations

import argparse

from ..core import *  # noqa: F401,F403

def resolve_workspace(args: argparse.Namespace) -> tuple[Path, dict[str, Any]]:
    workspace_root = Path(args.workspace).resolve()
    if not workspace_root.is_dir():
        raise LoomError(f"Workspace '{workspace_root}' is not a directory")
    config_path = resolve_config_path(workspace_root, getattr(args, "config", None))
    return workspace_root, load_config(config_path)


def strip_diffs(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [{key: value for key, value in item.items() if key != "diff"} for item in items]
