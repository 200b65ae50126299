from __future__ import annotations

import difflib
import json
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable

TOOL_NAME = "spiral_codegen"
TOOL_VERSION = "1.0.0"
DEFAULT_CONFIG_NAME = "loom.json"
DEFAULT_LOOM_DIR = "loom"

REACH_LEVELS = ("Private", "Internal", "Public")
REACH_ALIASES = {
    "Local": "Internal",
    "Global": "Public",
}
CRUD_TAGS = ("create", "read", "update", "delete", "list", "none")
READ_OPERATIONS = ("read", "list")
WRITE_OPERATIONS = ("create", "update", "delete")


class LoomError(Exception):
    pass


class DiscoveryError(LoomError):
    pass


class ValidationError(LoomError):
    pass


class UnmappedTypeError(LoomError):
    def __init__(self, abstract_type: str, language: str, context: str | None = None) -> None:
        self.abstract_type = abstract_type
        self.language = language
        self.context = context
        message = f"no type mapping for '{abstract_type}' in target language '{language}'"
        if context:
            message = f"{context}: {message}"
        super().__init__(message)


class OutputCollisionError(LoomError):
    pass


class HookupConflictError(LoomError):
    pass


def normalize_ws(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


def split_words(value: str) -> list[str]:
    text = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", value)
    text = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1 \2", text)
    return [part for part in re.split(r"[\s_\-.]+", text) if part]


def pascal_case(value: str) -> str:
    return "".join(part[:1].upper() + part[1:].lower() for part in split_words(value))


def camel_case(value: str) -> str:
    pascal = pascal_case(value)
    return pascal[:1].lower() + pascal[1:]


def snake_case(value: str) -> str:
    return "_".join(part.lower() for part in split_words(value))


def kebab_case(value: str) -> str:
    return "-".join(part.lower() for part in split_words(value))


def entity_name(management_name: str) -> str:
    return re.sub(r"Mgmt$", "", management_name) or management_name


def load_json(path: Path) -> dict[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise LoomError(f"Unable to read JSON file '{path}': {exc}") from exc
    except json.JSONDecodeError as exc:
        raise LoomError(f"Invalid JSON in '{path}': {exc}") from exc
    if not isinstance(payload, dict):
        raise LoomError(f"JSON root in '{path}' must be an object")
    return payload


def write_json(path: Path, value: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(value, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def read_text_if_exists(path: Path) -> str:
    if not path.exists():
        return ""
    return path.read_text(encoding="utf-8")


def write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def compute_unified_diff(old: str, new: str, fromfile: str, tofile: str) -> str:
    diff = difflib.unified_diff(
        old.splitlines(),
        new.splitlines(),
        fromfile=fromfile,
        tofile=tofile,
        lineterm="",
    )
    return "\n".join(diff)


def ensure_relative_path(root: Path, value: str) -> Path:
    candidate = Path(value)
    if candidate.is_absolute():
        return candidate
    return root / candidate


def to_root_relative(path: Path, root: Path) -> str:
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return path.as_posix()


def normalize_reach(value: Any, context: str) -> str:
    if not isinstance(value, str) or not value:
        raise DiscoveryError(f"{context}: 'reach' must be a non-empty string")
    reach = REACH_ALIASES.get(value, value)
    if reach not in REACH_LEVELS:
        known = ", ".join(REACH_LEVELS)
        raise DiscoveryError(f"{context}: unknown reach '{value}' (expected one of {known})")
    return reach


def normalize_string_list(value: Any, key: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise LoomError(f"'{key}' must be an array of strings")
    out: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item:
            raise LoomError(f"'{key}' must contain only non-empty strings")
        out.append(item)
    return out
