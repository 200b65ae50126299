from __future__ import annotations

import threading

from ._core_base import *  # noqa: F401,F403
from ._core_emit import *  # noqa: F401,F403

MARKER_PREFIX = "LOOM"
COMMENT_STYLES = {
    "rust": ("//", ""),
    "gradle": ("//", ""),
    "typescript": ("//", ""),
    "kotlin": ("//", ""),
    "xml": ("<!--", " -->"),
    "toml": ("#", ""),
}

# Hookups patch shared build descriptors; one writer at a time.
HOOKUP_LOCK = threading.Lock()


@dataclass(frozen=True)
class HookupSpec:
    path: Path
    relative_path: str
    scope: str
    marker_id: str
    style: str
    content: str
    insert_after: str | None = None
    insert_before: str | None = None
    producer: str = ""

    @property
    def key(self) -> str:
        return f"{self.scope.upper()}:{self.marker_id.upper()}"


def marker_lines(spec: HookupSpec) -> tuple[str, str]:
    style = COMMENT_STYLES.get(spec.style)
    if style is None:
        known = ", ".join(COMMENT_STYLES)
        raise LoomError(f"Unknown hookup comment style '{spec.style}' (expected one of {known})")
    opener, closer = style
    return (
        f"{opener} {MARKER_PREFIX}:{spec.key}{closer}",
        f"{opener} /{MARKER_PREFIX}:{spec.key}{closer}",
    )


def render_block(spec: HookupSpec) -> list[str]:
    start, end = marker_lines(spec)
    return [start, *spec.content.rstrip("\n").splitlines(), end]


def find_anchor(lines: list[str], anchor: str) -> int | None:
    for index, line in enumerate(lines):
        if anchor in line:
            return index
    return None


def apply_hookup_text(existing: str, spec: HookupSpec) -> tuple[str, str]:
    """Return ``(status, text)`` with the marker block present exactly once."""
    start, end = marker_lines(spec)
    lines = existing.splitlines()
    stripped = [line.strip() for line in lines]
    if start in stripped:
        begin = stripped.index(start)
        if end not in stripped[begin + 1:]:
            raise HookupConflictError(f"{spec.relative_path}: marker '{spec.key}' has no closing marker")
        finish = stripped.index(end, begin + 1)
        current = [line.rstrip() for line in lines[begin + 1:finish]]
        wanted = [line.rstrip() for line in spec.content.rstrip("\n").splitlines()]
        if current != wanted:
            raise HookupConflictError(
                f"{spec.relative_path}: marker '{spec.key}' already present with different content"
                + (f" (requested by {spec.producer})" if spec.producer else "")
            )
        return "unchanged", existing

    block = render_block(spec)
    position = len(lines)
    if spec.insert_after:
        anchor = find_anchor(lines, spec.insert_after)
        if anchor is not None:
            position = anchor + 1
    elif spec.insert_before:
        anchor = find_anchor(lines, spec.insert_before)
        if anchor is not None:
            position = anchor
    if position == len(lines) and lines and lines[-1].strip():
        block = ["", *block]
    updated = lines[:position] + block + lines[position:]
    return "inserted", "\n".join(updated) + "\n"


@dataclass(frozen=True)
class FoldedHookups:
    markers: tuple[dict[str, Any], ...]
    texts: tuple[tuple[Path, str, str], ...]


def fold_hookups(hookups: list[HookupSpec]) -> FoldedHookups:
    """Fold every hookup into its file text in memory; conflicts raise here."""
    with HOOKUP_LOCK:
        texts: dict[Path, str] = {}
        labels: dict[Path, str] = {}
        markers: list[dict[str, Any]] = []
        for spec in hookups:
            key = spec.path.resolve()
            if key not in texts:
                texts[key] = read_text_if_exists(spec.path)
                labels[key] = spec.relative_path
            status, texts[key] = apply_hookup_text(texts[key], spec)
            markers.append({"path": spec.relative_path, "marker": spec.key, "status": status})
        return FoldedHookups(
            markers=tuple(markers),
            texts=tuple((key, labels[key], text) for key, text in texts.items()),
        )


def write_hookups(folded: FoldedHookups, *, dry_run: bool, check: bool) -> list[dict[str, Any]]:
    with HOOKUP_LOCK:
        results = [dict(item) for item in folded.markers]
        for path, label, text in folded.texts:
            status, diff = write_artifact_if_changed(path=path, content=text, dry_run=dry_run, check=check)
            results.append({"path": label, "marker": None, "status": status, "diff": diff})
        return results


def apply_hookups(hookups: list[HookupSpec], *, dry_run: bool, check: bool) -> list[dict[str, Any]]:
    """Fold every hookup into its file in order, then write each file once."""
    return write_hookups(fold_hookups(hookups), dry_run=dry_run, check=check)


def gradle_rust_build_hookup(path: Path, relative_path: str, crate_dir: str, library: str, producer: str = "") -> HookupSpec:
    task = "cargoBuild" + pascal_case(library)
    content = "\n".join(
        [
            f'tasks.register<Exec>("{task}") {{',
            f'    workingDir = file("{crate_dir}")',
            '    commandLine("cargo", "ndk", "-t", "arm64-v8a", "-o", "src/main/jniLibs", "build", "--release")',
            "}",
            'tasks.named("preBuild") {',
            f'    dependsOn("{task}")',
            "}",
        ]
    )
    return HookupSpec(
        path=path,
        relative_path=relative_path,
        scope="gradle",
        marker_id=f"rust-build-{kebab_case(library)}",
        style="gradle",
        content=content,
        producer=producer,
    )


def rust_module_hookup(path: Path, relative_path: str, module: str, producer: str = "") -> HookupSpec:
    return HookupSpec(
        path=path,
        relative_path=relative_path,
        scope="rust",
        marker_id=f"mod-{kebab_case(module)}",
        style="rust",
        content=f"pub mod {module};",
        insert_before="fn ",
        producer=producer,
    )


def typescript_export_hookup(path: Path, relative_path: str, module: str, producer: str = "") -> HookupSpec:
    return HookupSpec(
        path=path,
        relative_path=relative_path,
        scope="typescript",
        marker_id=f"export-{kebab_case(module.rsplit('/', 1)[-1])}",
        style="typescript",
        content=f"export * from '{module}';",
        producer=producer,
    )
