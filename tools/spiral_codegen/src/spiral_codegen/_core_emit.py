from __future__ import annotations

from ._core_base import *  # noqa: F401,F403


@dataclass(frozen=True)
class GeneratedArtifact:
    path: Path
    relative_path: str
    content: str
    language: str
    treadle: str
    management: str

    @property
    def producer(self) -> str:
        return f"{self.treadle}/{self.management}"


def check_output_collisions(artifacts: list[GeneratedArtifact]) -> None:
    seen: dict[Path, GeneratedArtifact] = {}
    for artifact in artifacts:
        key = artifact.path.resolve()
        previous = seen.get(key)
        if previous is not None:
            raise OutputCollisionError(
                f"Output path '{artifact.relative_path}' is produced by both "
                f"'{previous.producer}' and '{artifact.producer}'"
            )
        seen[key] = artifact


def write_artifact_if_changed(
    *,
    path: Path,
    content: str,
    dry_run: bool,
    check: bool,
) -> tuple[str, str]:
    old_content = read_text_if_exists(path)
    if old_content == content:
        return "unchanged", ""
    if check:
        return "drift", compute_unified_diff(old_content, content, f"a/{path}", f"b/{path}")
    if dry_run:
        return "would_write", compute_unified_diff(old_content, content, f"a/{path}", f"b/{path}")
    write_text(path, content)
    return "updated", compute_unified_diff(old_content, content, f"a/{path}", f"b/{path}")


def emit_artifacts(artifacts: list[GeneratedArtifact], *, dry_run: bool, check: bool) -> list[dict[str, Any]]:
    check_output_collisions(artifacts)
    results: list[dict[str, Any]] = []
    for artifact in artifacts:
        status, diff = write_artifact_if_changed(
            path=artifact.path,
            content=artifact.content,
            dry_run=dry_run,
            check=check,
        )
        results.append(
            {
                "path": artifact.relative_path,
                "status": status,
                "diff": diff,
                "language": artifact.language,
                "treadle": artifact.treadle,
                "management": artifact.management,
            }
        )
    return results
