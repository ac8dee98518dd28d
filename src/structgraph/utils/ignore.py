"""Ignore pattern support: .structgraphignore, .gitignore (gitignore syntax), builtin and additional patterns."""

from __future__ import annotations

from pathlib import Path

from pathspec import GitIgnoreSpec, PathSpec

STRUCTGRAPHIGNORE = ".structgraphignore"
GITIGNORE = ".gitignore"


def parse_ignore_file(path: Path) -> list[str]:
    """
    Read a gitignore-style file and return non-empty pattern lines (strip comments and blanks).
    """
    if not path.is_file():
        return []
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError):
        return []
    patterns: list[str] = []
    for line in lines:
        s = line.strip()
        if not s or s.startswith("#"):
            continue
        patterns.append(s)
    return patterns


def load_patterns(
    project_root: Path,
    configured: tuple[str, ...] | list[str] = (),
    use_gitignore: bool = True,
) -> list[str]:
    """
    Build the combined pattern list: configured patterns, then .structgraphignore,
    then .gitignore (when use_gitignore).
    """
    project_root = Path(project_root).resolve()
    patterns = list(configured)
    patterns.extend(parse_ignore_file(project_root / STRUCTGRAPHIGNORE))
    if use_gitignore:
        patterns.extend(parse_ignore_file(project_root / GITIGNORE))
    return patterns


def build_spec(patterns: list[str]) -> PathSpec:
    """Build a PathSpec from pattern strings (gitignore-style)."""
    return GitIgnoreSpec.from_lines(patterns)


def is_ignored(
    path: Path | str,
    project_root: Path | str,
    spec: PathSpec,
) -> bool:
    """
    Return True if the path is ignored by the given spec.

    path is made relative to project_root and normalised to posix for matching.
    Paths outside project_root are never ignored.
    """
    path = Path(path).resolve()
    root = Path(project_root).resolve()
    try:
        rel = path.relative_to(root)
    except ValueError:
        return False
    rel_str = rel.as_posix()
    if spec.match_file(rel_str):
        return True
    # Directory-only patterns (e.g. "build/") need the trailing slash to match
    if not rel_str.endswith("/") and spec.match_file(rel_str + "/"):
        return True
    return False
