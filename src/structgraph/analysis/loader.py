"""Source unit loader: enumerate project files, assign stable ids, read text."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from structgraph.config import BuildConfig
from structgraph.errors import ProjectRootNotFoundError
from structgraph.utils.ignore import build_spec, is_ignored, load_patterns

from .units import ParseFailure, SourceUnit

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    """Units that were read successfully, plus failures for those that were not."""

    units: list[SourceUnit] = field(default_factory=list)
    failures: list[ParseFailure] = field(default_factory=list)


def unit_id_for(path: Path, project_root: Path) -> str:
    """Project-relative posix path; the bare file name for files outside the root."""
    try:
        return path.resolve().relative_to(project_root.resolve()).as_posix()
    except ValueError:
        return path.name


def module_name_for(unit_id: str) -> str:
    """
    Derive the dotted module name from a unit id.

    models/user.py -> models.user; pkg/__init__.py -> pkg
    """
    parts = unit_id.split("/")
    if parts[-1].rsplit(".", 1)[0] == "__init__" and len(parts) > 1:
        parts = parts[:-1]
    else:
        parts[-1] = parts[-1].rsplit(".", 1)[0]
    return ".".join(parts)


def collect_files(project_root: Path, config: BuildConfig) -> list[Path]:
    """Collect analyzable files under project_root (respect ignores and exclude_dirs)."""
    patterns = load_patterns(project_root, config.ignore_patterns, config.use_gitignore)
    spec = build_spec(patterns)
    files: list[Path] = []
    for entry in project_root.rglob("*"):
        if not entry.is_file():
            continue
        if not config.should_parse_extension(entry.suffix):
            continue
        rel_dirs = entry.relative_to(project_root).parts[:-1]
        if any(config.should_exclude_dir(part) for part in rel_dirs):
            continue
        if is_ignored(entry, project_root, spec):
            continue
        files.append(entry)
    return files


def _read_unit(path: Path, project_root: Path, config: BuildConfig) -> SourceUnit | ParseFailure:
    unit_id = unit_id_for(path, project_root)
    try:
        size = path.stat().st_size
        if size > config.max_file_size:
            return ParseFailure(
                unit_id,
                f"file too large: {size} bytes exceeds limit of {config.max_file_size} bytes",
            )
        text = path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        return ParseFailure(unit_id, f"unreadable: {exc}")
    return SourceUnit(
        unit_id=unit_id,
        module_name=module_name_for(unit_id),
        path=path.resolve(),
        text=text,
    )


def load_units(
    project_root: Path | str,
    config: BuildConfig,
    files: Optional[Iterable[Path | str]] = None,
) -> LoadResult:
    """
    Load every source unit of a project, ordered by unit id.

    Args:
        project_root: Directory the unit ids are relative to. Must exist.
        config: Selection rules (extensions, exclude_dirs, ignore patterns, size limit).
        files: Explicit file list; when given, no directory scan is done.

    Returns:
        LoadResult with the readable units and one ParseFailure per unreadable file.

    Raises:
        ProjectRootNotFoundError: If project_root is not an existing directory.
    """
    root = Path(project_root)
    if not root.is_dir():
        raise ProjectRootNotFoundError(root)
    root = root.resolve()

    if files is None:
        paths = collect_files(root, config)
    else:
        paths = [p if p.is_absolute() else root / p for p in map(Path, files)]

    result = LoadResult()
    seen: set[str] = set()
    for path in sorted(paths, key=lambda p: unit_id_for(p, root)):
        loaded = _read_unit(path, root, config)
        if loaded.unit_id in seen:
            logger.debug("Skipping duplicate unit %s", loaded.unit_id)
            continue
        seen.add(loaded.unit_id)
        if isinstance(loaded, ParseFailure):
            logger.warning("Skipping %s (%s)", loaded.unit_id, loaded.message)
            result.failures.append(loaded)
        else:
            result.units.append(loaded)
    logger.debug("Loaded %d unit(s), %d unreadable", len(result.units), len(result.failures))
    return result
