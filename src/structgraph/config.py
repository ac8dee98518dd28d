"""Configuration: defaults, config loading (global + project overrides) and BuildConfig."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from structgraph.errors import InvalidConfigError

# Directory name inside a target project for structgraph settings
STRUCTGRAPH_DIR = ".structgraph"
CONFIG_FILENAME = "config.json"

ERROR_MODES = ("strict", "recover")

DEFAULT_EXCLUDE_DIRS = (
    "__pycache__",
    ".git",
    ".venv",
    "venv",
    "env",
    ".tox",
    "dist",
    "build",
    ".eggs",
    "*.egg-info",
    STRUCTGRAPH_DIR,
)


# Global config location
def _global_config_dir() -> Path:
    return Path.home() / STRUCTGRAPH_DIR


def global_config_path() -> Path:
    """Path to global config file (~/.structgraph/config.json)."""
    return _global_config_dir() / CONFIG_FILENAME


def default_config() -> dict[str, Any]:
    """Default configuration."""
    return {
        "analysis": {
            "extensions": [".py"],
            "exclude_dirs": list(DEFAULT_EXCLUDE_DIRS),
            "max_file_size": 10 * 1024 * 1024,
            "include_private": True,
            "include_tests": True,
            "parse_docs": True,
            "error_mode": "strict",
            "parse_timeout": None,
            "parallel": False,
            "workers": None,
        },
        "logging": {
            "level": "INFO",
            "file": None,
        },
        "ignore": {
            "use_gitignore": True,
            "builtin_patterns": [".git/", f"{STRUCTGRAPH_DIR}/"],
            "additional_patterns": [],
        },
    }


def _load_json(path: Path) -> dict[str, Any] | None:
    """Load JSON from path; return None if file missing or invalid."""
    if not path.is_file():
        return None
    try:
        text = path.read_text(encoding="utf-8")
        return json.loads(text)
    except (json.JSONDecodeError, OSError):
        return None


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge override into base recursively. Mutates base; returns base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_global_config() -> dict[str, Any]:
    """Load global config from ~/.structgraph/config.json. Returns defaults if missing."""
    data = _load_json(global_config_path())
    if data is None:
        return default_config()
    return _deep_merge(default_config(), data)


def project_config_path(project_root: Path) -> Path:
    """Path to project-local config (<project>/.structgraph/config.json)."""
    return project_root / STRUCTGRAPH_DIR / CONFIG_FILENAME


def load_config(project_root: Path | None = None) -> dict[str, Any]:
    """
    Load merged configuration: defaults + global (~/.structgraph/config.json) + project overrides.

    If project_root is None, only global config (and defaults) are used.
    """
    merged = load_global_config()
    if project_root is not None:
        project_data = _load_json(project_config_path(project_root.resolve()))
        if project_data is not None:
            _deep_merge(merged, project_data)
    return merged


def resolve_path(path: Path) -> Path:
    """Resolve path to absolute, normalized."""
    return path.resolve()


@dataclass
class BuildConfig:
    """Settings consumed by the build pipeline. Holds no I/O of its own."""

    extensions: tuple[str, ...] = (".py",)
    exclude_dirs: tuple[str, ...] = DEFAULT_EXCLUDE_DIRS
    ignore_patterns: tuple[str, ...] = ()
    use_gitignore: bool = True
    max_file_size: int = 10 * 1024 * 1024
    include_private: bool = True
    include_tests: bool = True
    parse_docs: bool = True
    error_mode: str = "strict"
    parse_timeout: float | None = None
    parallel: bool = False
    workers: int | None = None

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> BuildConfig:
        """Build from a merged config dict (as returned by load_config)."""
        analysis = config.get("analysis", {}) or {}
        ignore_cfg = config.get("ignore", {}) or {}
        defaults = cls()
        patterns = list(ignore_cfg.get("builtin_patterns", []) or [])
        patterns.extend(ignore_cfg.get("additional_patterns", []) or [])
        built = cls(
            extensions=tuple(analysis.get("extensions") or defaults.extensions),
            exclude_dirs=tuple(analysis.get("exclude_dirs", defaults.exclude_dirs) or ()),
            ignore_patterns=tuple(patterns),
            use_gitignore=bool(ignore_cfg.get("use_gitignore", defaults.use_gitignore)),
            max_file_size=analysis.get("max_file_size", defaults.max_file_size),
            include_private=bool(analysis.get("include_private", defaults.include_private)),
            include_tests=bool(analysis.get("include_tests", defaults.include_tests)),
            parse_docs=bool(analysis.get("parse_docs", defaults.parse_docs)),
            error_mode=analysis.get("error_mode", defaults.error_mode),
            parse_timeout=analysis.get("parse_timeout", defaults.parse_timeout),
            parallel=bool(analysis.get("parallel", defaults.parallel)),
            workers=analysis.get("workers", defaults.workers),
        )
        built.validate()
        return built

    def validate(self) -> None:
        """Raise InvalidConfigError if any setting is out of range."""
        if not self.extensions:
            raise InvalidConfigError("extensions cannot be empty")
        if not isinstance(self.max_file_size, int) or self.max_file_size <= 0:
            raise InvalidConfigError("max_file_size must be greater than 0")
        if self.workers is not None and self.workers <= 0:
            raise InvalidConfigError("workers must be greater than 0")
        if self.parse_timeout is not None and self.parse_timeout <= 0:
            raise InvalidConfigError("parse_timeout must be greater than 0")
        if self.error_mode not in ERROR_MODES:
            raise InvalidConfigError(
                f"error_mode must be one of {', '.join(ERROR_MODES)}: {self.error_mode!r}"
            )

    def should_parse_extension(self, extension: str) -> bool:
        """Return True if files with this suffix ('.py' or 'py') are analyzed."""
        wanted = extension.lstrip(".")
        return any(ext.lstrip(".") == wanted for ext in self.extensions)

    def should_exclude_dir(self, dir_name: str) -> bool:
        """Return True if a directory name matches exclude_dirs (supports '*.egg-info')."""
        for excluded in self.exclude_dirs:
            if "*" in excluded:
                if excluded.replace("*", "") in dir_name:
                    return True
            elif dir_name == excluded:
                return True
        return False
