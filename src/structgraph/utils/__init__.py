"""Shared utilities: ignore patterns."""

from structgraph.utils.ignore import (
    build_spec,
    is_ignored,
    load_patterns,
    parse_ignore_file,
)

__all__ = [
    "build_spec",
    "is_ignored",
    "load_patterns",
    "parse_ignore_file",
]
