"""Analyze command: build the code graph for a project and report on it."""

from __future__ import annotations

import dataclasses
import sys
from argparse import Namespace
from pathlib import Path

from structgraph.build import ProjectBuilder
from structgraph.config import BuildConfig, load_config
from structgraph.errors import ProjectRootNotFoundError
from structgraph.graph.model import CodeGraph


def config_for_args(args: Namespace) -> BuildConfig:
    """Merged file config for the project, with command-line overrides applied."""
    path: Path = getattr(args, "path", Path("."))
    config = BuildConfig.from_dict(load_config(path))
    overrides: dict = {}
    if getattr(args, "recover", False):
        overrides["error_mode"] = "recover"
    if getattr(args, "timeout", None) is not None:
        overrides["parse_timeout"] = args.timeout
    jobs = getattr(args, "jobs", None)
    if jobs is not None:
        overrides["parallel"] = jobs > 1
        overrides["workers"] = jobs
    if overrides:
        config = dataclasses.replace(config, **overrides)
        config.validate()
    return config


def build_for_args(args: Namespace) -> CodeGraph:
    """Build the graph for args.path. Raises ProjectRootNotFoundError before loading config."""
    path: Path = getattr(args, "path", Path("."))
    if not path.is_dir():
        raise ProjectRootNotFoundError(path)
    return ProjectBuilder(config_for_args(args)).build(path)


def _print_summary(graph: CodeGraph, show_unresolved: bool) -> None:
    report = graph.report
    stats = graph.stats()
    print(
        f"Analyzed {report.units_parsed} of {report.units_total} file(s) in {report.elapsed:.1f}s "
        f"({report.success_rate:.1f}%): {len(graph)} entities, {len(graph.edges)} edges."
    )
    print()
    print("  Entities:")
    for key, count in stats.items():
        if key.startswith("entities."):
            print(f"    {key.split('.', 1)[1]}: {count}")
    print("  Edges:")
    for key, count in stats.items():
        if key.startswith("edges.") and key != "edges.unresolved":
            print(f"    {key.split('.', 1)[1]}: {count}")
    print(f"    unresolved: {len(report.unresolved)}")

    if report.failures:
        print()
        print(f"  Failed files ({report.units_failed}):")
        for failure in report.failures:
            print(f"    {failure.unit_id}: {failure.message}")
    if report.diagnostics:
        print()
        print(f"  Diagnostics ({len(report.diagnostics)}):")
        for diagnostic in report.diagnostics:
            print(f"    {diagnostic.unit_id}: {diagnostic.message}")
    if report.cycles:
        print()
        print("  Inheritance cycles:")
        for cycle in report.cycles:
            print(f"    {cycle}")
    if show_unresolved and report.unresolved:
        print()
        print("  Unresolved:")
        for edge in report.unresolved:
            where = edge.location or edge.from_entity_id
            print(f"    {where}: {edge.kind.value} {edge.target_label}")


def run(args: Namespace) -> None:
    """Run the analyze command."""
    graph = build_for_args(args)
    _print_summary(graph, getattr(args, "show_unresolved", False))
    if graph.report.failures:
        print(f"({graph.report.units_failed} file(s) could not be parsed)", file=sys.stderr)
