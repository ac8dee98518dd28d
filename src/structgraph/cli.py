"""CLI entry point: argument parsing and subcommand dispatch."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from structgraph import __version__
from structgraph.config import load_config, resolve_path
from structgraph.errors import InvalidConfigError, ProjectRootNotFoundError


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """
    Configure the structgraph logger: level from --verbose/--quiet or config,
    console handler on stderr, optional file handler from config.
    """
    config = load_config(None)
    log_cfg = config.get("logging") or {}
    if verbose:
        level_name = "DEBUG"
    elif quiet:
        level_name = "ERROR"
    else:
        level_name = (log_cfg.get("level") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    root = logging.getLogger("structgraph")
    root.setLevel(level)
    if not root.handlers:
        fmt = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(fmt)
        root.addHandler(console)
        log_file = log_cfg.get("file")
        if log_file:
            try:
                fh = logging.FileHandler(log_file, encoding="utf-8")
                fh.setFormatter(fmt)
                root.addHandler(fh)
            except OSError:
                root.warning("Cannot open log file %s", log_file)


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0: {value}")
    return number


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0: {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="structgraph",
        description="Build a structural code graph (modules, classes, functions, calls, imports) for a Python project.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    log_group = parser.add_mutually_exclusive_group()
    log_group.add_argument("-v", "--verbose", action="store_true", help="Verbose (DEBUG) output.")
    log_group.add_argument("-q", "--quiet", action="store_true", help="Quiet (errors only).")

    # Same flags on subparsers so "structgraph analyze . -v" works
    global_flags = argparse.ArgumentParser(add_help=False)
    log_grp = global_flags.add_mutually_exclusive_group()
    log_grp.add_argument("-v", "--verbose", action="store_true", help=argparse.SUPPRESS)
    log_grp.add_argument("-q", "--quiet", action="store_true", help=argparse.SUPPRESS)

    build_flags = argparse.ArgumentParser(add_help=False)
    build_flags.add_argument("path", type=Path, nargs="?", default=Path("."), help="Project root (default: .).")
    build_flags.add_argument(
        "--recover",
        action="store_true",
        help="Keep partially parsed files (syntax errors become diagnostics instead of failures).",
    )
    build_flags.add_argument("--timeout", type=_positive_float, help="Per-file parse timeout in seconds.")
    build_flags.add_argument(
        "--jobs",
        "-j",
        type=_positive_int,
        help="Parse and extract files on this many worker threads.",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    # analyze
    p_analyze = subparsers.add_parser(
        "analyze",
        help="Build the graph and print a summary and the build report.",
        parents=[global_flags, build_flags],
    )
    p_analyze.add_argument(
        "--show-unresolved",
        action="store_true",
        help="List every edge whose target could not be resolved.",
    )
    p_analyze.set_defaults(run="analyze")

    # export
    p_export = subparsers.add_parser(
        "export",
        help="Build the graph and write it to stdout.",
        parents=[global_flags, build_flags],
    )
    p_export.add_argument(
        "--format",
        "-f",
        choices=("json", "nodes-csv", "edges-csv"),
        default="json",
        help="Output format (default: json).",
    )
    p_export.set_defaults(run="export")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(
        verbose=getattr(args, "verbose", False),
        quiet=getattr(args, "quiet", False),
    )
    run = getattr(args, "run", None)
    if not run:
        parser.print_help()
        sys.exit(0)

    if hasattr(args, "path"):
        args.path = resolve_path(args.path)

    if run == "analyze":
        from structgraph.commands.analyze import run as cmd_run
    elif run == "export":
        from structgraph.commands.export import run as cmd_run
    else:
        parser.print_help()
        sys.exit(0)

    try:
        cmd_run(args)
    except ProjectRootNotFoundError as e:
        print(f"Project root not found: {e.root}", file=sys.stderr)
        sys.exit(1)
    except InvalidConfigError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)
