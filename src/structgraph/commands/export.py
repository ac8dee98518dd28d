"""Export the code graph to JSON or CSV."""

from __future__ import annotations

import sys
from argparse import Namespace

from structgraph.commands.analyze import build_for_args
from structgraph.graph.export import export_csv_edges, export_csv_nodes, export_json


def run(args: Namespace) -> None:
    """Run the export command."""
    fmt = getattr(args, "format", "json")
    graph = build_for_args(args)

    if fmt == "json":
        export_json(graph, sys.stdout)
        sys.stdout.write("\n")
    elif fmt == "nodes-csv":
        export_csv_nodes(graph, sys.stdout)
    else:
        export_csv_edges(graph, sys.stdout)
