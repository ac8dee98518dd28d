"""Export a CodeGraph as JSON or as flat node/edge CSV tables."""

from __future__ import annotations

import csv
import json
from typing import Any, TextIO

from .model import CodeGraph

NODE_FIELDS = [
    "entity_id",
    "name",
    "kind",
    "unit_id",
    "qualified_name",
    "parent_id",
    "start",
    "end",
    "start_line",
    "end_line",
    "docstring",
    "signature",
    "return_type",
    "decorators",
    "bases",
    "is_async",
    "is_abstract",
    "is_private",
    "is_test",
]

EDGE_FIELDS = [
    "index",
    "kind",
    "from_entity_id",
    "to_entity_id",
    "target_name",
    "resolved",
    "location",
]


def to_dict(graph: CodeGraph) -> dict[str, Any]:
    """JSON-serializable view of the graph; entity and edge order are preserved."""
    report = graph.report
    return {
        "entities": [entity.to_dict() for entity in graph.entities.values()],
        "edges": [dict(edge.to_dict(), index=i) for i, edge in enumerate(graph.edges)],
        "report": {
            "units_total": report.units_total,
            "units_parsed": report.units_parsed,
            "success_rate": report.success_rate,
            "failures": [
                {
                    "unit_id": f.unit_id,
                    "message": f.message,
                    "line": f.source_span.start_line if f.source_span else None,
                }
                for f in report.failures
            ],
            "diagnostics": [
                {"unit_id": d.unit_id, "message": d.message} for d in report.diagnostics
            ],
            "cycles": [str(c) for c in report.cycles],
            "unresolved": len(report.unresolved),
        },
    }


def export_json(graph: CodeGraph, out: TextIO) -> None:
    """Write the graph as a JSON object to out (e.g. sys.stdout)."""
    json.dump(to_dict(graph), out, indent=2)


def _csv_value(value: Any) -> Any:
    # CSV: normalize None to empty string, bool to true/false, lists to ';'-joined
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ";".join(str(v) for v in value)
    return value


def export_csv_nodes(graph: CodeGraph, out: TextIO) -> None:
    """Write one CSV row per entity."""
    writer = csv.DictWriter(out, fieldnames=NODE_FIELDS, lineterminator="\n", extrasaction="ignore")
    writer.writeheader()
    for entity in graph.entities.values():
        row = entity.to_dict()
        writer.writerow({k: _csv_value(row.get(k)) for k in NODE_FIELDS})


def export_csv_edges(graph: CodeGraph, out: TextIO) -> None:
    """Write one CSV row per edge, in graph order."""
    writer = csv.DictWriter(out, fieldnames=EDGE_FIELDS, lineterminator="\n")
    writer.writeheader()
    for index, edge in enumerate(graph.edges):
        row = dict(edge.to_dict(), index=index)
        writer.writerow({k: _csv_value(row.get(k)) for k in EDGE_FIELDS})
