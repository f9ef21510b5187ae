"""Graph export helpers for JSON, DOT and simple standalone HTML outputs.

All three formats take an already positioned graph (``GraphLayout`` or
``SchemaGraph``); nothing here runs a layout.
"""

from __future__ import annotations

import html
import json
from pathlib import Path
from typing import Dict, List, Sequence, Union

from .models import GraphLayout, LayoutEdge, LayoutNode, SchemaGraph

Graph = Union[GraphLayout, SchemaGraph]

_EDGE_COLORS = {
    "app-router": "#2563eb",
    "structural": "#9ca3af",
    "dependency-local": "#16a34a",
    "dependency-external": "#ea580c",
    "relation": "#7c3aed",
    "enum-reference": "#db2777",
}

_NODE_FILLS = {
    "folder": "#eff6ff",
    "file": "#f9fafb",
    "dependency": "#f0fdf4",
    "model": "#f5f3ff",
    "enum": "#fdf2f8",
}


def graph_payload(graph: Graph, focus: str = "") -> Dict:
    nodes, edges = _focused_subgraph(graph.nodes, graph.edges, focus)
    payload = {
        "nodes": [n.to_dict() for n in nodes],
        "edges": [e.to_dict() for e in edges],
    }
    if isinstance(graph, SchemaGraph):
        payload["stats"] = graph.stats
    return payload


def export_json(graph: Graph, output_file: Path, focus: str = "") -> None:
    output_file.write_text(json.dumps(graph_payload(graph, focus), indent=2), encoding="utf-8")


def to_dot(graph: Graph, focus: str = "") -> str:
    """Graphviz source with pinned ``pos`` attributes (points, y flipped)."""
    nodes, edges = _focused_subgraph(graph.nodes, graph.edges, focus)

    lines = ["digraph NextGraph {"]
    lines.append("  rankdir=LR;")
    lines.append("  node [shape=box, style=filled, fontname=Helvetica];")

    for node in nodes:
        cx = node.position.x + node.width / 2
        cy = -(node.position.y + node.height / 2)
        label = f"{_esc(node.kind)}\\n{_esc(_label(node))}"
        fill = _NODE_FILLS.get(node.kind, "#ffffff")
        lines.append(
            f'  "{_esc(node.id)}" [label="{label}", pos="{cx:.1f},{cy:.1f}!", '
            f'fillcolor="{fill}"];'
        )

    for edge in edges:
        color = _EDGE_COLORS.get(edge.style, "#6b7280")
        lines.append(
            f'  "{_esc(edge.source)}" -> "{_esc(edge.target)}" '
            f'[label="{_esc(edge.label)}", color="{color}", class="{edge.style}"];'
        )

    lines.append("}")
    return "\n".join(lines)


def export_dot(graph: Graph, output_file: Path, focus: str = "") -> None:
    output_file.write_text(to_dot(graph, focus), encoding="utf-8")


def to_html(graph: Graph, title: str = "NextGraph Export", focus: str = "") -> str:
    """Standalone page drawing the graph as SVG at its computed positions."""
    nodes, edges = _focused_subgraph(graph.nodes, graph.edges, focus)
    if nodes:
        min_x = min(n.position.x for n in nodes) - 40
        min_y = min(n.position.y for n in nodes) - 40
        max_x = max(n.position.x + n.width for n in nodes) + 40
        max_y = max(n.position.y + n.height for n in nodes) + 40
    else:
        min_x, min_y, max_x, max_y = 0, 0, 400, 200

    by_id = {n.id: n for n in nodes}
    shapes: List[str] = []
    for edge in edges:
        src, dst = by_id.get(edge.source), by_id.get(edge.target)
        if src is None or dst is None:
            continue
        color = _EDGE_COLORS.get(edge.style, "#6b7280")
        shapes.append(
            f'<line x1="{src.position.x + src.width:.1f}" y1="{src.position.y + src.height / 2:.1f}" '
            f'x2="{dst.position.x:.1f}" y2="{dst.position.y + dst.height / 2:.1f}" '
            f'stroke="{color}" stroke-width="1.5"><title>{html.escape(edge.label)}</title></line>'
        )
    for node in nodes:
        fill = _NODE_FILLS.get(node.kind, "#ffffff")
        shapes.append(
            f'<g class="{node.kind}"><rect x="{node.position.x:.1f}" y="{node.position.y:.1f}" '
            f'width="{node.width:.1f}" height="{node.height:.1f}" rx="6" fill="{fill}" '
            f'stroke="#374151"/><text x="{node.position.x + 8:.1f}" '
            f'y="{node.position.y + 20:.1f}">{html.escape(_label(node))}</text></g>'
        )

    data = json.dumps(graph_payload(graph, focus))
    return f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>{html.escape(title)}</title>
  <style>
    body {{ font-family: ui-monospace, SFMono-Regular, Menlo, monospace; margin: 20px; }}
    svg {{ border: 1px solid #ddd; border-radius: 8px; }}
    text {{ font-size: 13px; }}
  </style>
</head>
<body>
  <h1>{html.escape(title)}</h1>
  <svg xmlns="http://www.w3.org/2000/svg" width="{max_x - min_x:.0f}" height="{max_y - min_y:.0f}"
       viewBox="{min_x:.1f} {min_y:.1f} {max_x - min_x:.1f} {max_y - min_y:.1f}">
    {"".join(shapes)}
  </svg>
  <script id="graph-data" type="application/json">{html.escape(data, quote=False)}</script>
</body>
</html>
"""


def export_html(graph: Graph, output_file: Path, title: str = "NextGraph Export", focus: str = "") -> None:
    output_file.write_text(to_html(graph, title, focus), encoding="utf-8")


def _label(node: LayoutNode) -> str:
    return str(node.data.get("label") or node.data.get("name") or node.id)


def _focused_subgraph(
    nodes: Sequence[LayoutNode],
    edges: Sequence[LayoutEdge],
    focus: str,
):
    if not focus:
        return list(nodes), list(edges)

    focus_ids = {n.id for n in nodes if focus in n.id or focus in _label(n)}
    if not focus_ids:
        return list(nodes), list(edges)

    edge_subset = [e for e in edges if e.source in focus_ids or e.target in focus_ids]
    keep = set(focus_ids)
    for e in edge_subset:
        keep.add(e.source)
        keep.add(e.target)
    return [n for n in nodes if n.id in keep], edge_subset


def _esc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')
