"""Tests for JSON, DOT and HTML graph export."""

import json
from pathlib import Path

from nextgraph_cli.graph_export import (
    export_dot,
    export_html,
    export_json,
    graph_payload,
    to_dot,
    to_html,
)
from nextgraph_cli.models import GraphLayout, LayoutEdge, LayoutNode, Position
from nextgraph_cli.schema_graph import analyze_schema


def _layout() -> GraphLayout:
    nodes = [
        LayoutNode(id="root", kind="folder", position=Position(0, 0), width=100, height=40,
                   data={"name": "project"}),
        LayoutNode(id="root-app", kind="folder", position=Position(200, 0), width=100, height=40,
                   data={"name": "app"}),
        LayoutNode(id="root-lib", kind="folder", position=Position(200, 100), width=100, height=40,
                   data={"name": 'say "hi"'}),
    ]
    edges = [
        LayoutEdge(id="edge-root-root-app", source="root", target="root-app", style="app-router", label="app"),
        LayoutEdge(id="edge-root-root-lib", source="root", target="root-lib", style="structural", label="lib"),
    ]
    return GraphLayout(nodes=nodes, edges=edges)


class TestJson:
    def test_payload(self):
        payload = graph_payload(_layout())
        assert [n["id"] for n in payload["nodes"]] == ["root", "root-app", "root-lib"]
        assert payload["edges"][0]["style"] == "app-router"
        assert "stats" not in payload

    def test_schema_payload_has_stats(self, schema_file: Path):
        payload = graph_payload(analyze_schema(schema_file))
        assert payload["stats"]["overview"]["modelCount"] == 2

    def test_focus(self):
        payload = graph_payload(_layout(), focus="root-app")
        assert {n["id"] for n in payload["nodes"]} == {"root", "root-app"}
        assert [e["id"] for e in payload["edges"]] == ["edge-root-root-app"]

    def test_unknown_focus_keeps_everything(self):
        assert len(graph_payload(_layout(), focus="nope")["nodes"]) == 3

    def test_export(self, temp_dir: Path):
        target = temp_dir / "graph.json"
        export_json(_layout(), target)
        assert len(json.loads(target.read_text())["edges"]) == 2


class TestDot:
    def test_structure(self):
        dot = to_dot(_layout())
        assert dot.startswith("digraph NextGraph {")
        assert dot.rstrip().endswith("}")
        assert '"root" -> "root-app"' in dot
        assert 'pos="50.0,-20.0!"' in dot

    def test_labels_escaped(self):
        dot = to_dot(_layout())
        assert 'folder\\nsay \\"hi\\"' in dot

    def test_export(self, temp_dir: Path):
        target = temp_dir / "graph.dot"
        export_dot(_layout(), target)
        assert "digraph" in target.read_text()


class TestHtml:
    def test_page(self):
        page = to_html(_layout(), title="Tree <demo>")
        assert "<title>Tree &lt;demo&gt;</title>" in page
        assert page.count("<rect") == 3
        assert page.count("<line") == 2
        assert 'id="graph-data"' in page

    def test_empty_graph(self):
        page = to_html(GraphLayout())
        assert "<svg" in page

    def test_export(self, temp_dir: Path):
        target = temp_dir / "graph.html"
        export_html(_layout(), target)
        assert target.read_text().startswith("<!doctype html>")
