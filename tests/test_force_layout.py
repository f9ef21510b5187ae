"""Tests for the schema force layout."""

import math
from itertools import combinations

from nextgraph_cli.config_manager import ForceLayoutConfig
from nextgraph_cli.force_layout import (
    ForceLayoutEngine,
    SimNode,
    estimate_node_height,
    layout_schema_graph,
    resolve_overlaps,
)
from nextgraph_cli.schema_graph import build_schema_graph
from nextgraph_cli.schema_parser import parse_schema


def _schema(n: int) -> str:
    """*n* models chained by relations, plus one enum."""
    blocks = ["enum Status {\n  ON\n  OFF\n}\n"]
    for i in range(n):
        lines = [f"model M{i} {{", "  id Int @id", "  status Status"]
        if i > 0:
            lines.append(f"  prev M{i - 1} @relation(fields: [prevId], references: [id])")
            lines.append("  prevId Int")
        if i < n - 1:
            lines.append(f"  next M{i + 1}[]")
        lines.append("}")
        blocks.append("\n".join(lines) + "\n")
    return "\n".join(blocks)


def _separated(a, b) -> bool:
    ax, ay, bx, by = a.position.x, a.position.y, b.position.x, b.position.y
    return ax + a.width <= bx or bx + b.width <= ax or ay + a.height <= by or by + b.height <= ay


class TestForceLayout:
    def test_no_overlap(self):
        graph = layout_schema_graph(build_schema_graph(parse_schema(_schema(8))))
        for a, b in combinations(graph.nodes, 2):
            assert _separated(a, b), f"{a.id} overlaps {b.id}"

    def test_nodes_stay_near_center(self):
        cfg = ForceLayoutConfig()
        graph = layout_schema_graph(build_schema_graph(parse_schema(_schema(8))), cfg)
        for node in graph.nodes:
            cx = node.position.x + node.width / 2
            cy = node.position.y + node.height / 2
            assert math.hypot(cx - cfg.viewport_width / 2, cy - cfg.viewport_height / 2) < 5000

    def test_reproducible(self):
        text = _schema(6)
        first = layout_schema_graph(build_schema_graph(parse_schema(text)))
        second = layout_schema_graph(build_schema_graph(parse_schema(text)))
        assert [n.position for n in first.nodes] == [n.position for n in second.nodes]

    def test_sizes(self):
        graph = layout_schema_graph(build_schema_graph(parse_schema(_schema(2))))
        assert all(n.width == ForceLayoutConfig().node_width for n in graph.nodes)

    def test_empty_graph(self):
        assert ForceLayoutEngine().layout([], []) == []

    def test_single_node_is_centered(self):
        cfg = ForceLayoutConfig()
        graph = layout_schema_graph(build_schema_graph(parse_schema("model A {\n  id Int @id\n}\n")), cfg)
        (node,) = graph.nodes
        assert abs(node.position.x + node.width / 2 - cfg.viewport_width / 2) < 1
        assert abs(node.position.y + node.height / 2 - cfg.viewport_height / 2) < 1

    def test_links_to_unknown_nodes_are_skipped(self, sample_schema: str):
        graph = build_schema_graph(parse_schema(sample_schema))
        engine = ForceLayoutEngine()
        state = engine.initial_state(graph.nodes[:2], graph.edges)
        assert len(state.links) == 1


class TestHeight:
    def test_estimate(self, sample_schema: str):
        cfg = ForceLayoutConfig()
        user = build_schema_graph(parse_schema(sample_schema)).nodes[0]
        expected = cfg.header_height + cfg.footer_height + 6 * cfg.field_row_height + cfg.height_padding
        assert estimate_node_height(user, cfg) == expected

    def test_clamped(self):
        cfg = ForceLayoutConfig()
        small = build_schema_graph(parse_schema("enum E {\n  A\n}\n")).nodes[0]
        assert estimate_node_height(small, cfg) == cfg.min_height
        fields = "\n".join(f"  f{i} Int" for i in range(60))
        big = build_schema_graph(parse_schema(f"model Big {{\n{fields}\n}}\n")).nodes[0]
        assert estimate_node_height(big, cfg) == cfg.max_height


class TestResolveOverlaps:
    def test_separates_stacked_boxes(self):
        nodes = [SimNode(id=str(i), width=100, height=50) for i in range(5)]
        resolve_overlaps(nodes)
        for a, b in combinations(nodes, 2):
            dx = (a.width + b.width) / 2 - abs(a.x - b.x)
            dy = (a.height + b.height) / 2 - abs(a.y - b.y)
            assert dx <= 0 or dy <= 0

    def test_separated_boxes_untouched(self):
        nodes = [SimNode(id="a", width=10, height=10), SimNode(id="b", width=10, height=10, x=500)]
        assert resolve_overlaps(nodes) == 1
        assert (nodes[0].x, nodes[1].x) == (0.0, 500)
