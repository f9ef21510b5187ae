"""Tests for the Structure Tree layout engine."""

from itertools import combinations
from pathlib import Path

import pytest

from nextgraph_cli.config_manager import TreeLayoutConfig
from nextgraph_cli.dependencies import analyze_dependencies
from nextgraph_cli.models import LayoutNode, Position
from nextgraph_cli.tree_layout import (
    TreeLayoutEngine,
    all_folder_ids,
    boxes_collide,
    build_tree_layout,
    default_expanded,
    find_compact_position,
    node_id_for,
    sanitize_id,
)
from nextgraph_cli.walker import analyze_project

PADDING = TreeLayoutConfig().collision_padding


def _assert_no_overlap(nodes):
    for a, b in combinations(nodes, 2):
        assert not boxes_collide(a, b, PADDING), f"{a.id} overlaps {b.id}"


@pytest.fixture
def structure(full_project: Path):
    return analyze_project(full_project).structure


class TestIdentity:
    def test_sanitize(self):
        assert sanitize_id("root/app/(shop)/[id]") == "root-app-shop-id-"

    def test_plain_names(self):
        assert node_id_for([]) == "root"
        assert node_id_for(["app"]) == "root-app"
        assert node_id_for(["app", "blog"]) == "root-app-blog"

    def test_ids_never_collide_after_sanitizing(self):
        assert node_id_for(["a-b"]) != node_id_for(["a_b"])
        assert node_id_for(["a-b"]) != node_id_for(["a", "b"])
        assert node_id_for(["app", "[id]"]) != node_id_for(["app", "(id)"])

    def test_file_ids_never_match_folder_ids(self, make_project):
        root = make_project({"x/a.txt": "a", "x/file/0/b.txt": "b"})
        structure = analyze_project(root).structure
        layout = build_tree_layout(structure, all_folder_ids(structure))
        ids = [n.id for n in layout.nodes]
        assert len(ids) == len(set(ids))
        assert node_id_for(["x", "file", "0"]) in ids

    def test_default_expanded(self):
        assert default_expanded() == {"root", "root-app"}

    def test_all_folder_ids(self, structure):
        ids = all_folder_ids(structure)
        assert "root" in ids and "root-app" in ids
        assert node_id_for(["app", "blog", "[slug]"]) in ids
        assert len(ids) == sum(1 for n in structure.iter_nodes() if n.kind == "folder")


class TestCompactPosition:
    def test_free_slot_is_kept(self):
        cfg = TreeLayoutConfig()
        assert find_compact_position(Position(0, 0), 100, 30, [], cfg) == Position(0, 0)

    def test_moves_down_first(self):
        cfg = TreeLayoutConfig()
        blocker = LayoutNode(id="a", kind="file", position=Position(0, 0), width=100, height=30)
        found = find_compact_position(Position(0, 0), 100, 30, [blocker], cfg)
        assert found == Position(0, cfg.collision_vertical_increment)

    def test_fallback_never_overlaps(self):
        cfg = TreeLayoutConfig(collision_max_attempts=2)
        wall = [
            LayoutNode(id=f"w{i}", kind="folder", position=Position(-1000, i * 100.0), width=3000, height=100)
            for i in range(10)
        ]
        found = find_compact_position(Position(0, 0), 100, 30, wall, cfg)
        probe = LayoutNode(id="p", kind="file", position=found, width=100, height=30)
        assert not any(boxes_collide(probe, w, cfg.collision_padding) for w in wall)


class TestTreeLayout:
    def test_default_expansion(self, structure):
        layout = build_tree_layout(structure)
        ids = [n.id for n in layout.nodes]
        assert ids[0] == "root"
        assert "root-app" in ids
        assert "root-components" in ids
        # collapsed folders show no children
        assert not any(i.startswith("root-components:") for i in ids)
        assert "root-app:file-0" in ids

    def test_root_position(self, structure):
        layout = build_tree_layout(structure)
        root = layout.nodes[0]
        assert root.position.x == TreeLayoutConfig().root_x
        assert root.data["isExpanded"] is True

    @pytest.mark.parametrize("expand_all", [False, True])
    def test_no_overlap(self, structure, expand_all):
        expanded = all_folder_ids(structure) if expand_all else None
        layout = build_tree_layout(structure, expanded)
        _assert_no_overlap(layout.nodes)

    def test_expand_all_places_every_node(self, structure):
        layout = build_tree_layout(structure, all_folder_ids(structure))
        assert len(layout.nodes) == sum(1 for _ in structure.iter_nodes())
        assert len(layout.edges) == len(layout.nodes) - 1

    def test_unique_ids(self, structure):
        layout = build_tree_layout(structure, all_folder_ids(structure))
        assert len({n.id for n in layout.nodes}) == len(layout.nodes)
        assert len({e.id for e in layout.edges}) == len(layout.edges)

    def test_deterministic(self, structure):
        first = build_tree_layout(structure, all_folder_ids(structure)).to_dict()
        second = build_tree_layout(structure, all_folder_ids(structure)).to_dict()
        assert first == second

    def test_children_to_the_right(self, structure):
        layout = build_tree_layout(structure)
        nodes = {n.id: n for n in layout.nodes}
        for edge in layout.edges:
            assert nodes[edge.target].position.x > nodes[edge.source].position.x

    def test_edge_styles(self, structure):
        layout = build_tree_layout(structure)
        styles = {e.target: e.style for e in layout.edges}
        assert styles["root-app"] == "app-router"
        assert styles["root-components"] == "structural"

    def test_folder_data(self, structure):
        layout = build_tree_layout(structure)
        app = next(n for n in layout.nodes if n.id == "root-app")
        assert app.data["routePath"] == "/"
        assert app.data["specialFiles"]["hasPage"] is True
        assert app.data["folderCount"] == 7

    def test_collapsed_extent(self, structure):
        engine = TreeLayoutEngine()
        assert engine.tree_extent(structure, (), set()) == TreeLayoutConfig().folder_height


class TestDependencyLayout:
    def test_dependency_nodes(self, full_project: Path, structure):
        engine = TreeLayoutEngine()
        base = engine.layout(structure)
        page = next(n for n in base.nodes if n.data.get("relativePath") == "app/page.tsx")
        result = analyze_dependencies(full_project / "app" / "page.tsx", full_project)

        deps = engine.layout_dependencies(base.nodes, {page.id: result, "missing-file": result})

        assert len(deps.nodes) == 3
        assert all(n.id.startswith(f"{page.id}-dep-") for n in deps.nodes)
        assert all(n.position.x >= page.position.x for n in deps.nodes)
        assert sorted(e.style for e in deps.edges) == [
            "dependency-external",
            "dependency-local",
            "dependency-local",
        ]
        _assert_no_overlap([*base.nodes, *deps.nodes])
