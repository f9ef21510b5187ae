"""Deterministic left-to-right tree layout for the Structure Tree.

Depth grows along x, siblings spread along y.  Every node is placed through
``find_compact_position`` so that no two padded boxes touch.  Dependency
nodes are laid out in a second pass seeded with the structural nodes.
"""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .config_manager import TreeLayoutConfig
from .models import (
    DependencyResult,
    GraphLayout,
    LayoutEdge,
    LayoutNode,
    Position,
    StructureNode,
)

logger = logging.getLogger(__name__)

ROOT_ID = "root"

_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9]")
_DASH_RUN_RE = re.compile(r"-+")
_CLEAN_NAME_RE = re.compile(r"^[a-zA-Z0-9]+$")


# ===================================================================
# Node identity
# ===================================================================

def sanitize_id(path: str) -> str:
    """Replace every non-alphanumeric character and collapse dash runs."""
    return _DASH_RUN_RE.sub("-", _UNSAFE_RE.sub("-", path))


def node_id_for(names: Sequence[str]) -> str:
    """Id of the folder reached by *names* below the root.

    Purely alphanumeric names join unambiguously, so those ids are the
    sanitized path itself (``root-app``).  Any other name makes the path
    ambiguous after sanitizing, so a short hash of the raw segments is
    appended.
    """
    base = sanitize_id("-".join([ROOT_ID, *names]))
    if all(_CLEAN_NAME_RE.match(name) for name in names):
        return base
    digest = hashlib.md5("/".join(names).encode("utf-8")).hexdigest()[:6]
    return f"{base.rstrip('-')}-{digest}"


def file_id_for(folder_id: str, index: int) -> str:
    """Id of the *index*-th file under *folder_id*.

    ``:`` never survives sanitizing, so file ids cannot match a folder id.
    """
    return f"{folder_id}:file-{index}"


def default_expanded() -> Set[str]:
    return {ROOT_ID, node_id_for(["app"])}


def all_folder_ids(structure: StructureNode) -> Set[str]:
    """Every folder id in *structure*, for expand-all."""
    ids: Set[str] = set()
    stack: List[Tuple[StructureNode, Tuple[str, ...]]] = [(structure, ())]
    while stack:
        node, names = stack.pop()
        ids.add(node_id_for(names))
        for child in node.folders():
            stack.append((child, names + (child.name,)))
    return ids


# ===================================================================
# Collision handling
# ===================================================================

def boxes_collide(a: LayoutNode, b: LayoutNode, padding: float) -> bool:
    """Padded boxes intersect or touch."""
    al, at, ar, ab = a.bounds(padding)
    bl, bt, br, bb = b.bounds(padding)
    return not (al > br or ar < bl or at > bb or ab < bt)


def find_compact_position(
    initial: Position,
    width: float,
    height: float,
    existing: Sequence[LayoutNode],
    cfg: TreeLayoutConfig,
) -> Position:
    """First collision-free position from an escalating search around *initial*.

    The first attempts move along y, the next along x (alternating
    sides), the rest along both.  If the budget runs out the node goes
    below every existing box.
    """
    x, y = initial.x, initial.y
    v_inc = cfg.collision_vertical_increment
    h_inc = cfg.collision_horizontal_increment
    pad = cfg.collision_padding

    attempts = 0
    while attempts < cfg.collision_max_attempts:
        probe = LayoutNode(id="", kind="probe", position=Position(x, y), width=width, height=height)
        if not any(boxes_collide(probe, node, pad) for node in existing):
            return Position(x, y)
        if attempts < 5:
            y += v_inc
        elif attempts < 10:
            x += h_inc if attempts % 2 == 0 else -h_inc
        else:
            y += v_inc * 0.5
            x += (1 if attempts % 2 == 0 else -1) * h_inc * 0.5
        attempts += 1

    lowest = max((n.position.y + n.height for n in existing), default=initial.y)
    logger.debug("No compact slot near (%.0f, %.0f) after %d attempts", initial.x, initial.y, attempts)
    return Position(
        initial.x + (h_inc if attempts % 2 == 0 else -h_inc),
        max(initial.y + attempts * v_inc, lowest + 2 * pad + 1),
    )


# ===================================================================
# Builder
# ===================================================================

class _LayoutBuilder:
    def __init__(self, seed: Iterable[LayoutNode] = ()):
        self.placed: List[LayoutNode] = list(seed)
        self.nodes: List[LayoutNode] = []
        self.edges: List[LayoutEdge] = []

    def add(self, node: LayoutNode, edge: Optional[LayoutEdge] = None) -> None:
        self.placed.append(node)
        self.nodes.append(node)
        if edge is not None:
            self.edges.append(edge)

    def build(self) -> GraphLayout:
        return GraphLayout(nodes=self.nodes, edges=self.edges)


def _edge(source: str, target: str, style: str, label: str) -> LayoutEdge:
    return LayoutEdge(
        id=f"edge-{source}-{target}",
        source=source,
        target=target,
        style=style,
        label=label,
        data={"key": "name"},
    )


def _scope_style(node: StructureNode) -> str:
    return "app-router" if node.is_app_router_scope else "structural"


# ===================================================================
# Engine
# ===================================================================

class TreeLayoutEngine:
    """Place folders and files of a Structure Tree."""

    def __init__(self, cfg: Optional[TreeLayoutConfig] = None):
        self.cfg = cfg or TreeLayoutConfig()

    def tree_extent(self, node: StructureNode, names: Tuple[str, ...], expanded: Set[str]) -> float:
        """Vertical room the subtree of *node* needs."""
        cfg = self.cfg
        if node_id_for(names) not in expanded or not node.children:
            return cfg.folder_height
        total = 0.0
        for child in node.folders():
            total += self.tree_extent(child, names + (child.name,), expanded) + cfg.folder_spacing
        total += len(node.files()) * cfg.file_spacing
        return max(total, cfg.min_tree_extent)

    def layout(self, structure: StructureNode, expanded: Optional[Set[str]] = None) -> GraphLayout:
        expanded = default_expanded() if expanded is None else set(expanded)
        builder = _LayoutBuilder()
        self._place(structure, (), None, self.cfg.root_x, 0.0, expanded, builder)
        result = builder.build()
        logger.debug("Tree layout: %d nodes, %d edges", len(result.nodes), len(result.edges))
        return result

    def _place(
        self,
        node: StructureNode,
        names: Tuple[str, ...],
        parent_id: Optional[str],
        left_x: float,
        center_y: float,
        expanded: Set[str],
        builder: _LayoutBuilder,
    ) -> None:
        cfg = self.cfg
        node_id = node_id_for(names)
        is_expanded = node_id in expanded
        folders = node.folders()
        files = node.files()

        position = find_compact_position(
            Position(left_x, center_y - cfg.folder_height / 2),
            cfg.folder_width, cfg.folder_height, builder.placed, cfg,
        )
        builder.add(
            LayoutNode(
                id=node_id,
                kind="folder",
                position=position,
                width=cfg.folder_width,
                height=cfg.folder_height,
                data={
                    "name": node.name,
                    "type": "folder",
                    "isExpanded": is_expanded,
                    "isAppRouter": node.is_app_router_scope,
                    "routingAnalysis": node.routing_analysis.to_dict() if node.routing_analysis else None,
                    "routePath": node.route_path,
                    "specialFiles": node.special_files.to_dict() if node.special_files else None,
                    "fileCount": len(files),
                    "folderCount": len(folders),
                    "relativePath": node.relative_path,
                    "nodeId": node_id,
                },
            ),
            _edge(parent_id, node_id, _scope_style(node), node.name) if parent_id else None,
        )

        if not is_expanded or not (folders or files):
            return

        child_x = left_x + cfg.depth_distance
        extents = [self.tree_extent(f, names + (f.name,), expanded) for f in folders]
        total = sum(e + cfg.folder_spacing for e in extents) + len(files) * cfg.file_spacing
        child_y = center_y - total / 2

        for folder, extent in zip(folders, extents):
            self._place(
                folder, names + (folder.name,), node_id,
                child_x, child_y + extent / 2, expanded, builder,
            )
            child_y += extent + cfg.folder_spacing

        for index, file in enumerate(files):
            file_id = file_id_for(node_id, index)
            file_y = child_y + cfg.file_spacing / 2
            position = find_compact_position(
                Position(child_x + cfg.file_offset, file_y - cfg.file_height / 2),
                cfg.file_width, cfg.file_height, builder.placed, cfg,
            )
            builder.add(
                LayoutNode(
                    id=file_id,
                    kind="file",
                    position=position,
                    width=cfg.file_width,
                    height=cfg.file_height,
                    data={
                        "name": file.name,
                        "type": "file",
                        "isAppRouter": file.is_app_router_scope,
                        "fileAnalysis": file.file_analysis.to_dict() if file.file_analysis else None,
                        "filePath": file.full_path,
                        "relativePath": file.relative_path,
                        "nodeId": file_id,
                    },
                ),
                _edge(node_id, file_id, _scope_style(file), file.name),
            )
            child_y += cfg.file_spacing

    # ------------------------------------------------------------------
    # Dependency sub-layout
    # ------------------------------------------------------------------

    def layout_dependencies(
        self,
        base_nodes: Sequence[LayoutNode],
        results: Mapping[str, DependencyResult],
    ) -> GraphLayout:
        """Place one node per dependency to the right of its file node.

        *results* maps file node ids to their analysis; entries for ids
        not present in *base_nodes* are skipped.
        """
        cfg = self.cfg
        builder = _LayoutBuilder(seed=base_nodes)
        by_id: Dict[str, LayoutNode] = {n.id: n for n in base_nodes}

        for file_id in sorted(results, key=lambda fid: (fid not in by_id, fid)):
            file_node = by_id.get(file_id)
            if file_node is None:
                logger.debug("No placed file node %s for dependencies", file_id)
                continue
            deps = results[file_id].all
            if not deps:
                continue

            child_x = file_node.position.x + cfg.dependency_distance
            child_y = file_node.position.y - len(deps) * cfg.dependency_spacing / 2
            for dep in deps:
                dep_y = child_y + cfg.dependency_spacing / 2
                position = find_compact_position(
                    Position(child_x, dep_y - cfg.dependency_height / 2),
                    cfg.dependency_width, cfg.dependency_height, builder.placed, cfg,
                )
                dep_id = f"{file_id}-dep-{dep.node_id}"
                style = "dependency-local" if dep.is_local else "dependency-external"
                builder.add(
                    LayoutNode(
                        id=dep_id,
                        kind="dependency",
                        position=position,
                        width=cfg.dependency_width,
                        height=cfg.dependency_height,
                        data={
                            "name": dep.source,
                            "type": "dependency",
                            "state": dep.state,
                            "isLocal": dep.is_local,
                            "exists": dep.exists,
                            "resolvedPath": dep.resolved_path,
                            "packageName": dep.package_name,
                            "importType": dep.type,
                            "specifiers": [s.to_dict() for s in dep.specifiers],
                            "dependencyId": dep.stable_id,
                            "nodeId": dep.node_id,
                        },
                    ),
                    _edge(file_id, dep_id, style, dep.source),
                )
                child_y += cfg.dependency_spacing

        return builder.build()


def build_tree_layout(
    structure: StructureNode,
    expanded: Optional[Set[str]] = None,
    cfg: Optional[TreeLayoutConfig] = None,
) -> GraphLayout:
    return TreeLayoutEngine(cfg).layout(structure, expanded)
