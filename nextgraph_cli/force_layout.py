"""Force-directed layout for schema graphs.

Five forces are applied in a fixed order on every tick: centering, link
attraction, collision, many-body repulsion and weak x/y centering.  The
simulation runs a fixed number of ticks, then a bounded pass pushes apart
any boxes that still overlap.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .config_manager import ForceLayoutConfig
from .models import LayoutEdge, LayoutNode, Position

logger = logging.getLogger(__name__)

_INITIAL_RADIUS = 10.0
_INITIAL_ANGLE = math.pi * (3 - math.sqrt(5))

# Separation kept between boxes by the final overlap pass.
_RESOLVE_GAP = 20.0
_RESOLVE_MAX_PASSES = 200


def estimate_node_height(node: LayoutNode, cfg: Optional[ForceLayoutConfig] = None) -> float:
    """Header + footer + one row per field, plus constraint and index sections."""
    cfg = cfg or ForceLayoutConfig()
    data = node.data
    height = cfg.header_height + cfg.footer_height
    height += len(data.get("fields", [])) * cfg.field_row_height

    constraints = len(data.get("constraints", []))
    if constraints:
        height += cfg.section_divider_height + constraints * cfg.section_row_height

    indexes = len(data.get("indexes", [])) + len(data.get("uniqueIndexes", []))
    if indexes:
        height += cfg.section_divider_height + indexes * cfg.section_row_height

    height += cfg.height_padding
    return min(max(height, cfg.min_height), cfg.max_height)


@dataclass
class SimNode:
    id: str
    width: float
    height: float
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0

    @property
    def radius(self) -> float:
        return math.hypot(self.width, self.height) / 2


@dataclass
class SimLink:
    source: int
    target: int
    bias: float = 0.5


@dataclass
class SimulationState:
    nodes: List[SimNode]
    links: List[SimLink]
    alpha: float = 1.0
    ticks: int = 0
    rng: random.Random = field(default_factory=random.Random)


class ForceLayoutEngine:
    """Position schema nodes with a fixed-budget force simulation."""

    def __init__(self, cfg: Optional[ForceLayoutConfig] = None):
        self.cfg = cfg or ForceLayoutConfig()
        self.alpha_decay = 1 - math.pow(self.cfg.alpha_min, 1 / self.cfg.alpha_decay_ticks)
        self.center_x = self.cfg.viewport_width / 2
        self.center_y = self.cfg.viewport_height / 2

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def initial_state(self, nodes: Sequence[LayoutNode], edges: Sequence[LayoutEdge]) -> SimulationState:
        sim_nodes: List[SimNode] = []
        for i, node in enumerate(nodes):
            r = _INITIAL_RADIUS * math.sqrt(0.5 + i)
            angle = i * _INITIAL_ANGLE
            sim_nodes.append(SimNode(
                id=node.id,
                width=self.cfg.node_width,
                height=estimate_node_height(node, self.cfg),
                x=self.center_x + r * math.cos(angle),
                y=self.center_y + r * math.sin(angle),
            ))

        index: Dict[str, int] = {n.id: i for i, n in enumerate(sim_nodes)}
        links: List[SimLink] = []
        for edge in edges:
            if edge.source not in index or edge.target not in index:
                logger.debug("Skipping link %s with unknown endpoint", edge.id)
                continue
            links.append(SimLink(index[edge.source], index[edge.target]))

        degree = [0] * len(sim_nodes)
        for link in links:
            degree[link.source] += 1
            degree[link.target] += 1
        for link in links:
            link.bias = degree[link.source] / (degree[link.source] + degree[link.target])

        return SimulationState(nodes=sim_nodes, links=links, rng=random.Random(self.cfg.seed))

    # ------------------------------------------------------------------
    # Forces
    # ------------------------------------------------------------------

    @staticmethod
    def _jiggle(state: SimulationState) -> float:
        return (state.rng.random() - 0.5) * 1e-6

    def _center(self, state: SimulationState) -> None:
        n = len(state.nodes)
        sx = sum(node.x for node in state.nodes) / n - self.center_x
        sy = sum(node.y for node in state.nodes) / n - self.center_y
        for node in state.nodes:
            node.x -= sx
            node.y -= sy

    def _link(self, state: SimulationState) -> None:
        strength = self.cfg.link_strength
        distance = self.cfg.link_distance
        for link in state.links:
            source = state.nodes[link.source]
            target = state.nodes[link.target]
            x = target.x + target.vx - source.x - source.vx or self._jiggle(state)
            y = target.y + target.vy - source.y - source.vy or self._jiggle(state)
            length = math.sqrt(x * x + y * y)
            length = (length - distance) / length * state.alpha * strength
            x *= length
            y *= length
            b = link.bias
            target.vx -= x * b
            target.vy -= y * b
            source.vx += x * (1 - b)
            source.vy += y * (1 - b)

    def _collide(self, state: SimulationState) -> None:
        strength = self.cfg.collision_strength
        radii = [node.radius + self.cfg.collision_padding for node in state.nodes]
        nodes = state.nodes
        for _ in range(self.cfg.collision_iterations):
            for i, node in enumerate(nodes):
                ri = radii[i]
                ri2 = ri * ri
                xi = node.x + node.vx
                yi = node.y + node.vy
                for j in range(i + 1, len(nodes)):
                    other = nodes[j]
                    rj = radii[j]
                    r = ri + rj
                    x = xi - other.x - other.vx
                    y = yi - other.y - other.vy
                    dist2 = x * x + y * y
                    if dist2 >= r * r:
                        continue
                    if x == 0:
                        x = self._jiggle(state)
                        dist2 += x * x
                    if y == 0:
                        y = self._jiggle(state)
                        dist2 += y * y
                    dist = math.sqrt(dist2)
                    push = (r - dist) / dist * strength
                    x *= push
                    y *= push
                    share = (rj * rj) / (ri2 + rj * rj)
                    node.vx += x * share
                    node.vy += y * share
                    other.vx -= x * (1 - share)
                    other.vy -= y * (1 - share)

    def _many_body(self, state: SimulationState) -> None:
        strength = self.cfg.charge_strength
        max2 = self.cfg.charge_distance_max ** 2
        min2 = self.cfg.charge_distance_min ** 2
        nodes = state.nodes
        for i, node in enumerate(nodes):
            for j, other in enumerate(nodes):
                if i == j:
                    continue
                x = other.x - node.x
                y = other.y - node.y
                dist2 = x * x + y * y
                if dist2 >= max2:
                    continue
                if x == 0:
                    x = self._jiggle(state)
                    dist2 += x * x
                if y == 0:
                    y = self._jiggle(state)
                    dist2 += y * y
                if dist2 < min2:
                    dist2 = math.sqrt(min2 * dist2)
                node.vx += x * strength * state.alpha / dist2
                node.vy += y * strength * state.alpha / dist2

    def _axis(self, state: SimulationState) -> None:
        k = self.cfg.axis_strength * state.alpha
        for node in state.nodes:
            node.vx += (self.center_x - node.x) * k
            node.vy += (self.center_y - node.y) * k

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def tick(self, state: SimulationState) -> SimulationState:
        state.alpha += (0 - state.alpha) * self.alpha_decay
        self._center(state)
        self._link(state)
        self._collide(state)
        self._many_body(state)
        self._axis(state)

        keep = 1 - self.cfg.velocity_decay
        for node in state.nodes:
            node.vx *= keep
            node.vy *= keep
            node.x += node.vx
            node.y += node.vy
        state.ticks += 1
        return state

    def run(self, state: SimulationState) -> SimulationState:
        for i in range(self.cfg.ticks):
            self.tick(state)
            if i % 100 == 0:
                logger.debug("Force layout tick %d/%d (alpha=%.4f)", i, self.cfg.ticks, state.alpha)
        resolve_overlaps(state.nodes)
        return state

    def layout(self, nodes: Sequence[LayoutNode], edges: Sequence[LayoutEdge]) -> List[LayoutNode]:
        """Size and position *nodes* in place; returns them for chaining."""
        if not nodes:
            return list(nodes)
        state = self.run(self.initial_state(nodes, edges))
        for node, sim in zip(nodes, state.nodes):
            node.width = sim.width
            node.height = sim.height
            node.position = Position(sim.x - sim.width / 2, sim.y - sim.height / 2)
        return list(nodes)


def _overlap(a: SimNode, b: SimNode, gap: float):
    """Penetration depth along x and y; non-positive means separated."""
    dx = (a.width + b.width) / 2 + gap - abs(a.x - b.x)
    dy = (a.height + b.height) / 2 + gap - abs(a.y - b.y)
    return dx, dy


def resolve_overlaps(nodes: List[SimNode], gap: float = _RESOLVE_GAP) -> int:
    """Push overlapping boxes apart along the shallower axis.

    Returns the number of passes used.  Bounded by ``_RESOLVE_MAX_PASSES``;
    any pair still touching after that is stacked below the lowest box.
    """
    passes = 0
    for passes in range(1, _RESOLVE_MAX_PASSES + 1):
        moved = False
        for i in range(len(nodes)):
            for j in range(i + 1, len(nodes)):
                a, b = nodes[i], nodes[j]
                dx, dy = _overlap(a, b, gap)
                if dx <= 0 or dy <= 0:
                    continue
                moved = True
                if dx < dy:
                    shift = dx / 2
                    sign = 1 if a.x >= b.x else -1
                    a.x += sign * shift
                    b.x -= sign * shift
                else:
                    shift = dy / 2
                    sign = 1 if a.y >= b.y else -1
                    a.y += sign * shift
                    b.y -= sign * shift
        if not moved:
            return passes

    for i in range(len(nodes)):
        for j in range(i + 1, len(nodes)):
            dx, dy = _overlap(nodes[i], nodes[j], 0)
            if dx > 0 and dy > 0:
                lowest = max(n.y + n.height / 2 for n in nodes if n is not nodes[j])
                nodes[j].y = lowest + gap + nodes[j].height / 2
    return passes


def layout_schema_graph(graph, cfg: Optional[ForceLayoutConfig] = None):
    """Run the force layout over a ``SchemaGraph`` and return it."""
    ForceLayoutEngine(cfg).layout(graph.nodes, graph.edges)
    return graph
