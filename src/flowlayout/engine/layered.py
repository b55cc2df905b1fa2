"""Layered (Sugiyama-style) layout engine on networkx.

Phases, per container level:
  1. Compound children laid out first (post-order) to learn their size
  2. Cycle removal (greedy-FAS)
  3. Layer assignment (longest path)
  4. Dummy node insertion
  5. Crossing minimization (barycenter)
  6. Coordinate assignment (pixels, direction aware)
  7. Edge routing (orthogonal sections through the inter-layer gaps)

Coordinates are computed on an abstract (main, cross) frame, where ``main``
runs along the flow direction, and mapped to (x, y) at the end.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field

import networkx as nx

from flowlayout.engine.base import LayoutEngine
from flowlayout.geometry import Point, simplify_path
from flowlayout.graph.types import EdgeSection, GraphEdge, GraphNode, parse_graph
from flowlayout.types import Direction

DUMMY_PREFIX = "__dummy_"
MAX_PASSES = 24


# ─── Cycle Removal (Greedy-FAS) ─────────────────────────────────────────────


def greedy_fas_ordering(graph: nx.DiGraph) -> list[str]:
    """Compute a node ordering using the greedy-FAS heuristic."""
    active: list[str] = list(graph.nodes)
    out_deg: dict[str, int] = {n: graph.out_degree(n) for n in graph.nodes}
    in_deg: dict[str, int] = {n: graph.in_degree(n) for n in graph.nodes}
    for node in graph.nodes:
        if graph.has_edge(node, node):
            out_deg[node] -= 1
            in_deg[node] -= 1

    s1: list[str] = []
    s2: list[str] = []

    def drop(node: str) -> None:
        active.remove(node)
        for succ in graph.successors(node):
            if succ in active:
                in_deg[succ] -= 1
        for pred in graph.predecessors(node):
            if pred in active:
                out_deg[pred] -= 1

    while active:
        changed = True
        while changed:
            sinks = [n for n in active if out_deg[n] == 0]
            changed = bool(sinks)
            for sink in sinks:
                drop(sink)
                s2.append(sink)

        changed = True
        while changed:
            sources = [n for n in active if in_deg[n] == 0]
            changed = bool(sources)
            for source in sources:
                drop(source)
                s1.append(source)

        if active:
            best = max(active, key=lambda n: out_deg[n] - in_deg[n])
            drop(best)
            s1.append(best)

    s2.reverse()
    s1.extend(s2)
    return s1


def remove_cycles(graph: nx.DiGraph) -> tuple[nx.DiGraph, set[tuple[str, str]]]:
    """Remove cycles using greedy-FAS. Returns (dag, reversed_edges).

    Self-loops count as reversed and are dropped from the DAG.
    """
    if graph.number_of_nodes() == 0:
        return graph.copy(), set()

    ordering = greedy_fas_ordering(graph)
    position: dict[str, int] = {node: pos for pos, node in enumerate(ordering)}

    reversed_edges: set[tuple[str, str]] = set()
    for src, tgt in graph.edges():
        if src == tgt or position[src] > position[tgt]:
            reversed_edges.add((src, tgt))

    dag: nx.DiGraph = nx.DiGraph()
    dag.add_nodes_from(graph.nodes(data=True))
    for src, tgt in graph.edges():
        if src == tgt:
            continue
        if (src, tgt) in reversed_edges:
            dag.add_edge(tgt, src)
        else:
            dag.add_edge(src, tgt)
    return dag, reversed_edges


# ─── Layer Assignment ────────────────────────────────────────────────────────


@dataclass
class LayerAssignment:
    dag: nx.DiGraph
    layers: dict[str, int]
    layer_count: int
    reversed_edges: set[tuple[str, str]]

    @classmethod
    def assign(cls, graph: nx.DiGraph) -> LayerAssignment:
        """Longest-path layering of the cycle-free version of ``graph``."""
        dag, reversed_edges = remove_cycles(graph)
        layers: dict[str, int] = {node: 0 for node in graph.nodes}
        for node in nx.topological_sort(dag):
            for succ in dag.successors(node):
                layers[succ] = max(layers[succ], layers[node] + 1)
        layer_count = (max(layers.values()) + 1) if layers else 0
        return cls(dag=dag, layers=layers, layer_count=layer_count, reversed_edges=reversed_edges)


# ─── Dummy Node Insertion ────────────────────────────────────────────────────


@dataclass
class AugmentedGraph:
    graph: nx.DiGraph
    layers: dict[str, int]
    layer_count: int
    chains: dict[tuple[str, str], list[str]] = field(default_factory=dict)


def insert_dummy_nodes(la: LayerAssignment) -> AugmentedGraph:
    """Split edges spanning several layers into chains through dummy nodes."""
    g: nx.DiGraph = nx.DiGraph()
    g.add_nodes_from(la.dag.nodes)
    layers = dict(la.layers)
    chains: dict[tuple[str, str], list[str]] = {}

    for counter, (src, tgt) in enumerate(list(la.dag.edges())):
        span = layers[tgt] - layers[src]
        if span <= 1:
            g.add_edge(src, tgt)
            chains[(src, tgt)] = []
            continue
        dummies: list[str] = []
        prev = src
        for i in range(span - 1):
            dummy_id = f"{DUMMY_PREFIX}{counter}_{i}"
            g.add_node(dummy_id, dummy=True)
            layers[dummy_id] = layers[src] + i + 1
            g.add_edge(prev, dummy_id)
            dummies.append(dummy_id)
            prev = dummy_id
        g.add_edge(prev, tgt)
        chains[(src, tgt)] = dummies

    return AugmentedGraph(graph=g, layers=layers, layer_count=la.layer_count, chains=chains)


# ─── Crossing Minimization ───────────────────────────────────────────────────


def count_crossings(ordering: list[list[str]], graph: nx.DiGraph) -> int:
    total = 0
    for l_idx in range(len(ordering) - 1):
        tgt_pos: dict[str, int] = {nid: i for i, nid in enumerate(ordering[l_idx + 1])}
        edges: list[tuple[int, int]] = []
        for sp, src_id in enumerate(ordering[l_idx]):
            for nb in graph.successors(src_id):
                if nb in tgt_pos:
                    edges.append((sp, tgt_pos[nb]))
        for i in range(len(edges)):
            for j in range(i + 1, len(edges)):
                ei, ej = edges[i], edges[j]
                if (ei[0] < ej[0] and ei[1] > ej[1]) or (ei[0] > ej[0] and ei[1] < ej[1]):
                    total += 1
    return total


def _barycenter(node_id: str, neighbors: list[str], neighbor_pos: dict[str, float], own: float) -> float:
    positions = [neighbor_pos[nb] for nb in neighbors if nb in neighbor_pos]
    if not positions:
        return own
    return sum(positions) / len(positions)


def minimise_crossings(aug: AugmentedGraph) -> list[list[str]]:
    """Minimise edge crossings with alternating barycenter sweeps.

    Initial order within a layer follows node insertion order; the best
    ordering seen is kept.
    """
    ordering: list[list[str]] = [[] for _ in range(aug.layer_count)]
    for node_id in aug.graph.nodes:
        ordering[aug.layers[node_id]].append(node_id)

    best = count_crossings(ordering, aug.graph)
    best_ordering = copy.deepcopy(ordering)
    if best == 0:
        return ordering

    for _pass in range(MAX_PASSES):
        for layer_idx in range(1, aug.layer_count):
            prev = {nid: float(i) for i, nid in enumerate(ordering[layer_idx - 1])}
            own = {nid: float(i) for i, nid in enumerate(ordering[layer_idx])}
            ordering[layer_idx].sort(
                key=lambda a, p=prev, o=own: _barycenter(a, list(aug.graph.predecessors(a)), p, o[a])
            )

        for layer_idx in range(aug.layer_count - 2, -1, -1):
            nxt = {nid: float(i) for i, nid in enumerate(ordering[layer_idx + 1])}
            own = {nid: float(i) for i, nid in enumerate(ordering[layer_idx])}
            ordering[layer_idx].sort(
                key=lambda a, n=nxt, o=own: _barycenter(a, list(aug.graph.successors(a)), n, o[a])
            )

        new = count_crossings(ordering, aug.graph)
        if new >= best:
            break
        best = new
        best_ordering = copy.deepcopy(ordering)
        if best == 0:
            break

    return best_ordering


# ─── Coordinate Assignment ───────────────────────────────────────────────────


@dataclass
class Placement:
    """Abstract placement: ``main`` along the flow, ``cross`` across it."""

    main: dict[str, float]
    cross: dict[str, float]
    sizes: dict[str, tuple[float, float]]  # (main, cross)
    layer_start: list[float]
    layer_thickness: list[float]
    total_main: float
    total_cross: float

    def cross_center(self, node_id: str) -> float:
        return self.cross[node_id] + self.sizes[node_id][1] / 2

    def main_end(self, node_id: str) -> float:
        return self.main[node_id] + self.sizes[node_id][0]


def assign_coordinates(
    ordering: list[list[str]],
    aug: AugmentedGraph,
    sizes: dict[str, tuple[float, float]],
    node_spacing: float,
    layer_spacing: float,
) -> Placement:
    """Place layers along the main axis and nodes across it.

    Each node is pulled towards the mean centre of its predecessors, then
    pushed apart to honour ``node_spacing``; the layer is finally shifted so
    the pull is balanced.
    """
    all_sizes = {nid: sizes.get(nid, (0.0, 0.0)) for nid in aug.graph.nodes}

    thickness = [max((all_sizes[n][0] for n in layer), default=0.0) for layer in ordering]
    layer_start: list[float] = []
    pos = 0.0
    for t in thickness:
        layer_start.append(pos)
        pos += t + layer_spacing
    total_main = (layer_start[-1] + thickness[-1]) if ordering else 0.0

    main: dict[str, float] = {}
    cross: dict[str, float] = {}
    for layer_idx, layer in enumerate(ordering):
        for nid in layer:
            main[nid] = layer_start[layer_idx] + (thickness[layer_idx] - all_sizes[nid][0]) / 2

        desired: dict[str, float] = {}
        if layer_idx > 0:
            for nid in layer:
                preds = [p for p in aug.graph.predecessors(nid) if p in cross]
                if preds:
                    desired[nid] = sum(cross[p] + all_sizes[p][1] / 2 for p in preds) / len(preds)

        prev_end: float | None = None
        for nid in layer:
            size = all_sizes[nid][1]
            want = desired[nid] - size / 2 if nid in desired else (prev_end + node_spacing if prev_end is not None else 0.0)
            if prev_end is not None:
                want = max(want, prev_end + node_spacing)
            cross[nid] = want
            prev_end = want + size

        if desired:
            shift = sum(desired[n] - (cross[n] + all_sizes[n][1] / 2) for n in desired) / len(desired)
            for nid in layer:
                cross[nid] += shift

    if cross:
        min_cross = min(cross.values())
        for nid in cross:
            cross[nid] -= min_cross
    total_cross = max((cross[n] + all_sizes[n][1] for n in cross), default=0.0)

    return Placement(
        main=main,
        cross=cross,
        sizes=all_sizes,
        layer_start=layer_start,
        layer_thickness=thickness,
        total_main=total_main,
        total_cross=total_cross,
    )


# ─── Edge Routing ────────────────────────────────────────────────────────────


def _abstract_route(path: list[str], aug: AugmentedGraph, placement: Placement) -> list[tuple[float, float]]:
    first = path[0]
    points = [(placement.main_end(first), placement.cross_center(first))]
    cur = placement.cross_center(first)
    for a, b in zip(path, path[1:]):
        la = aug.layers[a]
        gap_mid = (placement.layer_start[la] + placement.layer_thickness[la] + placement.layer_start[aug.layers[b]]) / 2
        points.append((gap_mid, cur))
        cur = placement.cross_center(b)
        points.append((gap_mid, cur))
    points.append((placement.main[path[-1]], cur))
    return points


# ─── Engine ──────────────────────────────────────────────────────────────────


class LayeredEngine(LayoutEngine):
    """Sugiyama layered layout with recursive compound nodes."""

    def __init__(self, direction: Direction | None = None, node_spacing: float = 50, layer_spacing: float = 60) -> None:
        self.direction = direction
        self.node_spacing = node_spacing
        self.layer_spacing = layer_spacing

    @property
    def name(self) -> str:
        return "layered"

    async def layout(self, graph: GraphNode) -> GraphNode:
        result = self.layout_sync(graph)
        return parse_graph(result.to_dict(), require_positions=True)

    def layout_sync(self, graph: GraphNode) -> GraphNode:
        direction = self.direction or Direction.parse(graph.options.get("direction", "RIGHT"))
        node_spacing = float(graph.options.get("nodeSpacing", self.node_spacing))
        layer_spacing = float(graph.options.get("layerSpacing", self.layer_spacing))
        root = copy.deepcopy(graph)
        width, height = self._layout_level(root, direction, node_spacing, layer_spacing)
        root.x, root.y = 0, 0
        root.width, root.height = width, height
        return root

    def _layout_level(
        self,
        container: GraphNode,
        direction: Direction,
        node_spacing: float,
        layer_spacing: float,
    ) -> tuple[float, float]:
        """Position the children of ``container`` in place; returns the content size."""
        for child in container.children:
            if child.is_compound:
                content_w, content_h = self._layout_level(child, direction, node_spacing, layer_spacing)
                top, left, bottom, right = child.padding or (0, 0, 0, 0)
                for grandchild in child.children:
                    grandchild.x = (grandchild.x or 0) + left
                    grandchild.y = (grandchild.y or 0) + top
                for edge in child.edges:
                    for section in edge.sections:
                        for p in section.points():
                            p.x += left
                            p.y += top
                child.width = left + content_w + right
                child.height = top + content_h + bottom

        if not container.children:
            return 0.0, 0.0

        horizontal = direction.is_horizontal
        g: nx.DiGraph = nx.DiGraph()
        sizes: dict[str, tuple[float, float]] = {}
        for child in container.children:
            g.add_node(child.id)
            sizes[child.id] = (child.width, child.height) if horizontal else (child.height, child.width)
        for edge in container.edges:
            if edge.source in g and edge.target in g:
                g.add_edge(edge.source, edge.target)

        la = LayerAssignment.assign(g)
        aug = insert_dummy_nodes(la)
        ordering = minimise_crossings(aug)
        placement = assign_coordinates(ordering, aug, sizes, node_spacing, layer_spacing)

        def to_xy(m: float, c: float, m_size: float = 0.0) -> Point:
            if direction is Direction.RIGHT:
                return Point(m, c)
            if direction is Direction.LEFT:
                return Point(placement.total_main - m - m_size, c)
            if direction is Direction.DOWN:
                return Point(c, m)
            return Point(c, placement.total_main - m - m_size)

        for child in container.children:
            origin = to_xy(placement.main[child.id], placement.cross[child.id], placement.sizes[child.id][0])
            child.x, child.y = round(origin.x), round(origin.y)

        for edge in container.edges:
            self._route_edge(edge, la, aug, placement, to_xy)

        if horizontal:
            return placement.total_main, placement.total_cross
        return placement.total_cross, placement.total_main

    @staticmethod
    def _route_edge(edge: GraphEdge, la: LayerAssignment, aug: AugmentedGraph, placement: Placement, to_xy) -> None:
        src, tgt = edge.source, edge.target
        if src == tgt or src not in aug.layers or tgt not in aug.layers:
            edge.sections = []
            return
        if (src, tgt) in la.reversed_edges:
            path = [tgt, *aug.chains.get((tgt, src), []), src]
        else:
            path = [src, *aug.chains.get((src, tgt), []), tgt]
        points = [to_xy(m, c).rounded() for m, c in _abstract_route(path, aug, placement)]
        if (src, tgt) in la.reversed_edges:
            points.reverse()
        points = simplify_path(points)
        if len(points) < 2:
            edge.sections = []
            return
        edge.sections = [EdgeSection(start=points[0], end=points[-1], bend_points=points[1:-1])]
