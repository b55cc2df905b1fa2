"""Edge router: engine edge sections to diagram waypoints, with fallbacks.

Routed sections are offset into absolute coordinates, rounded, snapped to
strict orthogonality and deduplicated. A section follows its connection when
both endpoints were shifted by the same offset after layout (pool centring,
lane banding). Connections the engine did not route, or whose endpoints were
moved apart or pinned, go through a fallback chain:

  1. self-loops get a rectangular loop on the right side
  2. boundary-event sources and message flows use the model's own
     border-docking layout
  3. everything else gets a centre-to-centre straight or L-shaped route
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flowlayout.config import LayoutConfig
from flowlayout.geometry import Point, dedupe_points, snap_orthogonal
from flowlayout.graph.types import EdgeSection, GraphNode
from flowlayout.model.elements import Element, is_boundary_event, is_connection, is_message_flow
from flowlayout.pipeline.context import LayoutContext

logger = logging.getLogger(__name__)


@dataclass
class RoutedSection:
    section: EdgeSection
    offset_x: float
    offset_y: float

    def absolute_points(self) -> list[Point]:
        return [Point(p.x + self.offset_x, p.y + self.offset_y) for p in self.section.points()]


def collect_edge_sections(
    container: GraphNode,
    offset_x: float,
    offset_y: float,
    lookup: dict[str, RoutedSection] | None = None,
) -> dict[str, RoutedSection]:
    """Map every routed edge id to its first section and absolute offset."""
    lookup = {} if lookup is None else lookup
    for edge in container.edges:
        if edge.sections:
            lookup[edge.id] = RoutedSection(edge.sections[0], offset_x, offset_y)
    for child in container.children:
        if child.children or child.edges:
            collect_edge_sections(child, offset_x + (child.x or 0), offset_y + (child.y or 0), lookup)
    return lookup


def engine_positions(
    container: GraphNode,
    offset_x: float,
    offset_y: float,
    positions: dict[str, Point] | None = None,
) -> dict[str, Point]:
    """Absolute position the engine gave every node, keyed by id."""
    positions = {} if positions is None else positions
    for child in container.children:
        x, y = offset_x + (child.x or 0), offset_y + (child.y or 0)
        positions[child.id] = Point(round(x), round(y))
        if child.children:
            engine_positions(child, x, y, positions)
    return positions


def build_section_waypoints(routed: RoutedSection, config: LayoutConfig, shift: Point | None = None) -> list[Point]:
    points = [p.rounded() for p in routed.absolute_points()]
    if shift is not None:
        points = [Point(p.x + shift.x, p.y + shift.y) for p in points]
    return dedupe_points(snap_orthogonal(points, config.segment_ortho_snap))


# ─── Fallback routes ─────────────────────────────────────────────────────────


def build_orthogonal_waypoints(source: Element, target: Element, config: LayoutConfig) -> list[Point]:
    """Straight segment when the centres are aligned, otherwise an L through a corner."""
    sc, tc = source.center(), target.center()
    dx, dy = tc.x - sc.x, tc.y - sc.y
    tolerance = config.fallback_align_tolerance
    if abs(dx) < tolerance or abs(dy) < tolerance:
        points = [sc, tc]
    elif abs(dx) >= abs(dy):
        points = [sc, Point(tc.x, sc.y), tc]
    else:
        points = [sc, Point(sc.x, tc.y), tc]
    return dedupe_points(p.rounded() for p in points)


def build_self_loop(shape: Element, config: LayoutConfig) -> list[Point]:
    """Exit right at the upper quarter, run around the lower right corner, enter at the bottom."""
    bounds = shape.bounds()
    margin = config.self_loop_margin
    exit_y = round(bounds.y + bounds.height / 4)
    outer_x = round(bounds.right + margin)
    outer_y = round(bounds.bottom + margin)
    entry_x = round(bounds.cx)
    return [
        Point(bounds.right, exit_y),
        Point(outer_x, exit_y),
        Point(outer_x, outer_y),
        Point(entry_x, outer_y),
        Point(entry_x, bounds.bottom),
    ]


def route_unrouted(ctx: LayoutContext, conn: Element) -> None:
    source = ctx.registry.get(conn.source or "")
    target = ctx.registry.get(conn.target or "")
    if source is None or target is None:
        return
    if source.id == target.id:
        ctx.modeling.update_waypoints(conn, build_self_loop(source, ctx.config))
    elif is_boundary_event(source) or is_message_flow(conn):
        ctx.modeling.layout_connection(conn)
    else:
        points = build_orthogonal_waypoints(source, target, ctx.config)
        if len(points) >= 2:
            ctx.modeling.update_waypoints(conn, points)


# ─── Pipeline step ───────────────────────────────────────────────────────────


def _shift_since_layout(ctx: LayoutContext, placed: dict[str, Point], element_id: str) -> Point | None:
    el = ctx.registry.get(element_id)
    origin = placed.get(element_id)
    if el is None or origin is None:
        return None
    return Point(el.x - origin.x, el.y - origin.y)


def _common_shift(ctx: LayoutContext, placed: dict[str, Point], conn: Element) -> Point | None:
    """The offset both endpoints moved by after layout, or None when they moved apart."""
    if ctx.is_pinned(conn.source or "") or ctx.is_pinned(conn.target or ""):
        return None
    ds = _shift_since_layout(ctx, placed, conn.source or "")
    dt = _shift_since_layout(ctx, placed, conn.target or "")
    if ds is None or dt is None:
        return None
    tolerance = ctx.config.delta_threshold
    if abs(ds.x - dt.x) > tolerance or abs(ds.y - dt.y) > tolerance:
        return None
    return ds


def apply_edge_routes(ctx: LayoutContext) -> None:
    """Turn engine sections into waypoints; connections whose ends were moved apart fall back."""
    lookup = collect_edge_sections(ctx.result, ctx.offset_x, ctx.offset_y)
    placed = engine_positions(ctx.result, ctx.offset_x, ctx.offset_y)
    for result, offset_x, offset_y in ctx.placed_results:
        collect_edge_sections(result, offset_x, offset_y, lookup)
        engine_positions(result, offset_x, offset_y, placed)
    routed = fallback = 0
    for conn in ctx.registry.filter(is_connection):
        if not conn.source or not conn.target or not ctx.in_scope(conn):
            continue
        section = lookup.get(conn.id)
        shift = _common_shift(ctx, placed, conn) if section is not None else None
        if section is not None and shift is not None:
            points = build_section_waypoints(section, ctx.config, shift)
            if len(points) >= 2:
                ctx.modeling.update_waypoints(conn, points)
                routed += 1
                continue
        logger.debug("no engine route for %s, using fallback", conn.id)
        route_unrouted(ctx, conn)
        fallback += 1
    logger.debug("routed %d connections from sections, %d by fallback", routed, fallback)


def _spans_x(el: Element | None, x: float) -> bool:
    return el is not None and el.x <= x <= el.x + (el.width or 0)


def space_parallel_message_flows(ctx: LayoutContext) -> None:
    """Spread straight vertical message flows whose source x positions nearly coincide."""
    tolerance = ctx.config.message_flow_cluster_tolerance
    spacing = ctx.config.message_flow_spacing
    flows = [
        c
        for c in ctx.registry.filter(is_message_flow)
        if len(c.waypoints) == 2 and c.waypoints[0].x == c.waypoints[1].x and ctx.in_scope(c)
    ]
    flows.sort(key=lambda c: (c.waypoints[0].x, c.id))
    cluster: list[Element] = []

    def flush() -> None:
        if len(cluster) > 1:
            base = sum(c.waypoints[0].x for c in cluster) / len(cluster)
            for i, conn in enumerate(cluster):
                x = round(base + (i - (len(cluster) - 1) / 2) * spacing)
                source, target = ctx.registry.get(conn.source or ""), ctx.registry.get(conn.target or "")
                if x != conn.waypoints[0].x and _spans_x(source, x) and _spans_x(target, x):
                    start, end = conn.waypoints
                    ctx.modeling.update_waypoints(conn, [Point(x, start.y), Point(x, end.y)])
        cluster.clear()

    for conn in flows:
        if cluster and abs(conn.waypoints[0].x - cluster[-1].waypoints[0].x) > tolerance:
            flush()
        cluster.append(conn)
    flush()


def layout_connections(ctx: LayoutContext) -> None:
    apply_edge_routes(ctx)
    space_parallel_message_flows(ctx)
