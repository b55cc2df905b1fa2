"""Origin normalisation and grid quantization."""

from __future__ import annotations

import logging
import math

from flowlayout.geometry import Point, Rect, dedupe_points
from flowlayout.model.elements import (
    Element,
    is_boundary_event,
    is_connection,
    is_infrastructure,
    is_lane,
    is_participant,
)
from flowlayout.model.registry import RegistryView
from flowlayout.pipeline.context import LayoutContext

logger = logging.getLogger(__name__)


def content_origin(registry: RegistryView) -> tuple[float, float] | None:
    """Minimum x and y over shapes, external labels and waypoints."""
    xs: list[float] = []
    ys: list[float] = []
    for el in registry.get_all():
        if is_infrastructure(el):
            continue
        if is_connection(el):
            xs.extend(p.x for p in el.waypoints)
            ys.extend(p.y for p in el.waypoints)
        elif el.is_shape:
            xs.append(el.x)
            ys.append(el.y)
        if el.label is not None:
            xs.append(el.label.x)
            ys.append(el.label.y)
    if not xs:
        return None
    return min(xs), min(ys)


def translate_all(ctx: LayoutContext, delta: Point) -> None:
    """Shift every element, connections included, by the same offset."""
    shapes = [el for el in ctx.registry.get_all() if el.is_shape and not is_infrastructure(el)]
    moved = {el.id for el in ctx.modeling.move_elements(shapes, delta, carry=False)}
    for conn in ctx.registry.filter(is_connection):
        if conn.id in moved or not conn.waypoints:
            continue
        ctx.modeling.update_waypoints(conn, [Point(p.x + delta.x, p.y + delta.y) for p in conn.waypoints])
        if conn.label is not None:
            label = conn.label
            ctx.modeling.update_label(conn, Rect(label.x + delta.x, label.y + delta.y, label.width, label.height))


def normalise_origin(ctx: LayoutContext) -> None:
    origin = content_origin(ctx.registry)
    if origin is None:
        return
    min_x, min_y = origin
    dx = -min_x if min_x < 0 else 0
    dy = -min_y if min_y < 0 else 0
    quantum = ctx.options.grid_quantum
    if quantum:
        dx = math.ceil(dx / quantum) * quantum
        dy = math.ceil(dy / quantum) * quantum
    if dx or dy:
        logger.debug("normalising origin by (%s, %s)", dx, dy)
        translate_all(ctx, Point(dx, dy))


# ─── Grid snap ───────────────────────────────────────────────────────────────


def snap_value(value: float, quantum: int) -> float:
    return math.floor(value / quantum + 0.5) * quantum


def snap_waypoints(points: list[Point], quantum: int) -> list[Point]:
    """Quantize intermediate waypoints; slide the endpoints to keep end segments orthogonal."""
    if len(points) <= 2:
        return list(points)
    start, end = Point(points[0].x, points[0].y), Point(points[-1].x, points[-1].y)
    inner = [Point(snap_value(p.x, quantum), snap_value(p.y, quantum)) for p in points[1:-1]]
    if points[0].x == points[1].x:
        start.x = inner[0].x
    elif points[0].y == points[1].y:
        start.y = inner[0].y
    if points[-1].x == points[-2].x:
        end.x = inner[-1].x
    elif points[-1].y == points[-2].y:
        end.y = inner[-1].y
    return dedupe_points([start, *inner, end])


def _snap_candidates(ctx: LayoutContext) -> list[Element]:
    return [
        el
        for el in ctx.registry.get_all()
        if el.is_shape
        and not is_infrastructure(el)
        and not is_lane(el)
        and not is_boundary_event(el)
        and not (ctx.scoped and el.id == ctx.root_id)
        and ctx.in_scope(el)
        and not ctx.is_pinned(el.id)
    ]


def apply_grid_snap(ctx: LayoutContext, quantum: int) -> None:
    """Snap shape origins and intermediate waypoints to multiples of ``quantum``.

    Each shape is snapped on its own; pools take their lanes along and
    hosts take their boundary events, which are not snapped themselves.
    """
    for el in _snap_candidates(ctx):
        dx = snap_value(el.x, quantum) - el.x
        dy = snap_value(el.y, quantum) - el.y
        if not dx and not dy:
            continue
        carried = [el]
        if is_participant(el):
            carried.extend(ctx.diagram.lanes_of(el.id))
        carried.extend(e for e in ctx.registry.attachers_of(el.id) if not ctx.is_pinned(e.id))
        ctx.modeling.move_elements(carried, Point(dx, dy), carry=False)

    for conn in ctx.registry.filter(is_connection):
        if len(conn.waypoints) <= 2 or not ctx.in_scope(conn):
            continue
        snapped = snap_waypoints(conn.waypoints, quantum)
        if snapped != conn.waypoints:
            ctx.modeling.update_waypoints(conn, snapped)


def normalise_and_snap(ctx: LayoutContext) -> None:
    normalise_origin(ctx)
    if ctx.options.grid_quantum:
        apply_grid_snap(ctx, ctx.options.grid_quantum)
