"""Pool and lane finalisation, and pool autosizing.

Lanes are not graph nodes: the engine lays out a pool's flow nodes as one
flat graph. Afterwards every lane's members are shifted into a band of
their own (rows for horizontal flows, columns for vertical ones) and the
lanes are resized to tile the pool.

Lane membership and lane order come from a snapshot taken before layout,
not from the positions the engine produced.
"""

from __future__ import annotations

import itertools
import logging
import math
from dataclasses import dataclass, field
from typing import Any

from flowlayout.config import LayoutConfig
from flowlayout.errors import LayoutInputError
from flowlayout.geometry import Point, Rect, bounding_box
from flowlayout.graph.builder import container_padding, layoutable_children
from flowlayout.model.elements import (
    Element,
    is_artifact,
    is_infrastructure,
    is_lane,
    is_participant,
    is_sequence_flow,
)
from flowlayout.model.modeling import Modeling
from flowlayout.model.registry import RegistryView
from flowlayout.pipeline.context import LayoutContext
from flowlayout.pipeline.positions import centre_elements_in_pools
from flowlayout.types import LaneStrategy

logger = logging.getLogger(__name__)

NO_POOLS_WARNING = "No pools found; nothing to resize."


# ─── Lane snapshots ──────────────────────────────────────────────────────────


@dataclass
class LaneSnapshot:
    lane_id: str
    original_x: float
    original_y: float
    node_ids: list[str] = field(default_factory=list)


def save_lane_assignments(registry: RegistryView) -> list[LaneSnapshot]:
    """Capture lane membership and lane positions before layout mutates them."""
    snapshots: list[LaneSnapshot] = []
    for lane in registry.filter(is_lane):
        node_ids: list[str] = []
        for ref in lane.flow_node_refs:
            if registry.get(ref) is None:
                logger.warning("lane %s references unknown element %s", lane.id, ref)
                continue
            node_ids.append(ref)
        snapshots.append(LaneSnapshot(lane_id=lane.id, original_x=lane.x, original_y=lane.y, node_ids=node_ids))
    return snapshots


def direct_lanes(registry: RegistryView, pool_id: str) -> list[Element]:
    return [el for el in registry.children_of(pool_id) if is_lane(el)]


# ─── Lane ordering ───────────────────────────────────────────────────────────


def lane_order_cost(order: list[str], pairs: list[tuple[str, str]]) -> int:
    """Sum of lane-index distances over cross-lane flows."""
    index = {lane_id: i for i, lane_id in enumerate(order)}
    return sum(abs(index[a] - index[b]) for a, b in pairs if a in index and b in index)


def optimize_lane_order(
    order: list[str],
    membership: dict[str, list[str]],
    registry: RegistryView,
    max_exhaustive: int = 6,
) -> list[str]:
    """Reorder lanes so that lanes connected by sequence flows sit close together.

    Small lane sets are searched exhaustively; larger ones use adjacent swaps.
    Ties keep the original order.
    """
    node_lane = {nid: lane_id for lane_id, nodes in membership.items() for nid in nodes}
    pairs: list[tuple[str, str]] = []
    for flow in registry.filter(is_sequence_flow):
        src, tgt = node_lane.get(flow.source or ""), node_lane.get(flow.target or "")
        if src and tgt and src != tgt:
            pairs.append((src, tgt))
    if not pairs or len(order) < 2:
        return order

    best, best_cost = list(order), lane_order_cost(order, pairs)
    if len(order) <= max_exhaustive:
        for perm in itertools.permutations(order):
            cost = lane_order_cost(list(perm), pairs)
            if cost < best_cost:
                best, best_cost = list(perm), cost
        return best

    improved = True
    while improved:
        improved = False
        for i in range(len(best) - 1):
            best[i], best[i + 1] = best[i + 1], best[i]
            cost = lane_order_cost(best, pairs)
            if cost < best_cost:
                best_cost = cost
                improved = True
            else:
                best[i], best[i + 1] = best[i + 1], best[i]
    return best


# ─── Lane banding ────────────────────────────────────────────────────────────


def _lane_membership(
    ctx: LayoutContext, pool: Element, lanes: list[Element], columns: bool
) -> tuple[list[str], dict[str, list[str]]]:
    snapshots = {s.lane_id: s for s in ctx.lane_snapshots}

    def sort_key(lane: Element) -> tuple[float, float]:
        snap = snapshots.get(lane.id)
        x, y = (snap.original_x, snap.original_y) if snap else (lane.x, lane.y)
        return (x, y) if columns else (y, x)

    ordered = sorted(lanes, key=sort_key)
    membership: dict[str, list[str]] = {}
    for lane in ordered:
        snap = snapshots.get(lane.id)
        membership[lane.id] = list(snap.node_ids) if snap else list(lane.flow_node_refs)

    assigned = {nid for nodes in membership.values() for nid in nodes}
    for orphan in layoutable_children(ctx.registry, pool.id):
        if orphan.id in assigned:
            continue
        centre = orphan.x + (orphan.width or 0) / 2 if columns else orphan.y + (orphan.height or 0) / 2

        def distance(lane: Element) -> float:
            lane_centre = lane.x + (lane.width or 0) / 2 if columns else lane.y + (lane.height or 0) / 2
            return abs(lane_centre - centre)

        nearest = min(ordered, key=distance)
        membership[nearest.id].append(orphan.id)

    order = [lane.id for lane in ordered]
    if ctx.options.lane_strategy is LaneStrategy.OPTIMIZE:
        order = optimize_lane_order(order, membership, ctx.registry, ctx.config.max_optimize_lanes)
    return order, membership


def _shapes(registry: RegistryView, ids: list[str]) -> list[Element]:
    return [el for el in (registry.get(i) for i in ids) if el is not None]


def _band_shift(shapes: list[Element], band_start: float, band_size: float, columns: bool) -> float:
    """Shift that moves the median centre to the band centre without leaving the band."""
    if columns:
        centres = sorted(s.x + (s.width or 0) / 2 for s in shapes)
        low = min(s.x for s in shapes)
        high = max(s.x + (s.width or 0) for s in shapes)
    else:
        centres = sorted(s.y + (s.height or 0) / 2 for s in shapes)
        low = min(s.y for s in shapes)
        high = max(s.y + (s.height or 0) for s in shapes)
    shift = round(band_start + band_size / 2 - centres[len(centres) // 2])
    if low + shift < band_start:
        shift = band_start - low
    return min(shift, band_start + band_size - high)


def reposition_lanes(ctx: LayoutContext) -> None:
    """Band each lane's members and tile the lanes inside their pool."""
    columns = not ctx.options.direction.is_horizontal
    config = ctx.config
    for pool in ctx.registry.filter(is_participant):
        lanes = direct_lanes(ctx.registry, pool.id)
        if not lanes or not ctx.in_scope(pool) or ctx.is_pinned(pool.id):
            continue
        order, membership = _lane_membership(ctx, pool, lanes, columns)
        if not any(membership.values()):
            continue

        minimum = config.min_lane_column if columns else config.min_lane_band
        sizes: dict[str, float] = {}
        for lane_id in order:
            shapes = _shapes(ctx.registry, membership[lane_id])
            if columns:
                span = (max(s.x + (s.width or 0) for s in shapes) - min(s.x for s in shapes)) if shapes else 0
            else:
                span = (max(s.y + (s.height or 0) for s in shapes) - min(s.y for s in shapes)) if shapes else 0
            sizes[lane_id] = max(span + 2 * config.lane_padding, minimum)

        start = pool.x + config.pool_label_band if columns else pool.y
        band_start: dict[str, float] = {}
        for lane_id in order:
            band_start[lane_id] = start
            start += sizes[lane_id]

        for lane_id in order:
            shapes = [s for s in _shapes(ctx.registry, membership[lane_id]) if not ctx.is_pinned(s.id)]
            if not shapes:
                continue
            shift = _band_shift(shapes, band_start[lane_id], sizes[lane_id], columns)
            if abs(shift) > 1:
                delta = Point(shift, 0) if columns else Point(0, shift)
                ctx.modeling.move_elements(shapes, delta, exclude=ctx.is_pinned)

        total = sum(sizes.values())
        if columns:
            ctx.modeling.resize_shape(pool, Rect(pool.x, pool.y, total + config.pool_label_band, pool.height or 0))
            for lane in lanes:
                ctx.modeling.resize_shape(lane, Rect(band_start[lane.id], pool.y, sizes[lane.id], pool.height or 0))
        else:
            ctx.modeling.resize_shape(pool, Rect(pool.x, pool.y, pool.width or 0, total))
            lane_x = pool.x + config.pool_label_band
            lane_w = (pool.width or 0) - config.pool_label_band
            for lane in lanes:
                ctx.modeling.resize_shape(lane, Rect(lane_x, band_start[lane.id], lane_w, sizes[lane.id]))
        logger.debug("banded %d lanes in pool %s", len(order), pool.id)


def stack_collapsed_pools(ctx: LayoutContext) -> None:
    """Move collapsed (empty) pools below the expanded ones."""
    pools = [p for p in ctx.registry.filter(is_participant) if ctx.in_scope(p) and not ctx.is_pinned(p.id)]
    expanded = [p for p in pools if layoutable_children(ctx.registry, p.id)]
    collapsed = [p for p in pools if p not in expanded]
    if not expanded or not collapsed:
        return
    box = bounding_box(p.bounds() for p in expanded)
    if box is None:
        return
    y = box.bottom + ctx.config.node_spacing
    for pool in collapsed:
        ctx.modeling.move_elements([pool], Point(box.x - pool.x, y - pool.y))
        y += (pool.height or 0) + ctx.config.node_spacing


def grow_container_to_fit(ctx: LayoutContext, container: Element, box: Rect) -> None:
    """Enlarge a pool or subprocess so ``box`` fits inside its padding.

    Containers only grow. In a pool the last lane band takes the extra room
    so the lanes keep tiling it. Enclosing containers grow in turn.
    """
    if not container.is_shape or is_infrastructure(container) or ctx.is_pinned(container.id):
        return
    _, _, pad_bottom, pad_right = container_padding(container, ctx.config)
    width, height = container.width or 0, container.height or 0
    dw = max(0.0, box.right + pad_right - (container.x + width))
    dh = max(0.0, box.bottom + pad_bottom - (container.y + height))
    if not dw and not dh:
        return
    ctx.modeling.resize_shape(container, Rect(container.x, container.y, width + dw, height + dh))

    lanes = direct_lanes(ctx.registry, container.id) if is_participant(container) else []
    if lanes:
        columns = not ctx.options.direction.is_horizontal
        last = max(lanes, key=lambda lane: lane.x if columns else lane.y)
        for lane in lanes:
            lane_w, lane_h = lane.width or 0, lane.height or 0
            if columns:
                grown = Rect(lane.x, lane.y, lane_w + (dw if lane is last else 0), lane_h + dh)
            else:
                grown = Rect(lane.x, lane.y, lane_w + dw, lane_h + (dh if lane is last else 0))
            ctx.modeling.resize_shape(lane, grown)
    logger.debug("grew container %s by (%s, %s)", container.id, dw, dh)

    parent = ctx.registry.get(container.parent or "")
    if parent is not None:
        grow_container_to_fit(ctx, parent, container.bounds())


# ─── Pool autosize ───────────────────────────────────────────────────────────


@dataclass
class LaneResize:
    lane_id: str
    lane_name: str
    element_count: int
    old_height: float
    new_height: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "laneId": self.lane_id,
            "laneName": self.lane_name,
            "elementCount": self.element_count,
            "oldHeight": self.old_height,
            "newHeight": self.new_height,
        }


@dataclass
class PoolAutosizeResult:
    participant_id: str
    participant_name: str
    element_count: int
    old_width: float
    old_height: float
    new_width: float
    new_height: float
    resized: bool
    lane_resizes: list[LaneResize] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "participantId": self.participant_id,
            "participantName": self.participant_name,
            "elementCount": self.element_count,
            "oldBounds": {"width": self.old_width, "height": self.old_height},
            "newBounds": {"width": self.new_width, "height": self.new_height},
            "resized": self.resized,
        }
        if self.lane_resizes:
            data["laneResizes"] = [lr.to_dict() for lr in self.lane_resizes]
        return data


@dataclass
class AutosizeReport:
    pools: list[PoolAutosizeResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def resized_count(self) -> int:
        return sum(1 for p in self.pools if p.resized)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"poolResults": [p.to_dict() for p in self.pools], "resized": self.resized_count}
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data


def clamp_aspect_ratio(ratio: float, config: LayoutConfig) -> float:
    return max(config.min_aspect_ratio, min(config.max_aspect_ratio, ratio))


def compute_pool_bounds(
    pool: Element,
    content: Rect,
    padding: float,
    config: LayoutConfig,
    aspect_ratio: float | None = None,
) -> Rect:
    """Bounds that fit ``content`` plus padding; never shrinks the pool's origin inwards."""
    x = min(pool.x, content.x - padding - config.pool_header_padding)
    y = min(pool.y, content.y - padding)
    width = max(config.min_pool_width, content.right - x + padding)
    height = max(config.min_pool_height, content.bottom - y + padding)
    if aspect_ratio is not None:
        r = clamp_aspect_ratio(aspect_ratio, config)
        if width / height < r:
            width = math.ceil(height * r)
        elif width / height > r:
            height = math.ceil(width / r)
    return Rect(x, y, width, height)


def pool_content(registry: RegistryView, pool_id: str) -> list[Element]:
    """Flow nodes, boundary events and artifacts inside a pool (lanes flattened)."""
    nodes = layoutable_children(registry, pool_id)
    extra: list[Element] = []
    for node in nodes:
        extra.extend(registry.attachers_of(node.id))
    container_ids = {pool_id, *(lane.id for lane in direct_lanes(registry, pool_id))}
    extra.extend(el for el in registry.filter(is_artifact) if el.parent in container_ids and el.is_shape)
    return nodes + extra


def _lane_members(registry: RegistryView, lane: Element) -> list[Element]:
    return _shapes(registry, lane.flow_node_refs)


def _resize_lanes(
    registry: RegistryView,
    modeling: Modeling,
    pool: Element,
    bounds: Rect,
    padding: float,
    config: LayoutConfig,
) -> list[LaneResize]:
    lanes = sorted(direct_lanes(registry, pool.id), key=lambda lane: lane.y)
    if not lanes:
        return []
    wanted: list[float] = []
    for lane in lanes:
        box = bounding_box(m.bounds() for m in _lane_members(registry, lane))
        wanted.append(max(config.min_lane_height, box.height + 2 * padding) if box else config.min_lane_height)
    total = sum(wanted)
    scale = bounds.height / total if total > 0 else 1

    resizes: list[LaneResize] = []
    y = bounds.y
    for i, lane in enumerate(lanes):
        if i == len(lanes) - 1:
            height = bounds.y + bounds.height - y
        else:
            height = max(config.min_lane_height, round(wanted[i] * scale))
        target = Rect(bounds.x + config.pool_header_padding, y, bounds.width - config.pool_header_padding, height)
        if (lane.x, lane.y, lane.width, lane.height) != (target.x, target.y, target.width, target.height):
            old_height = lane.height or 0
            modeling.resize_shape(lane, target)
            resizes.append(
                LaneResize(
                    lane_id=lane.id,
                    lane_name=lane.name or lane.id,
                    element_count=len(lane.flow_node_refs),
                    old_height=old_height,
                    new_height=height,
                )
            )
        y += height
    return resizes


def _centre_in_lanes(registry: RegistryView, modeling: Modeling, pool: Element, config: LayoutConfig) -> None:
    for lane in direct_lanes(registry, pool.id):
        members = _lane_members(registry, lane)
        if not members:
            continue
        centres = sorted(m.y + (m.height or 0) / 2 for m in members)
        dy = round(lane.y + (lane.height or 0) / 2 - centres[len(centres) // 2])
        if abs(dy) > config.lane_centre_threshold:
            modeling.move_elements(members, Point(0, dy))


def autosize_pool(
    registry: RegistryView,
    modeling: Modeling,
    pool: Element,
    config: LayoutConfig,
    padding: float | None = None,
    resize_lanes: bool = True,
    aspect_ratio: float | None = None,
) -> PoolAutosizeResult:
    pad = config.pool_padding if padding is None else padding
    content = pool_content(registry, pool.id)
    old_width, old_height = pool.width or 0, pool.height or 0
    result = PoolAutosizeResult(
        participant_id=pool.id,
        participant_name=pool.name or pool.id,
        element_count=0,
        old_width=old_width,
        old_height=old_height,
        new_width=old_width,
        new_height=old_height,
        resized=False,
    )
    box = bounding_box(el.bounds() for el in content)
    if box is None:
        return result

    bounds = compute_pool_bounds(pool, box, pad, config, aspect_ratio)
    lanes = direct_lanes(registry, pool.id)
    if lanes:
        min_height = sum(max(config.min_lane_height, lane.height or 0) for lane in lanes)
        if bounds.height < min_height:
            bounds = Rect(bounds.x, bounds.y, bounds.width, min_height)

    changed = (pool.x, pool.y, pool.width, pool.height) != (bounds.x, bounds.y, bounds.width, bounds.height)
    if changed:
        modeling.resize_shape(pool, bounds)
    lane_resizes = _resize_lanes(registry, modeling, pool, bounds, pad, config) if resize_lanes and changed else []
    if lane_resizes:
        _centre_in_lanes(registry, modeling, pool, config)

    result.element_count = len(layoutable_children(registry, pool.id))
    result.new_width, result.new_height = bounds.width, bounds.height
    result.resized = changed
    result.lane_resizes = lane_resizes
    return result


def autosize_pools(
    registry: RegistryView,
    modeling: Modeling,
    config: LayoutConfig | None = None,
    participant_id: str | None = None,
    padding: float | None = None,
    resize_lanes: bool = True,
    aspect_ratio: float | None = None,
) -> AutosizeReport:
    """Resize pools (all, or one participant) to fit their content.

    Raises:
        LayoutInputError: ``participant_id`` is unknown or not a pool.
    """
    config = config or LayoutConfig()
    if participant_id is not None:
        pool = registry.get(participant_id)
        if pool is None:
            raise LayoutInputError(f"Element '{participant_id}' not found")
        if not is_participant(pool):
            raise LayoutInputError(f"Element '{participant_id}' is a {pool.type}, expected a bpmn:Participant")
        pools = [pool]
    else:
        pools = registry.filter(is_participant)

    report = AutosizeReport()
    if not pools:
        report.warnings.append(NO_POOLS_WARNING)
        return report
    for pool in pools:
        report.pools.append(autosize_pool(registry, modeling, pool, config, padding, resize_lanes, aspect_ratio))
    return report


# ─── Pipeline step ───────────────────────────────────────────────────────────


def finalise_pools_and_lanes(ctx: LayoutContext) -> None:
    centre_elements_in_pools(ctx)
    reposition_lanes(ctx)
    stack_collapsed_pools(ctx)
    if ctx.options.pool_autosize:
        scope_el = ctx.registry.get(ctx.root_id) if ctx.scoped else None
        scope = scope_el.id if scope_el is not None and is_participant(scope_el) else None
        ctx.autosize = autosize_pools(
            ctx.registry,
            ctx.modeling,
            ctx.config,
            participant_id=scope,
            padding=ctx.options.pool_padding,
            resize_lanes=ctx.options.resize_lanes,
            aspect_ratio=ctx.options.target_aspect_ratio,
        )
        ctx.warnings.extend(ctx.autosize.warnings)
