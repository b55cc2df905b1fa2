"""Event-subprocess placement.

Event subprocesses are not part of their container's flow, so the engine
lays each one out on its own. This step places them in a row below the main
flow of their container, applies their own layout result inside them and
grows the container to fit.
"""

from __future__ import annotations

import logging

from flowlayout.geometry import Point, Rect, bounding_box
from flowlayout.graph.builder import container_padding, layoutable_children
from flowlayout.model.elements import Element, is_event_sub_process, is_infrastructure
from flowlayout.pipeline.context import LayoutContext
from flowlayout.pipeline.lanes import grow_container_to_fit
from flowlayout.pipeline.positions import apply_positions, resize_compound_nodes

logger = logging.getLogger(__name__)


def row_start(ctx: LayoutContext, container: Element | None, gap: float) -> Point:
    """Top-left corner of the event-subprocess row in ``container``."""
    container_id = container.id if container is not None else ctx.root_id
    flow = [c for c in layoutable_children(ctx.registry, container_id) if not is_event_sub_process(c)]
    box = bounding_box(c.bounds() for c in flow)
    if box is not None:
        return Point(box.x, box.bottom + gap)
    if container is None or is_infrastructure(container):
        return Point(ctx.offset_x, ctx.offset_y)
    top, left, _, _ = container_padding(container, ctx.config)
    return Point(container.x + left, container.y + top)


def layout_inside(ctx: LayoutContext, sub: Element) -> None:
    """Apply the event subprocess's own layout result relative to where it now sits."""
    result = ctx.event_sub_results.get(sub.id)
    if result is None or not result.children:
        return
    top, left, bottom, right = container_padding(sub, ctx.config)
    offset_x, offset_y = sub.x + left, sub.y + top
    apply_positions(ctx, result, offset_x, offset_y)
    resize_compound_nodes(ctx, result)
    ctx.placed_results.append((result, offset_x, offset_y))
    if ctx.is_pinned(sub.id):
        return
    width, height = left + result.width + right, top + result.height + bottom
    threshold = ctx.config.resize_threshold
    if abs(width - (sub.width or 0)) > threshold or abs(height - (sub.height or 0)) > threshold:
        ctx.modeling.resize_shape(sub, Rect(sub.x, sub.y, width, height))


def position_event_subprocesses(ctx: LayoutContext) -> None:
    gap = ctx.options.resolve_spacing(ctx.config)[0]
    by_parent: dict[str, list[Element]] = {}
    for sub in ctx.registry.filter(is_event_sub_process):
        if ctx.in_scope(sub) and sub.id != ctx.root_id:
            by_parent.setdefault(sub.parent or ctx.root_id, []).append(sub)

    def depth(parent_id: str) -> int:
        return len(ctx.registry.ancestors_of(parent_id))

    for parent_id in sorted(by_parent, key=lambda p: (depth(p), p)):
        container = ctx.registry.get(parent_id)
        subs = sorted(by_parent[parent_id], key=lambda s: (s.x, s.id))
        cursor = row_start(ctx, container, gap)
        for sub in subs:
            if not ctx.is_pinned(sub.id):
                delta = Point(cursor.x - sub.x, cursor.y - sub.y)
                if delta.x or delta.y:
                    ctx.modeling.move_elements([sub], delta, exclude=ctx.is_pinned)
            layout_inside(ctx, sub)
            cursor = Point(cursor.x + (sub.width or 0) + gap, cursor.y)
        logger.debug("placed %d event subprocesses in %s", len(subs), parent_id)

        box = bounding_box(s.bounds() for s in subs)
        if container is not None and box is not None:
            grow_container_to_fit(ctx, container, box)
