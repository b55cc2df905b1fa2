"""Node-position applier: engine result tree to absolute diagram positions."""

from __future__ import annotations

import logging

from flowlayout.geometry import Point, Rect
from flowlayout.graph.builder import layoutable_children
from flowlayout.graph.types import GraphNode
from flowlayout.model.elements import is_participant
from flowlayout.pipeline.context import LayoutContext

logger = logging.getLogger(__name__)


def apply_positions(ctx: LayoutContext, container: GraphNode, parent_x: float, parent_y: float) -> None:
    """Write each child's absolute position, recursing into compound nodes.

    Pinned elements are left where they are; their children are placed
    relative to the element's actual position.
    """
    for child in container.children:
        el = ctx.registry.get(child.id)
        if el is None:
            continue
        if ctx.is_pinned(el.id):
            logger.debug("skipping pinned element %s", el.id)
        else:
            desired_x = round(parent_x + (child.x or 0))
            desired_y = round(parent_y + (child.y or 0))
            dx, dy = desired_x - el.x, desired_y - el.y
            threshold = ctx.config.move_threshold
            if abs(dx) > threshold or abs(dy) > threshold:
                ctx.modeling.move_elements([el], Point(dx, dy), exclude=ctx.is_pinned)
        if child.children:
            apply_positions(ctx, child, el.x, el.y)


def resize_compound_nodes(ctx: LayoutContext, container: GraphNode | None = None) -> None:
    """Resize compound elements to the engine's computed size."""
    container = container or ctx.result
    for child in container.children:
        if not child.children:
            continue
        el = ctx.registry.get(child.id)
        if el is not None and not ctx.is_pinned(el.id):
            threshold = ctx.config.resize_threshold
            if abs(child.width - (el.width or 0)) > threshold or abs(child.height - (el.height or 0)) > threshold:
                ctx.modeling.resize_shape(el, Rect(el.x, el.y, child.width, child.height))
        resize_compound_nodes(ctx, child)


def apply_node_positions(ctx: LayoutContext) -> None:
    apply_positions(ctx, ctx.result, ctx.offset_x, ctx.offset_y)
    resize_compound_nodes(ctx)


def centre_elements_in_pools(ctx: LayoutContext) -> None:
    """Centre pool content vertically when it sits noticeably off-centre."""
    for pool in ctx.registry.filter(is_participant):
        if not ctx.in_scope(pool) or not pool.height:
            continue
        children = [c for c in layoutable_children(ctx.registry, pool.id) if not ctx.is_pinned(c.id)]
        if not children:
            continue
        top = min(c.y for c in children)
        bottom = max(c.y + (c.height or 0) for c in children)
        desired_top = pool.y + (pool.height - (bottom - top)) / 2
        dy = round(desired_top - top)
        if abs(dy) > ctx.config.pool_centre_threshold:
            ctx.modeling.move_elements(children, Point(0, dy), exclude=ctx.is_pinned)
