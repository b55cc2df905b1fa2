"""Boundary-event placement on host borders.

The layout engine never sees boundary events. Once hosts are in their final
place every boundary event is put back on a border of its host: the border
facing its first outgoing target (bottom when there is none), at a fixed
fraction of the border length. Several events sharing a border are spread
evenly along it.

Before that, the nodes reached only through a boundary event (its exception
chain) are pushed below the main flow.
"""

from __future__ import annotations

import logging

from flowlayout.config import LayoutConfig
from flowlayout.geometry import Point, bounding_box
from flowlayout.graph.builder import layoutable_children
from flowlayout.model.elements import Element, is_boundary_event, is_lane, is_sequence_flow
from flowlayout.model.registry import RegistryView
from flowlayout.pipeline.context import LayoutContext
from flowlayout.pipeline.lanes import grow_container_to_fit
from flowlayout.types import Side

logger = logging.getLogger(__name__)


def choose_border(event: Element, host: Element, registry: RegistryView) -> Side:
    for flow in registry.outgoing(event.id):
        target = registry.get(flow.target or "")
        if target is None or not target.is_shape:
            continue
        dx = target.center().x - host.center().x
        dy = target.center().y - host.center().y
        if abs(dy) > abs(dx):
            return Side.TOP if dy < 0 else Side.BOTTOM
        return Side.LEFT if dx < 0 else Side.RIGHT
    return Side.BOTTOM


def border_fractions(count: int, config: LayoutConfig) -> list[float]:
    """Positions along a border, as fractions of its length."""
    if count == 1:
        return [config.boundary_offset_factor]
    margin = config.boundary_spread_margin
    return [margin + (1 - 2 * margin) * (i + 0.5) / count for i in range(count)]


def border_point(host: Element, side: Side, fraction: float, config: LayoutConfig) -> Point:
    width = host.width or config.default_width
    height = host.height or config.default_height
    if side is Side.TOP:
        return Point(host.x + width * fraction, host.y)
    if side is Side.BOTTOM:
        return Point(host.x + width * fraction, host.y + height)
    if side is Side.LEFT:
        return Point(host.x, host.y + height * fraction)
    return Point(host.x + width, host.y + height * fraction)


def reposition_boundary_events(ctx: LayoutContext) -> None:
    config = ctx.config
    by_border: dict[tuple[str, Side], list[Element]] = {}
    for event in ctx.registry.filter(is_boundary_event):
        host = ctx.registry.get(event.host or "")
        if host is None or not ctx.in_scope(event) or ctx.is_pinned(event.id):
            continue
        by_border.setdefault((host.id, choose_border(event, host, ctx.registry)), []).append(event)

    for (host_id, side), events in by_border.items():
        host = ctx.registry.get(host_id)
        if host is None:
            continue
        horizontal_border = side in (Side.TOP, Side.BOTTOM)
        events.sort(key=lambda e: ((e.x if horizontal_border else e.y), e.id))
        for event, fraction in zip(events, border_fractions(len(events), config)):
            centre = border_point(host, side, fraction, config)
            size = config.boundary_event_size
            width, height = event.width or size, event.height or size
            dx = round(centre.x - width / 2 - event.x)
            dy = round(centre.y - height / 2 - event.y)
            if dx or dy:
                ctx.modeling.move_elements([event], Point(dx, dy))




# ─── Exception chains ────────────────────────────────────────────────────────


def exception_chains(registry: RegistryView) -> dict[str, list[str]]:
    """Per boundary event, the flow nodes reached only through boundary events.

    A node joins a chain when every incoming sequence flow comes from a
    boundary event or from a node already in a chain.
    """
    incoming: dict[str, set[str]] = {}
    outgoing: dict[str, list[str]] = {}
    for flow in registry.filter(is_sequence_flow):
        if flow.source and flow.target:
            incoming.setdefault(flow.target, set()).add(flow.source)
            outgoing.setdefault(flow.source, []).append(flow.target)

    events = {e.id for e in registry.filter(is_boundary_event)}
    exclusive: set[str] = set()
    changed = True
    while changed:
        changed = False
        for source in [*events, *exclusive]:
            for target in outgoing.get(source, []):
                if target in exclusive or target in events:
                    continue
                if incoming[target] <= events | exclusive:
                    exclusive.add(target)
                    changed = True

    chains: dict[str, list[str]] = {}
    for event_id in sorted(events):
        chain: list[str] = []
        seen = {event_id}
        queue = [event_id]
        while queue:
            current = queue.pop(0)
            for target in outgoing.get(current, []):
                if target in seen or target not in exclusive:
                    continue
                seen.add(target)
                chain.append(target)
                queue.append(target)
        if chain:
            chains[event_id] = chain
    return chains


def push_exception_chains_below(ctx: LayoutContext) -> None:
    """Move each exception chain below its host and the main-flow shapes above it.

    Only horizontal layouts are handled. Lane members stay where lane
    banding put them.
    """
    if not ctx.options.direction.is_horizontal:
        return
    laned = {ref for lane in ctx.registry.filter(is_lane) for ref in lane.flow_node_refs}
    chains = exception_chains(ctx.registry)
    in_chains = {node_id for chain in chains.values() for node_id in chain}
    gap = ctx.options.resolve_spacing(ctx.config)[0]

    for event_id, chain in chains.items():
        event = ctx.registry.get(event_id)
        host = ctx.registry.get(event.host or "") if event is not None else None
        if event is None or host is None or not ctx.in_scope(event):
            continue
        members = [
            el
            for el in (ctx.registry.get(node_id) for node_id in chain)
            if el is not None and el.is_shape and el.id not in laned and not ctx.is_pinned(el.id)
        ]
        if not members:
            continue
        left = min(m.x for m in members)
        right = max(m.x + (m.width or 0) for m in members)
        floor = host.y + (host.height or 0)
        for sibling in layoutable_children(ctx.registry, host.parent or ""):
            if sibling.id in in_chains or sibling.x >= right or sibling.x + (sibling.width or 0) <= left:
                continue
            floor = max(floor, sibling.y + (sibling.height or 0))
        dy = floor + gap - min(m.y for m in members)
        if dy > 0:
            logger.debug("pushing exception chain of %s down by %s", event_id, dy)
            ctx.modeling.move_elements(members, Point(0, dy), exclude=ctx.is_pinned)
            parent = ctx.registry.get(host.parent or "")
            box = bounding_box(m.bounds() for m in members)
            if parent is not None and box is not None:
                grow_container_to_fit(ctx, parent, box)


def fix_boundary_events(ctx: LayoutContext) -> None:
    push_exception_chains_below(ctx)
    reposition_boundary_events(ctx)
