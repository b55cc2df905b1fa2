"""Artifact repositioning: text annotations, data objects/stores and groups.

Artifacts are not part of the layout graph. Linked artifacts are placed
next to the flow element they are associated with (annotations above, data
below), unlinked ones above or below the whole flow. Groups are resized to
surround their members.
"""

from __future__ import annotations

import logging

from flowlayout import types as t
from flowlayout.geometry import Point, Rect, bounding_box, rects_overlap
from flowlayout.model.elements import (
    Element,
    is_artifact,
    is_association,
    is_boundary_event,
    is_flow_node,
    is_lane,
    is_participant,
)
from flowlayout.model.registry import RegistryView
from flowlayout.pipeline.context import LayoutContext

logger = logging.getLogger(__name__)


def _obstacles(ctx: LayoutContext) -> list[Rect]:
    """Leaf flow nodes and boundary events: the shapes an artifact must not cover."""
    parents = {el.parent for el in ctx.registry.get_all() if el.is_shape and is_flow_node(el)}
    return [
        el.bounds()
        for el in ctx.registry.get_all()
        if el.is_shape
        and (is_boundary_event(el) or (is_flow_node(el) and not is_participant(el) and el.id not in parents))
    ]


def linked_element(artifact: Element, registry: RegistryView) -> Element | None:
    for assoc in registry.filter(is_association):
        other = None
        if assoc.source == artifact.id:
            other = assoc.target
        elif assoc.target == artifact.id:
            other = assoc.source
        if other is None:
            continue
        el = registry.get(other)
        if el is not None and el.is_shape and not is_artifact(el):
            return el
    return None


def resolve_overlap(
    rect: Rect,
    upwards: bool,
    occupied: list[Rect],
    max_right: float | None,
    padding: float,
    max_attempts: int,
) -> Rect:
    """Shift ``rect`` right (while within ``max_right``) or vertically until it is clear."""
    for _ in range(max_attempts):
        hit = next((o for o in occupied if rects_overlap(rect, o)), None)
        if hit is None:
            return rect
        right = hit.right + padding
        if max_right is not None and right + rect.width <= max_right:
            rect = Rect(right, rect.y, rect.width, rect.height)
        elif upwards:
            rect = Rect(rect.x, hit.y - rect.height - padding, rect.width, rect.height)
        else:
            rect = Rect(rect.x, hit.bottom + padding, rect.width, rect.height)
    logger.debug("artifact overlap unresolved after %d attempts", max_attempts)
    return rect


def _move_to(ctx: LayoutContext, artifact: Element, rect: Rect) -> None:
    dx, dy = round(rect.x - artifact.x), round(rect.y - artifact.y)
    if abs(dx) > 1 or abs(dy) > 1:
        ctx.modeling.move_elements([artifact], Point(dx, dy))


def group_members(group: Element, registry: RegistryView) -> list[Element]:
    members = [el for el in registry.children_of(group.id) if el.is_shape]
    if not members and group.category is not None:
        members = [
            el
            for el in registry.get_all()
            if el.id != group.id and el.category == group.category and el.is_shape and not is_artifact(el)
        ]
    return [m for m in members if not is_lane(m)]


def reposition_group(ctx: LayoutContext, group: Element, flow_box: Rect | None) -> None:
    pad = ctx.config.group_padding
    members = group_members(group, ctx.registry)
    box = bounding_box(m.bounds() for m in members)
    if box is not None:
        ctx.modeling.resize_shape(group, Rect(box.x - pad, box.y - pad, box.width + 2 * pad, box.height + 2 * pad))
        return
    if flow_box is None:
        return
    width, height = group.width or 200, group.height or 100
    outside = group.x < 0 or group.y < 0 or group.y > flow_box.bottom + 200 or group.x > flow_box.right + 200
    if outside:
        x = max(flow_box.x, flow_box.cx - width / 2)
        y = max(flow_box.y, flow_box.cy - height / 2)
        _move_to(ctx, group, Rect(x, y, width, height))


def reposition_artifacts(ctx: LayoutContext) -> None:
    config = ctx.config
    artifacts = [a for a in ctx.registry.filter(is_artifact) if a.is_shape and ctx.in_scope(a)]
    if not artifacts:
        return
    obstacles = _obstacles(ctx)
    flow_box = bounding_box(obstacles)

    icons: list[Element] = []
    for artifact in artifacts:
        if ctx.is_pinned(artifact.id):
            continue
        if artifact.type == t.GROUP:
            reposition_group(ctx, artifact, flow_box)
        else:
            icons.append(artifact)

    linked: dict[str, list[Element]] = {}
    unlinked: list[Element] = []
    for artifact in icons:
        target = linked_element(artifact, ctx.registry)
        if target is None:
            unlinked.append(artifact)
        else:
            linked.setdefault(target.id, []).append(artifact)

    occupied = list(obstacles)
    max_right = (flow_box.right + 200) if flow_box else None
    for target_id, group in linked.items():
        target = ctx.registry.get(target_id)
        if target is None:
            continue
        total = sum((a.width or config.default_width) for a in group) + config.artifact_padding * (len(group) - 1)
        x = target.center().x - total / 2
        for artifact in group:
            width, height = artifact.width or config.default_width, artifact.height or config.default_height
            above = artifact.type == t.TEXT_ANNOTATION
            if above:
                y = target.y - height - config.artifact_offset
            else:
                y = target.y + (target.height or 0) + config.artifact_offset
            rect = resolve_overlap(
                Rect(round(x), round(y), width, height),
                above,
                occupied,
                max_right,
                config.artifact_padding,
                config.max_artifact_shifts,
            )
            _move_to(ctx, artifact, rect)
            occupied.append(rect)
            x += width + config.artifact_padding

    if flow_box is None:
        return
    x = flow_box.x
    for artifact in unlinked:
        width, height = artifact.width or config.default_width, artifact.height or config.default_height
        above = artifact.type == t.TEXT_ANNOTATION
        y = flow_box.y - height - config.artifact_offset if above else flow_box.bottom + config.artifact_offset
        rect = resolve_overlap(
            Rect(round(x), round(y), width, height), above, occupied, None, config.artifact_padding, config.max_artifact_shifts
        )
        _move_to(ctx, artifact, rect)
        occupied.append(rect)
        x += width + config.artifact_padding
