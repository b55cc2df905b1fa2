"""External label placement.

Candidates around an element are scored with ``score_label_position`` and
the cheapest one wins. The scorer has no side effects.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence

from flowlayout.config import LayoutConfig
from flowlayout.geometry import Point, Rect, rects_overlap, segment_intersects_rect, segments_of
from flowlayout.model.elements import Element, has_external_label, is_connection
from flowlayout.model.modeling import Modeling
from flowlayout.model.registry import RegistryView

logger = logging.getLogger(__name__)

OFF_CANVAS_PENALTY = 100
SEGMENT_PENALTY = 1
LABEL_PENALTY = 2
HOST_PENALTY = 10

Segment = tuple[Point, Point]


def score_label_position(
    rect: Rect,
    segments: Iterable[Segment],
    other_labels: Iterable[Rect],
    host_rect: Rect | None = None,
) -> float:
    score = 0.0
    if rect.x < 0:
        score += OFF_CANVAS_PENALTY
    if rect.y < 0:
        score += OFF_CANVAS_PENALTY
    for a, b in segments:
        if segment_intersects_rect(a, b, rect):
            score += SEGMENT_PENALTY
    for other in other_labels:
        if rects_overlap(rect, other):
            score += LABEL_PENALTY
    if host_rect is not None and rects_overlap(rect, host_rect):
        score += HOST_PENALTY
    return score


def label_candidates(element: Element, config: LayoutConfig | None = None) -> list[Rect]:
    """Bottom, top, right and left of the element, in that priority."""
    config = config or LayoutConfig()
    b = element.bounds()
    w, h, gap = config.label_width, config.label_height, config.label_gap
    return [
        Rect(round(b.cx - w / 2), round(b.bottom + gap), w, h),
        Rect(round(b.cx - w / 2), round(b.y - gap - h), w, h),
        Rect(round(b.right + gap), round(b.cy - h / 2), w, h),
        Rect(round(b.x - gap - w), round(b.cy - h / 2), w, h),
    ]


def best_label_position(
    candidates: Sequence[Rect],
    segments: list[Segment],
    other_labels: list[Rect],
    host_rect: Rect | None = None,
) -> tuple[Rect, float]:
    best, best_score = candidates[0], score_label_position(candidates[0], segments, other_labels, host_rect)
    for rect in candidates[1:]:
        score = score_label_position(rect, segments, other_labels, host_rect)
        if score < best_score:
            best, best_score = rect, score
    return best, best_score


def adjust_labels(
    registry: RegistryView,
    modeling: Modeling,
    config: LayoutConfig | None = None,
    movable: Callable[[Element], bool] | None = None,
) -> int:
    """Move each external label to its cheapest candidate; returns how many moved."""
    config = config or LayoutConfig()
    movable = movable or (lambda el: True)
    segments: list[Segment] = []
    for conn in registry.filter(is_connection):
        segments.extend(segments_of(conn.waypoints))

    moved = 0
    for el in registry.filter(lambda e: has_external_label(e) and e.is_shape):
        if not movable(el):
            continue
        others = [o.label for o in registry.get_all() if o.label is not None and o.id != el.id]
        candidates = label_candidates(el, config)
        best, best_score = best_label_position(candidates, segments, others, el.bounds())
        if el.label is not None:
            current = score_label_position(el.label, segments, others, el.bounds())
            if current <= best_score:
                continue
        logger.debug("placing label of %s at (%s, %s), score %s", el.id, best.x, best.y, best_score)
        modeling.update_label(el, best)
        moved += 1
    return moved
