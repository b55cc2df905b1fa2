"""Crossing detection and bounded crossing reduction.

Detection is an O(n^2) pairwise test over connection segments and ignores
pairs that share an endpoint element. Reduction is a local heuristic: it
swaps sibling branch targets of split gateways and keeps a swap only when
the total count strictly drops.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from flowlayout.geometry import Point, segments_intersect, segments_of
from flowlayout.model.elements import (
    Element,
    is_boundary_event,
    is_connection,
    is_gateway,
    is_lane,
    is_sequence_flow,
)
from flowlayout.model.modeling import Modeling
from flowlayout.model.registry import RegistryView
from flowlayout.pipeline.context import LayoutContext
from flowlayout.pipeline.origin import snap_value, snap_waypoints

logger = logging.getLogger(__name__)


@dataclass
class CrossingFlowsResult:
    count: int = 0
    pairs: list[tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "pairs": [list(p) for p in self.pairs]}


def connections_cross(a: Element, b: Element) -> bool:
    for a1, a2 in segments_of(a.waypoints):
        for b1, b2 in segments_of(b.waypoints):
            if segments_intersect(a1, a2, b1, b2):
                return True
    return False


def detect_crossing_flows(registry: RegistryView) -> CrossingFlowsResult:
    connections = [c for c in registry.filter(is_connection) if len(c.waypoints) >= 2]
    result = CrossingFlowsResult()
    for a, b in itertools.combinations(connections, 2):
        if {a.source, a.target} & {b.source, b.target}:
            continue
        if connections_cross(a, b):
            result.pairs.append((a.id, b.id))
    result.count = len(result.pairs)
    return result


# ─── Lane metrics ────────────────────────────────────────────────────────────


@dataclass
class LaneCrossingMetrics:
    total_lane_flows: int
    crossing_lane_flows: int
    crossing_flow_ids: list[str]
    lane_coherence_score: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalLaneFlows": self.total_lane_flows,
            "crossingLaneFlows": self.crossing_lane_flows,
            "crossingFlowIds": list(self.crossing_flow_ids),
            "laneCoherenceScore": self.lane_coherence_score,
        }


def lane_crossing_metrics(registry: RegistryView) -> LaneCrossingMetrics | None:
    """How many sequence flows between laned nodes stay within one lane.

    Returns None when no node is assigned to a lane.
    """
    node_lane: dict[str, str] = {}
    for lane in registry.filter(is_lane):
        for ref in lane.flow_node_refs:
            node_lane[ref] = lane.id
    if not node_lane:
        return None
    total = 0
    crossing: list[str] = []
    for flow in registry.filter(is_sequence_flow):
        src, tgt = node_lane.get(flow.source or ""), node_lane.get(flow.target or "")
        if src is None or tgt is None:
            continue
        total += 1
        if src != tgt:
            crossing.append(flow.id)
    score = round(100 * (total - len(crossing)) / total) if total else 100
    return LaneCrossingMetrics(total, len(crossing), crossing, score)


# ─── Reduction ───────────────────────────────────────────────────────────────


def _swap_candidates(registry: RegistryView, movable: Callable[[Element], bool]) -> list[tuple[Element, Element]]:
    """Sibling branch targets of split gateways that share a container and a lane."""
    node_lane = {ref: lane.id for lane in registry.filter(is_lane) for ref in lane.flow_node_refs}
    pairs: list[tuple[Element, Element]] = []
    for gateway in registry.filter(is_gateway):
        targets: list[Element] = []
        for flow in registry.outgoing(gateway.id):
            if not is_sequence_flow(flow):
                continue
            target = registry.get(flow.target or "")
            if (
                target is not None
                and target.is_shape
                and not is_boundary_event(target)
                and len(registry.incoming(target.id)) == 1
                and movable(target)
            ):
                targets.append(target)
        pairs.extend(
            (a, b)
            for a, b in itertools.combinations(targets, 2)
            if a.parent == b.parent and node_lane.get(a.id) == node_lane.get(b.id)
        )
    return pairs


def _swap(
    registry: RegistryView,
    modeling: Modeling,
    a: Element,
    b: Element,
    quantum: int | None,
    movable: Callable[[Element], bool],
) -> None:
    def held(element_id: str) -> bool:
        el = registry.get(element_id)
        return el is not None and not movable(el)

    ca, cb = a.center(), b.center()
    delta = Point(cb.x - ca.x, cb.y - ca.y)
    if quantum:
        delta = Point(snap_value(delta.x, quantum), snap_value(delta.y, quantum))
    modeling.move_elements([a], delta, exclude=held)
    modeling.move_elements([b], Point(-delta.x, -delta.y), exclude=held)

    touched = {a.id, b.id}
    for el in (a, b):
        touched.update(e.id for e in registry.attachers_of(el.id))
    for conn in registry.filter(is_connection):
        if conn.source in touched or conn.target in touched:
            points = modeling.layout_connection(conn)
            if quantum:
                modeling.update_waypoints(conn, snap_waypoints(points, quantum))


def reduce_crossings(
    registry: RegistryView,
    modeling: Modeling,
    max_attempts: int = 20,
    movable: Callable[[Element], bool] | None = None,
    quantum: int | None = None,
) -> CrossingFlowsResult:
    """Try sibling swaps at split gateways; never increases the crossing count.

    Failures inside the heuristic are logged and the best state found so far
    is kept.
    """
    movable = movable or (lambda el: True)
    best = detect_crossing_flows(registry)
    if best.count == 0:
        return best

    stack = modeling.command_stack
    attempts = 0
    mark = len(stack.commands)
    try:
        for a, b in _swap_candidates(registry, movable):
            if attempts >= max_attempts or best.count == 0:
                break
            attempts += 1
            mark = len(stack.commands)
            _swap(registry, modeling, a, b, quantum, movable)
            trial = detect_crossing_flows(registry)
            if trial.count < best.count:
                logger.debug("swapping %s and %s: %d -> %d crossings", a.id, b.id, best.count, trial.count)
                best = trial
            else:
                stack.undo_to(mark, registry)
    except Exception:
        logger.warning("crossing reduction aborted after %d attempts", attempts, exc_info=True)
        stack.undo_to(mark, registry)
    return best


# ─── Pipeline step ───────────────────────────────────────────────────────────


def detect_and_reduce_crossings(ctx: LayoutContext) -> None:
    result = detect_crossing_flows(ctx.registry)
    if result.count and ctx.options.reduce_crossings:
        result = reduce_crossings(
            ctx.registry,
            ctx.modeling,
            ctx.config.max_crossing_attempts,
            movable=lambda el: ctx.in_scope(el) and not ctx.is_pinned(el.id),
            quantum=ctx.options.grid_quantum,
        )
    ctx.crossings = result
