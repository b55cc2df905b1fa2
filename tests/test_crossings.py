"""Tests for pipeline/crossings.py — detection, lane metrics and sibling-swap reduction."""

from __future__ import annotations

from flowlayout import types as t
from flowlayout.config import LayoutOptions
from flowlayout.geometry import Point
from flowlayout.model.diagram import Diagram
from flowlayout.pipeline.crossings import (
    detect_and_reduce_crossings,
    detect_crossing_flows,
    lane_crossing_metrics,
    reduce_crossings,
)

from helpers import make_context, pool_diagram

# ─── Helpers ──────────────────────────────────────────────────────────────────


def crossed_branches(with_gateway: bool = True) -> Diagram:
    """Split → (A | B) where A feeds the lower and B the upper successor."""
    d = Diagram()
    if with_gateway:
        d.add_shape("Split", "bpmn:ExclusiveGateway", x=0, y=115, width=50, height=50)
    d.add_shape("A", x=150, y=0)
    d.add_shape("B", x=150, y=200)
    d.add_shape("X1", x=350, y=0)
    d.add_shape("X2", x=350, y=200)
    if with_gateway:
        d.add_connection("g1", "Split", "A")
        d.add_connection("g2", "Split", "B")
    d.add_connection("a_x2", "A", "X2", waypoints=[Point(250, 40), Point(350, 240)])
    d.add_connection("b_x1", "B", "X1", waypoints=[Point(250, 240), Point(350, 40)])
    return d


# ─── Detection ────────────────────────────────────────────────────────────────


class TestDetection:
    def test_crossing_pair_found(self):
        result = detect_crossing_flows(crossed_branches().registry)
        assert result.count == 1
        assert result.pairs == [("a_x2", "b_x1")]
        assert result.to_dict() == {"count": 1, "pairs": [["a_x2", "b_x1"]]}

    def test_shared_endpoint_is_not_a_crossing(self):
        d = Diagram()
        for name in ("P", "Q", "R"):
            d.add_shape(name)
        d.add_connection("c1", "P", "Q", waypoints=[Point(0, 0), Point(100, 100)])
        d.add_connection("c2", "P", "R", waypoints=[Point(0, 100), Point(100, 0)])
        assert detect_crossing_flows(d.registry).count == 0

    def test_touching_segments_do_not_cross(self):
        d = Diagram()
        for name in ("P", "Q", "R", "S"):
            d.add_shape(name)
        d.add_connection("c1", "P", "Q", waypoints=[Point(0, 0), Point(100, 0)])
        d.add_connection("c2", "R", "S", waypoints=[Point(100, 0), Point(100, 100)])
        assert detect_crossing_flows(d.registry).count == 0


class TestLaneMetrics:
    def test_no_lanes(self):
        assert lane_crossing_metrics(crossed_branches().registry) is None

    def test_cross_lane_flows_counted(self):
        metrics = lane_crossing_metrics(pool_diagram().registry)
        assert metrics is not None
        assert metrics.total_lane_flows == 2
        assert metrics.crossing_flow_ids == ["f1", "f2"]
        assert metrics.lane_coherence_score == 0
        assert metrics.to_dict()["crossingLaneFlows"] == 2

    def test_same_lane_flows_are_coherent(self):
        d = Diagram()
        d.add_shape("Pool", t.PARTICIPANT, width=600, height=300)
        d.add_shape("L", t.LANE, x=30, width=570, height=300, parent="Pool", flow_node_refs=["A", "B"])
        d.add_shape("A", parent="Pool")
        d.add_shape("B", parent="Pool")
        d.add_connection("f", "A", "B")
        metrics = lane_crossing_metrics(d.registry)
        assert metrics is not None
        assert metrics.lane_coherence_score == 100


# ─── Reduction ────────────────────────────────────────────────────────────────


class TestReduction:
    def test_sibling_swap_removes_crossing(self):
        d = crossed_branches()
        result = reduce_crossings(d.registry, d.modeling)
        assert result.count == 0
        assert d.get("A").y == 200
        assert d.get("B").y == 0

    def test_without_candidates_nothing_moves(self):
        d = crossed_branches(with_gateway=False)
        result = reduce_crossings(d.registry, d.modeling)
        assert result.count == 1
        assert (d.get("A").y, d.get("B").y) == (0, 200)
        assert not d.command_stack.can_undo()

    def test_immovable_targets_are_not_swapped(self):
        d = crossed_branches()
        result = reduce_crossings(d.registry, d.modeling, movable=lambda el: el.id != "A")
        assert result.count == 1
        assert d.get("A").y == 0

    def test_no_attempts_allowed(self):
        d = crossed_branches()
        assert reduce_crossings(d.registry, d.modeling, max_attempts=0).count == 1
        assert d.get("A").y == 0

    def test_failed_swap_is_reverted(self):
        d = crossed_branches()

        def explode(conn):
            raise RuntimeError("routing failed")

        d.modeling.layout_connection = explode  # type: ignore[method-assign]
        result = reduce_crossings(d.registry, d.modeling)
        assert result.count == 1
        assert (d.get("A").y, d.get("B").y) == (0, 200)


class TestPipelineStep:
    def test_step_records_result(self):
        d = crossed_branches()
        ctx = make_context(d)
        detect_and_reduce_crossings(ctx)
        assert ctx.crossings is not None
        assert ctx.crossings.count == 0

    def test_reduction_can_be_disabled(self):
        d = crossed_branches()
        ctx = make_context(d, LayoutOptions(reduce_crossings=False))
        detect_and_reduce_crossings(ctx)
        assert ctx.crossings is not None
        assert ctx.crossings.count == 1
        assert d.get("A").y == 0

    def test_pinned_target_stays(self):
        d = crossed_branches()
        d.pin_element("B")
        ctx = make_context(d)
        detect_and_reduce_crossings(ctx)
        assert ctx.crossings.count == 1
        assert d.get("B").y == 200
