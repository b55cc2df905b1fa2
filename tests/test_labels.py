"""Tests for pipeline/labels.py — candidate scoring and label placement."""

from __future__ import annotations

from flowlayout.geometry import Point, Rect
from flowlayout.model.diagram import Diagram
from flowlayout.pipeline.labels import (
    HOST_PENALTY,
    LABEL_PENALTY,
    OFF_CANVAS_PENALTY,
    adjust_labels,
    label_candidates,
    score_label_position,
)

# ─── Helpers ──────────────────────────────────────────────────────────────────


def start_event_diagram() -> Diagram:
    d = Diagram()
    d.add_shape("Start", "bpmn:StartEvent", x=100, y=100, width=36, height=36)
    return d


# ─── Scoring ──────────────────────────────────────────────────────────────────


class TestScore:
    def test_clean_position_scores_zero(self):
        assert score_label_position(Rect(10, 10, 90, 20), [], []) == 0

    def test_off_canvas(self):
        assert score_label_position(Rect(-10, 10, 90, 20), [], []) == OFF_CANVAS_PENALTY
        assert score_label_position(Rect(-10, -5, 90, 20), [], []) == 2 * OFF_CANVAS_PENALTY

    def test_each_crossed_segment_costs_one(self):
        segments = [(Point(0, 20), Point(200, 20)), (Point(50, 0), Point(50, 100)), (Point(0, 500), Point(10, 500))]
        assert score_label_position(Rect(10, 10, 90, 20), segments, []) == 2

    def test_overlapping_label(self):
        assert score_label_position(Rect(10, 10, 90, 20), [], [Rect(50, 15, 90, 20)]) == LABEL_PENALTY

    def test_touching_label_is_free(self):
        assert score_label_position(Rect(10, 10, 90, 20), [], [Rect(100, 10, 90, 20)]) == 0

    def test_host_overlap(self):
        assert score_label_position(Rect(10, 10, 90, 20), [], [], Rect(0, 0, 36, 36)) == HOST_PENALTY

    def test_scorer_is_pure(self):
        rect = Rect(10, 10, 90, 20)
        others = [Rect(50, 15, 90, 20)]
        assert score_label_position(rect, [], others) == score_label_position(rect, [], others)
        assert rect == Rect(10, 10, 90, 20)


class TestCandidates:
    def test_priority_order(self):
        d = start_event_diagram()
        bottom, top, right, left = label_candidates(d.get("Start"))
        assert (bottom.x, bottom.y) == (73, 146)
        assert (top.x, top.y) == (73, 70)
        assert (right.x, right.y) == (146, 108)
        assert (left.x, left.y) == (0, 108)
        assert (bottom.width, bottom.height) == (90, 20)


# ─── Placement ────────────────────────────────────────────────────────────────


class TestAdjustLabels:
    def test_label_placed_below_by_default(self):
        d = start_event_diagram()
        assert adjust_labels(d.registry, d.modeling) == 1
        assert d.get("Start").label == Rect(73, 146, 90, 20)

    def test_second_pass_moves_nothing(self):
        d = start_event_diagram()
        adjust_labels(d.registry, d.modeling)
        assert adjust_labels(d.registry, d.modeling) == 0

    def test_flow_below_pushes_label_on_top(self):
        d = start_event_diagram()
        d.add_shape("Other", x=400, y=400)
        d.add_connection("f", "Other", "Start", waypoints=[Point(0, 156), Point(300, 156)])
        adjust_labels(d.registry, d.modeling)
        assert d.get("Start").label == Rect(73, 70, 90, 20)

    def test_tasks_keep_internal_labels(self):
        d = Diagram()
        d.add_shape("Task", x=100, y=100)
        assert adjust_labels(d.registry, d.modeling) == 0
        assert d.get("Task").label is None

    def test_immovable_elements_skipped(self):
        d = start_event_diagram()
        assert adjust_labels(d.registry, d.modeling, movable=lambda el: False) == 0
        assert d.get("Start").label is None
