"""Tests for single pipeline steps — edge routing, grid snap, boundary events,
event subprocesses and artifacts."""

from __future__ import annotations

import pytest

from flowlayout import types as t
from flowlayout.config import LayoutConfig, LayoutOptions
from flowlayout.geometry import Point, is_orthogonal
from flowlayout.graph.types import EdgeSection, GraphEdge, GraphNode
from flowlayout.model.diagram import Diagram
from flowlayout.pipeline.artifacts import reposition_artifacts
from flowlayout.pipeline.boundary import (
    border_fractions,
    exception_chains,
    push_exception_chains_below,
    reposition_boundary_events,
)
from flowlayout.pipeline.edges import (
    RoutedSection,
    apply_edge_routes,
    build_orthogonal_waypoints,
    build_section_waypoints,
    build_self_loop,
)
from flowlayout.pipeline.event_subprocesses import position_event_subprocesses
from flowlayout.pipeline.origin import apply_grid_snap, normalise_origin, snap_value, snap_waypoints
from flowlayout.pipeline.positions import apply_node_positions

from flowlayout.types import Direction

from helpers import make_context, pool_diagram

# ─── Edge Routing ─────────────────────────────────────────────────────────────


class TestFallbackRoutes:
    def test_aligned_centres_give_a_straight_segment(self):
        d = Diagram()
        a = d.add_shape("A", x=0, y=0)
        b = d.add_shape("B", x=300, y=1)
        assert build_orthogonal_waypoints(a, b, LayoutConfig()) == [Point(50, 40), Point(350, 41)]

    def test_wide_offset_goes_horizontal_first(self):
        d = Diagram()
        a = d.add_shape("A", x=0, y=0)
        b = d.add_shape("B", x=300, y=200)
        assert build_orthogonal_waypoints(a, b, LayoutConfig()) == [Point(50, 40), Point(350, 40), Point(350, 240)]

    def test_tall_offset_goes_vertical_first(self):
        d = Diagram()
        a = d.add_shape("A", x=0, y=0)
        b = d.add_shape("B", x=100, y=400)
        assert build_orthogonal_waypoints(a, b, LayoutConfig()) == [Point(50, 40), Point(50, 440), Point(150, 440)]

    def test_self_loop(self):
        d = Diagram()
        a = d.add_shape("A", x=0, y=0)
        loop = build_self_loop(a, LayoutConfig())
        assert loop == [Point(100, 20), Point(120, 20), Point(120, 100), Point(50, 100), Point(50, 80)]
        assert is_orthogonal(loop)


class TestSectionWaypoints:
    def test_offset_round_and_snap(self):
        section = EdgeSection(start=Point(10, 10), end=Point(60, 100), bend_points=[Point(60.4, 13)])
        points = build_section_waypoints(RoutedSection(section, 5, 5), LayoutConfig())
        assert points == [Point(15, 15), Point(65, 15), Point(65, 105)]

    def test_shift_applied(self):
        section = EdgeSection(start=Point(0, 0), end=Point(100, 0))
        points = build_section_waypoints(RoutedSection(section, 0, 0), LayoutConfig(), Point(10, 20))
        assert points == [Point(10, 20), Point(110, 20)]


class TestApplyEdgeRoutes:
    def _context(self, pinned: bool):
        d = Diagram()
        d.add_shape("A")
        d.add_shape("B")
        d.add_connection("f", "A", "B")
        if pinned:
            d.pin_element("B")
        ctx = make_context(d)
        ctx.result = GraphNode(
            id=d.root_id,
            children=[GraphNode(id="A", width=100, height=80, x=0, y=0), GraphNode(id="B", width=100, height=80, x=160, y=0)],
            edges=[GraphEdge(id="f", sources=["A"], targets=["B"], sections=[EdgeSection(Point(100, 40), Point(160, 40))])],
        )
        apply_node_positions(ctx)
        return d, ctx

    def test_engine_section_used(self):
        d, ctx = self._context(pinned=False)
        apply_edge_routes(ctx)
        assert d.get("f").waypoints == [Point(100, 40), Point(160, 40)]

    def test_pinned_endpoint_falls_back(self):
        d, ctx = self._context(pinned=True)
        d.get("B").y = 300
        apply_edge_routes(ctx)
        assert d.get("f").waypoints == [Point(50, 40), Point(50, 340)]

    def test_section_follows_common_shift(self):
        d, ctx = self._context(pinned=False)
        ctx.modeling.move_elements([d.get("A"), d.get("B")], Point(0, 30))
        apply_edge_routes(ctx)
        assert d.get("f").waypoints == [Point(100, 70), Point(160, 70)]

    def test_separated_endpoints_fall_back(self):
        d, ctx = self._context(pinned=False)
        ctx.modeling.move_elements([d.get("B")], Point(0, 200))
        apply_edge_routes(ctx)
        assert d.get("f").waypoints == [Point(50, 40), Point(50, 240), Point(210, 240)]


# ─── Origin & Grid ────────────────────────────────────────────────────────────


class TestGrid:
    @pytest.mark.parametrize(("value", "quantum", "expected"), [(12, 5, 10), (13, 5, 15), (15, 10, 20), (-3, 10, 0)])
    def test_snap_value(self, value, quantum, expected):
        assert snap_value(value, quantum) == expected

    def test_snap_waypoints_keeps_route_orthogonal(self):
        points = snap_waypoints([Point(0, 3), Point(14, 3), Point(14, 57), Point(100, 57)], 10)
        assert points == [Point(0, 0), Point(10, 0), Point(10, 60), Point(100, 60)]
        assert is_orthogonal(points)

    def test_two_point_route_untouched(self):
        assert snap_waypoints([Point(1, 3), Point(99, 3)], 10) == [Point(1, 3), Point(99, 3)]

    def test_normalise_origin_shifts_negative_content(self):
        d = Diagram()
        d.add_shape("A", x=-40, y=10)
        d.add_shape("B", x=200, y=-25)
        d.add_connection("f", "A", "B", waypoints=[Point(60, 50), Point(200, 15)])
        normalise_origin(make_context(d))
        assert (d.get("A").x, d.get("A").y) == (0, 35)
        assert (d.get("B").x, d.get("B").y) == (240, 0)
        assert d.get("f").waypoints == [Point(100, 75), Point(240, 40)]

    def test_normalise_origin_rounds_up_to_quantum(self):
        d = Diagram()
        d.add_shape("A", x=-12, y=0)
        normalise_origin(make_context(d, LayoutOptions(grid_quantum=10)))
        assert d.get("A").x == 8

    def test_non_negative_content_untouched(self):
        d = Diagram()
        d.add_shape("A", x=5, y=5)
        normalise_origin(make_context(d))
        assert (d.get("A").x, d.get("A").y) == (5, 5)

    def test_boundary_event_moves_with_its_host(self):
        d = Diagram()
        d.add_shape("Task", x=103, y=98)
        d.add_shape("Timer", t.BOUNDARY_EVENT, x=185, y=130, width=36, height=36, host="Task")
        apply_grid_snap(make_context(d), 10)
        assert (d.get("Task").x, d.get("Task").y) == (100, 100)
        assert (d.get("Timer").x, d.get("Timer").y) == (182, 132)


# ─── Boundary Events ──────────────────────────────────────────────────────────


class TestBoundaryEvents:
    def test_fractions(self):
        config = LayoutConfig()
        assert border_fractions(1, config) == [pytest.approx(0.67)]
        assert border_fractions(2, config) == [pytest.approx(0.3), pytest.approx(0.7)]

    def test_event_without_flows_sits_on_bottom_border(self):
        d = Diagram()
        d.add_shape("Task", x=100, y=100)
        d.add_shape("Timer", t.BOUNDARY_EVENT, x=0, y=0, width=36, height=36, host="Task")
        reposition_boundary_events(make_context(d))
        timer = d.get("Timer")
        assert timer.y + 18 == 180
        assert timer.x + 18 == pytest.approx(100 + 100 * 0.67, abs=1)

    def test_event_faces_its_target(self):
        d = Diagram()
        d.add_shape("Task", x=100, y=100)
        d.add_shape("Timer", t.BOUNDARY_EVENT, x=0, y=0, width=36, height=36, host="Task")
        d.add_shape("Handler", x=400, y=110)
        d.add_connection("esc", "Timer", "Handler")
        reposition_boundary_events(make_context(d))
        assert d.get("Timer").x + 18 == 200

    def test_pinned_event_stays(self):
        d = Diagram()
        d.add_shape("Task", x=100, y=100)
        d.add_shape("Timer", t.BOUNDARY_EVENT, x=0, y=0, width=36, height=36, host="Task")
        d.pin_element("Timer")
        reposition_boundary_events(make_context(d))
        assert (d.get("Timer").x, d.get("Timer").y) == (0, 0)

    def test_two_events_spread_along_border(self):
        d = Diagram()
        d.add_shape("Task", x=0, y=0, width=200)
        d.add_shape("E1", t.BOUNDARY_EVENT, x=0, y=0, width=36, height=36, host="Task")
        d.add_shape("E2", t.BOUNDARY_EVENT, x=10, y=0, width=36, height=36, host="Task")
        reposition_boundary_events(make_context(d))
        assert d.get("E1").x + 18 == 60
        assert d.get("E2").x + 18 == 140


def exception_diagram() -> Diagram:
    """A → B on the main path; Timer on A leads to H1 → H2, which joins B."""
    d = Diagram()
    d.add_shape("A", x=100, y=100)
    d.add_shape("B", x=260, y=100)
    d.add_shape("C", x=420, y=100)
    d.add_shape("Timer", t.BOUNDARY_EVENT, width=36, height=36, host="A")
    d.add_shape("H1", x=260, y=100)
    d.add_shape("H2", x=420, y=100)
    d.add_connection("main", "A", "B")
    d.add_connection("side", "A", "C")
    d.add_connection("esc", "Timer", "H1")
    d.add_connection("esc_c", "Timer", "C")
    d.add_connection("chain", "H1", "H2")
    d.add_connection("join", "H2", "B")
    return d


class TestExceptionChains:
    def test_only_exclusively_reached_nodes_belong_to_a_chain(self):
        assert exception_chains(exception_diagram().registry) == {"Timer": ["H1", "H2"]}

    def test_chain_pushed_below_main_flow(self):
        d = exception_diagram()
        push_exception_chains_below(make_context(d))
        assert d.get("H1").y == 230
        assert d.get("H2").y == 230
        assert d.get("B").y == 100

    def test_vertical_layouts_untouched(self):
        d = exception_diagram()
        push_exception_chains_below(make_context(d, LayoutOptions(direction=Direction.DOWN)))
        assert d.get("H1").y == 100

    def test_pinned_chain_member_stays(self):
        d = exception_diagram()
        d.pin_element("H2")
        push_exception_chains_below(make_context(d))
        assert d.get("H1").y == 230
        assert d.get("H2").y == 100


# ─── Event Subprocesses ───────────────────────────────────────────────────────


class TestEventSubprocesses:
    def test_row_below_the_main_flow(self):
        d = Diagram()
        d.add_shape("A", x=100, y=100)
        d.add_shape("B", x=300, y=120)
        d.add_shape("ES_1", t.SUB_PROCESS, triggered_by_event=True)
        d.add_shape("ES_2", t.SUB_PROCESS, triggered_by_event=True)
        position_event_subprocesses(make_context(d))
        assert (d.get("ES_1").x, d.get("ES_1").y) == (100, 250)
        assert (d.get("ES_2").x, d.get("ES_2").y) == (250, 250)

    def test_own_layout_applied_inside(self):
        d = Diagram()
        d.add_shape("A", x=100, y=100)
        d.add_shape("OnError", t.SUB_PROCESS, triggered_by_event=True)
        d.add_shape("Handle", parent="OnError")
        result = GraphNode(
            id="OnError",
            width=100,
            height=80,
            children=[GraphNode(id="Handle", width=100, height=80, x=0, y=0)],
        )
        ctx = make_context(d)
        ctx.event_sub_results["OnError"] = result
        position_event_subprocesses(ctx)
        on_error, handle = d.get("OnError"), d.get("Handle")
        assert (on_error.x, on_error.y, on_error.width, on_error.height) == (100, 230, 190, 200)
        assert (handle.x, handle.y) == (140, 290)
        assert ctx.placed_results == [(result, 140, 290)]

    def test_pool_and_last_lane_grow_to_fit(self):
        d = pool_diagram()
        d.get("T2").y = 200
        d.add_shape("OnError", t.SUB_PROCESS, parent="Pool", triggered_by_event=True)
        position_event_subprocesses(make_context(d))
        assert (d.get("OnError").x, d.get("OnError").y) == (0, 330)
        assert d.get("Pool").height == 490
        assert d.get("Lane_1").height == 150
        assert d.get("Lane_2").height == 340

    def test_pinned_event_sub_process_stays(self):
        d = Diagram()
        d.add_shape("A", x=100, y=100)
        d.add_shape("OnError", t.SUB_PROCESS, x=5, y=5, triggered_by_event=True)
        d.pin_element("OnError")
        position_event_subprocesses(make_context(d))
        assert (d.get("OnError").x, d.get("OnError").y) == (5, 5)


# ─── Artifacts ────────────────────────────────────────────────────────────────


def diagram_with_artifacts() -> Diagram:
    d = Diagram()
    d.add_shape("A", x=200, y=200)
    d.add_shape("Note", t.TEXT_ANNOTATION, width=100, height=30)
    d.add_shape("Doc", t.DATA_OBJECT_REFERENCE, width=36, height=50)
    d.add_connection("a1", "Note", "A", element_type=t.ASSOCIATION)
    d.add_connection("a2", "A", "Doc", element_type=t.DATA_OUTPUT_ASSOCIATION)
    return d


class TestArtifacts:
    def test_linked_artifacts_share_a_row_centred_on_their_element(self):
        d = diagram_with_artifacts()
        reposition_artifacts(make_context(d))
        note, doc = d.get("Note"), d.get("Doc")
        # annotation above, data object below
        assert (note.x, note.y) == (172, 90)
        assert (doc.x, doc.y) == (292, 360)

    def test_unlinked_annotation_goes_above_the_flow(self):
        d = Diagram()
        d.add_shape("A", x=200, y=200)
        d.add_shape("Loose", t.TEXT_ANNOTATION, width=100, height=30)
        reposition_artifacts(make_context(d))
        loose = d.get("Loose")
        assert (loose.x, loose.y) == (200, 90)

    def test_group_wraps_its_category(self):
        d = Diagram()
        d.add_shape("A", x=200, y=200, category="billing")
        d.add_shape("G", t.GROUP, width=10, height=10, category="billing")
        reposition_artifacts(make_context(d))
        g = d.get("G")
        assert (g.x, g.y, g.width, g.height) == (180, 180, 140, 120)

    def test_pinned_artifact_stays(self):
        d = diagram_with_artifacts()
        d.pin_element("Note")
        reposition_artifacts(make_context(d))
        assert (d.get("Note").x, d.get("Note").y) == (0, 0)
