"""Tests for pipeline/runner.py — ordering, skipping, deltas and failures."""

from __future__ import annotations

import pytest

from flowlayout.errors import PipelineStepError
from flowlayout.geometry import Point
from flowlayout.layout import MAIN_PIPELINE_STEPS, build_pipeline
from flowlayout.model.diagram import Diagram
from flowlayout.pipeline.runner import PipelineRunner, PipelineStep, position_deltas

from helpers import make_context

# ─── Helpers ──────────────────────────────────────────────────────────────────


def diagram_with_task() -> Diagram:
    d = Diagram()
    d.add_shape("Task", x=0, y=0)
    return d


# ─── Runner Tests ─────────────────────────────────────────────────────────────


class TestPipelineRunner:
    def test_steps_run_in_declared_order(self):
        calls: list[str] = []
        runner = PipelineRunner(
            [
                PipelineStep("first", lambda ctx: calls.append("first")),
                PipelineStep("second", lambda ctx: calls.append("second")),
                PipelineStep("third", lambda ctx: calls.append("third")),
            ]
        )
        records = runner.run(make_context(diagram_with_task()))
        assert calls == ["first", "second", "third"]
        assert [r.name for r in records] == runner.get_step_names() == ["first", "second", "third"]

    def test_failure_names_the_step_and_stops(self):
        calls: list[str] = []

        def boom(ctx):
            raise KeyError("missing")

        runner = PipelineRunner(
            [
                PipelineStep("ok", lambda ctx: calls.append("ok")),
                PipelineStep("broken", boom),
                PipelineStep("never", lambda ctx: calls.append("never")),
            ]
        )
        with pytest.raises(PipelineStepError) as excinfo:
            runner.run(make_context(diagram_with_task()))
        assert excinfo.value.step_name == "broken"
        assert isinstance(excinfo.value.__cause__, KeyError)
        assert 'Pipeline step "broken" failed' in str(excinfo.value)
        assert calls == ["ok"]

    def test_skip_predicate(self):
        calls: list[str] = []
        runner = PipelineRunner([PipelineStep("maybe", lambda ctx: calls.append("ran"), skip=lambda ctx: True)])
        (record,) = runner.run(make_context(diagram_with_task()))
        assert record.skipped
        assert calls == []
        assert record.to_dict()["skipped"] is True

    def test_tracked_step_reports_moved_shapes(self):
        def nudge(ctx):
            ctx.modeling.move_elements([ctx.registry.get("Task")], Point(25, 0))

        runner = PipelineRunner([PipelineStep("nudge", nudge, track_delta=True), PipelineStep("idle", lambda ctx: None)])
        tracked, untracked = runner.run(make_context(diagram_with_task()))
        assert tracked.deltas == {"Task": (25, 0)}
        assert tracked.to_dict()["moved"] == 1
        assert untracked.deltas is None

    def test_position_deltas_threshold(self):
        before = {"a": (0.0, 0.0), "b": (0.0, 0.0)}
        after = {"a": (0.5, 1.0), "b": (3.0, 0.0)}
        assert position_deltas(before, after, 1.0) == {"b": (3.0, 0.0)}


class TestMainPipeline:
    def test_step_order(self):
        names = build_pipeline().get_step_names()
        assert names.index("apply_node_positions") < names.index("finalise_pools_and_lanes")
        assert names.index("finalise_pools_and_lanes") < names.index("layout_connections")
        assert names.index("layout_connections") < names.index("normalise_origin")
        assert names[-1] == "detect_crossing_flows"

    def test_position_steps_are_tracked(self):
        tracked = {step.name for step in MAIN_PIPELINE_STEPS if step.track_delta}
        assert {"apply_node_positions", "fix_boundary_events", "reposition_artifacts"} <= tracked
